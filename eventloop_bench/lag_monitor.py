"""Event loop lag detector.

A timer that should fire every `interval_ms`. Each wake-up measures how late
it was; a late wake-up means something held the loop without yielding.
Heavily inspired by tj/node-blocked.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LagSample:
    expected: float
    actual: float

    @property
    def lag_ms(self) -> float:
        return (self.actual - self.expected) * 1000.0


AlertCallback = Callable[[LagSample], None]


class LagMonitor:
    def __init__(
        self,
        interval_ms: float = 1,
        alert_threshold_ms: float = 100,
        *,
        accumulate_drift: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0, got {interval_ms}")
        if alert_threshold_ms < 0:
            raise ValueError(f"alert_threshold_ms must be >= 0, got {alert_threshold_ms}")
        self.interval_ms = interval_ms
        self.alert_threshold_ms = alert_threshold_ms
        # False: next expected = wake time + interval (node-blocked behaviour).
        # True: next expected = previous expected + interval.
        self.accumulate_drift = accumulate_drift
        self._clock = clock
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._expected: float | None = None
        self._subscribers: list[AlertCallback] = []
        self.ticks = 0
        self.alerts = 0
        self.last_lag_ms = 0.0
        self.max_lag_ms = 0.0

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def subscribe(self, callback: AlertCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if self.running:
            raise RuntimeError("LagMonitor is already running")
        self._loop = loop or asyncio.get_running_loop()
        self._expected = self._clock() + self.interval_s
        self._handle = self._loop.call_later(self.interval_s, self._on_wake)
        logger.info(
            "Lag monitor started (interval=%sms, threshold=%sms)", self.interval_ms, self.alert_threshold_ms
        )

    def stop(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        self._expected = None
        logger.info("Lag monitor stopped after %d ticks, %d alerts", self.ticks, self.alerts)

    def stats(self) -> dict[str, float | int | bool]:
        return {
            "running": self.running,
            "ticks": self.ticks,
            "alerts": self.alerts,
            "intervalMs": self.interval_ms,
            "alertThresholdMs": self.alert_threshold_ms,
            "lastLagMs": round(self.last_lag_ms, 3),
            "maxLagMs": round(self.max_lag_ms, 3),
        }

    def _on_wake(self) -> None:
        handle = self._handle
        if handle is None or self._loop is None or self._expected is None:
            return
        now = self._clock()
        sample = LagSample(expected=self._expected, actual=now)
        self.ticks += 1
        self.last_lag_ms = sample.lag_ms
        self.max_lag_ms = max(self.max_lag_ms, sample.lag_ms)
        if sample.lag_ms >= self.alert_threshold_ms:
            self.alerts += 1
            logger.warning("Event loop was blocked for %dms", sample.lag_ms)
            self._emit(sample)
            if self._handle is not handle:
                # a subscriber stopped (or restarted) us
                return

        if self.accumulate_drift:
            self._expected = self._expected + self.interval_s
            delay = max(self._expected - now, 0.0)
        else:
            self._expected = now + self.interval_s
            delay = self.interval_s
        self._handle = self._loop.call_later(delay, self._on_wake)

    def _emit(self, sample: LagSample) -> None:
        for callback in list(self._subscribers):
            try:
                callback(sample)
            except Exception:
                logger.exception("Lag alert subscriber %r failed", callback)
