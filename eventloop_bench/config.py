from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True, slots=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    # Lag monitor tick spacing and the lag that counts as a blocked loop.
    lag_interval_ms: int = 1
    lag_alert_threshold_ms: int = 100
    # Work units per batch before the yielding variants hand the loop back.
    batch_size: int = 1
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        host=os.environ.get("EVENTLOOP_BENCH_HOST", "0.0.0.0"),
        port=_env_int("EVENTLOOP_BENCH_PORT", 8000),
        lag_interval_ms=_env_int("LAG_MONITOR_INTERVAL_MS", 1),
        lag_alert_threshold_ms=_env_int("LAG_MONITOR_ALERT_THRESHOLD_MS", 100),
        batch_size=_env_int("EVENTLOOP_BENCH_BATCH_SIZE", 1),
        log_level=os.environ.get("EVENTLOOP_BENCH_LOG_LEVEL", "INFO").upper(),
    )
