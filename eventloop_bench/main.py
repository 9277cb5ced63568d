import asyncio
import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Path, Query, Request
from fastapi.responses import JSONResponse

from eventloop_bench.config import load_settings
from eventloop_bench.lag_monitor import LagMonitor
from eventloop_bench.primes import ASYNC_VARIANTS, SYNC_VARIANTS, YIELDING_VARIANTS
from eventloop_bench.yielding import ComputationError, IterationCancelled

settings = load_settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="eventloop-bench", version="0.1.0")
app.state.settings = settings
app.state.lag_monitor = None


def timing_response(variant: str, primes: list, start: float) -> dict:
    duration = (time.perf_counter() - start) * 1000
    return {
        "Message": f"found {len(primes)} prime numbers in {duration:.0f} milliseconds",
        "Result": len(primes),
        "DurationMs": duration,
        "Variant": variant,
    }


@app.exception_handler(ComputationError)
async def computation_error_handler(request: Request, exc: ComputationError) -> JSONResponse:
    logger.error("Computation failed on %s at index %d: %r", request.url.path, exc.index, exc.cause)
    return JSONResponse(status_code=500, content={"detail": str(exc), "index": exc.index})


@app.on_event("startup")
async def _start_lag_monitor() -> None:
    monitor = LagMonitor(
        interval_ms=app.state.settings.lag_interval_ms,
        alert_threshold_ms=app.state.settings.lag_alert_threshold_ms,
    )
    monitor.start()
    app.state.lag_monitor = monitor


@app.on_event("shutdown")
async def _stop_lag_monitor() -> None:
    monitor: Optional[LagMonitor] = app.state.lag_monitor
    if monitor is not None:
        monitor.stop()
    app.state.lag_monitor = None


# Asynchronous (non blocking) sleep
@app.get("/sleep/{duration}")
async def sleep_handler(duration: int = Path(ge=0)):
    await asyncio.sleep(duration / 1000)
    return {"duration slept in background": f"{duration}ms"}


# Call this while another route runs to see whether the event loop is blocked
@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/lag")
async def lag_stats():
    monitor: Optional[LagMonitor] = app.state.lag_monitor
    if monitor is None:
        return {"running": False}
    return monitor.stats()


# The handlers below are `async def` on purpose: FastAPI would run a plain
# `def` handler in its threadpool and the loop would never feel the load.


def _register_sync(name, func):
    @app.get(f"/{name}/{{iterations}}", name=name)
    async def handler(iterations: int = Path(ge=0)):
        start = time.perf_counter()
        primes = func(iterations)
        return timing_response(name, primes, start)


def _register_async(name, func):
    @app.get(f"/{name}/{{iterations}}", name=name)
    async def handler(iterations: int = Path(ge=0)):
        start = time.perf_counter()
        primes = await func(iterations)
        return timing_response(name, primes, start)


def _register_yielding(name, func):
    @app.get(f"/{name}/{{iterations}}", name=name)
    async def handler(
        iterations: int = Path(ge=0),
        batch_size: Optional[int] = Query(default=None, ge=1),
        timeout_ms: Optional[int] = Query(default=None, gt=0),
    ):
        batch = batch_size or app.state.settings.batch_size
        cancel_event = asyncio.Event()
        timer = None
        if timeout_ms is not None:
            timer = asyncio.get_running_loop().call_later(timeout_ms / 1000, cancel_event.set)

        start = time.perf_counter()
        try:
            primes = await func(iterations, batch_size=batch, cancel_event=cancel_event)
        except IterationCancelled as e:
            logger.info("%s cancelled after %d steps (timeout %dms)", name, e.completed_steps, timeout_ms)
            raise HTTPException(
                status_code=504,
                detail=f"gave up after {timeout_ms}ms ({e.completed_steps} of {iterations} steps done)",
            ) from e
        finally:
            if timer is not None:
                timer.cancel()
        return timing_response(name, primes, start)


for _name, _func in SYNC_VARIANTS.items():
    _register_sync(_name, _func)
for _name, _func in ASYNC_VARIANTS.items():
    _register_async(_name, _func)
for _name, _func in YIELDING_VARIANTS.items():
    _register_yielding(_name, _func)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
