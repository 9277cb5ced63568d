from eventloop_bench.lag_monitor import LagMonitor, LagSample
from eventloop_bench.yielding import (
    ComputationError,
    IterationCancelled,
    YieldingIterator,
    iterate_yielding,
)

__all__ = [
    "ComputationError",
    "IterationCancelled",
    "LagMonitor",
    "LagSample",
    "YieldingIterator",
    "iterate_yielding",
]
