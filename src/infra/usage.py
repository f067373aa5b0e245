"""
Per-execution API call metering.

The Execution Engine opens a meter around each handler run; the provider
client calls record_api_call() for every outbound request. The meter lives
in a ContextVar, so it follows the handler into any task it spawns.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional


class ApiCallMeter:
    """Mutable counter shared by one execution and its child tasks."""

    def __init__(self):
        self.calls = 0

    def record(self, count: int = 1) -> None:
        self.calls += count


_current_meter: ContextVar[Optional[ApiCallMeter]] = ContextVar(
    "api_call_meter", default=None
)


@contextmanager
def metered() -> Iterator[ApiCallMeter]:
    """Install a fresh meter for the duration of the block."""
    meter = ApiCallMeter()
    token = _current_meter.set(meter)
    try:
        yield meter
    finally:
        _current_meter.reset(token)


def record_api_call(count: int = 1) -> None:
    """Count an outbound call against the current execution, if any."""
    meter = _current_meter.get()
    if meter is not None:
        meter.record(count)
