from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import wraps
from time import perf_counter
from typing import Awaitable, Callable, ParamSpec, TypeVar

from .trace import get_current_trace

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


@contextmanager
def timed_stage(stage: str, label: str | None = None):
    started = perf_counter()
    try:
        yield
    finally:
        duration_ms = (perf_counter() - started) * 1000.0
        if label is not None:
            logger.debug("%s stage %s took %.3fms", stage, label, duration_ms)
        trace = get_current_trace()
        if trace is not None:
            trace.record_stage_time(stage, duration_ms)


def instrument_stage(stage: str) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Time every await of the decorated coroutine function under ``stage``."""

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with timed_stage(stage, label=func.__qualname__):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
