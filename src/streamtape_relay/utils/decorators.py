"""Decorator utilities for cross-cutting concerns."""
import functools
import logging
import time
from typing import Any, Callable, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def async_log_execution_time(func: F) -> F:
    """Log how long a Streamtape call took.

    Successes go to DEBUG; failures go to WARNING with the error type and
    are re-raised unchanged so the route's error handling still applies.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        started = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.warning(f"{func.__qualname__} failed after {elapsed_ms:.0f}ms ({type(e).__name__}: {e})")
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(f"{func.__qualname__} took {elapsed_ms:.0f}ms")
        return result
    return cast(F, wrapper)
