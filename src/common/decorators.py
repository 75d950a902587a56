"""
Error Handling Decorators

``best_effort`` guards optional steps (icon downloads) whose failure is
logged and replaced by a default. ``call_with_retry`` repeats calls that
fail with transient network errors. ``timed`` logs how long a sync or an
install took.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Type, Tuple, Callable, Any, Optional

logger = logging.getLogger(__name__)


def _name(func: Callable) -> str:
    # Bound methods of mocks and partials have no __name__
    return getattr(func, "__name__", repr(func))


def best_effort(
    *exception_types: Type[Exception],
    default: Any = None,
    log_level: int = logging.WARNING,
    message: Optional[str] = None,
):
    """
    Decorator for steps whose failure must not abort the caller.

    Args:
        exception_types: Exception types to catch (default: Exception)
        default: Value returned when one of them is raised
        log_level: Logging level of the failure message
        message: Message prefix (default: "<function> failed")

    Example:
        @best_effort(requests.RequestException, OSError)
        def fetch_icon(self, game):
            ...
    """
    if not exception_types:
        exception_types = (Exception,)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except exception_types as e:
                prefix = message or f"{_name(func)} failed"
                logger.log(log_level, f"{prefix}: {e}")
                return default
        return wrapper
    return decorator


def call_with_retry(
    func: Callable,
    *args,
    attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    **kwargs,
):
    """
    Call ``func(*args, **kwargs)``, retrying on ``exceptions``.

    At least one attempt is made whatever ``attempts`` says. The delay
    before each retry grows by ``backoff``. The last exception is
    re-raised once every attempt failed.

    Example:
        response = call_with_retry(
            session.get, url, timeout=30,
            attempts=2, exceptions=(requests.ConnectionError,),
        )
    """
    attempts = max(1, attempts)
    current_delay = delay

    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except exceptions as e:
            if attempt == attempts:
                logger.debug(f"{_name(func)} failed after {attempts} attempt(s): {e}")
                raise
            logger.warning(f"{_name(func)} failed (attempt {attempt}/{attempts}): {e}")
            if on_retry:
                on_retry(e, attempt)
            time.sleep(current_delay)
            current_delay *= backoff


def timed(func: Callable) -> Callable:
    """
    Decorator to log function execution time.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed = time.perf_counter() - start
            logger.debug(f"{func.__name__} completed in {elapsed:.3f}s")
    return wrapper
