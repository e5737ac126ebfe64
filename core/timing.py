import logging
import time
from functools import wraps

logger = logging.getLogger(__name__)


def timed(func):
    """Log how long ``func`` took, in milliseconds.

    The result and any exception pass through untouched.
    """
    @wraps(func)
    def _timed(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info("%s executed in %.3f ms", getattr(func, "__name__", repr(func)), elapsed_ms)
    return _timed


def timed_method(method):
    """Like ``timed``, but only when the instance has ``timing_enabled`` set."""
    timed_call = timed(method)

    @wraps(method)
    def _maybe_timed(self, *args, **kwargs):
        if getattr(self, "timing_enabled", False):
            return timed_call(self, *args, **kwargs)
        return method(self, *args, **kwargs)
    return _maybe_timed
