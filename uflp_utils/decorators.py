"""
Reusable decorators for timing and exception logging.
"""
import time
import logging
from functools import wraps
from typing import Optional, Tuple, Type

def log_and_time(
    phase_name: Optional[str] = None,
    error_cls: Type[BaseException] = Exception,
    rethrow: bool = True,
    passthrough: Tuple[Type[BaseException], ...] = (),
):
    """
    Logs start/end/duration and logs exceptions with stack traces.
    On error, rethrows as error_cls by default; errors that already are
    error_cls instances (or one of `passthrough`) propagate unchanged.
    """
    def outer(func):
        @wraps(func)
        def inner(*args, **kwargs):
            logger = logging.getLogger(func.__module__)
            name = phase_name or func.__name__
            t0 = time.perf_counter()
            logger.debug("%s start", name)
            try:
                result = func(*args, **kwargs)
                dt = time.perf_counter() - t0
                logger.debug("%s done in %.3fs", name, dt)
                return result
            except Exception as e:
                dt = time.perf_counter() - t0
                logger.exception("%s failed after %.3fs: %s", name, dt, e)
                if not rethrow:
                    return None
                if isinstance(e, (error_cls,) + tuple(passthrough)):
                    raise
                raise error_cls(str(e)) from e
        return inner
    return outer
