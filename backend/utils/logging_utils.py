"""
Run logging for calculations and store reads.

Every calculation is logged once when it starts and once when it finishes or
fails, with the project and policy identity in ``extra`` so log processors
can group runs by the rate set they used.
"""

import time
import logging
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@contextmanager
def log_operation(operation_name: str, context: Dict[str, Any], logger: Optional[logging.Logger] = None):
    """
    Log the start and outcome of one calculation.

    Usage:
        with log_operation("water_demand", {"project_id": "P-1", "policy": "MEP-21 rev 25"}, logger):
            report = engine.calculate(inventory, options)
    """
    log = logger or logging.getLogger(__name__)
    started = time.perf_counter()
    extra = {'operation': operation_name, **context}

    log.info(f"{operation_name} started for {context.get('project_id', '?')}",
             extra={**extra, 'status': 'started'})
    try:
        yield
    except Exception as e:
        elapsed_ms = (time.perf_counter() - started) * 1000
        log.error(f"{operation_name} failed after {elapsed_ms:.1f} ms: {type(e).__name__}",
                  extra={**extra, 'status': 'failed', 'elapsed_ms': elapsed_ms, 'error_type': type(e).__name__})
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    log.info(f"{operation_name} finished in {elapsed_ms:.1f} ms",
             extra={**extra, 'status': 'completed', 'elapsed_ms': elapsed_ms})


def timed_operation(operation_name: Optional[str] = None):
    """Debug-level timing for store reads; failures propagate unchanged."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = operation_name or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                logger.debug(f"{name} took {(time.perf_counter() - started) * 1000:.1f} ms")

        return wrapper
    return decorator
