"""
Performance Monitoring Utilities

Timing decorator and context manager for upstream calls. Every measurement
is logged and recorded into the global tracker served by /stats/performance.
"""

import time
import logging
import functools
import inspect
import threading
from typing import Optional, Callable, Any, Dict, List
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class PerformanceTracker:
    """
    Collect named timing measurements and summarise them.

    Usage:
        tracker = PerformanceTracker()
        tracker.record("ExH: gallery image", 1.42)
        tracker.report()
    """

    def __init__(self):
        self._measurements: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def record(self, name: str, elapsed: float) -> None:
        """
        Store one measurement.

        Args:
            name: Name of the operation
            elapsed: Duration in seconds
        """
        with self._lock:
            self._measurements.setdefault(name, []).append(elapsed)

    def report(self, log_level: str = "INFO") -> dict:
        """
        Summarise all measurements and log them.

        Returns:
            Dictionary mapping operation name to count and timings in ms
        """
        log_func = getattr(logger, log_level.lower())

        with self._lock:
            snapshot = {name: list(values) for name, values in self._measurements.items()}

        report = {}
        for name, measurements in sorted(snapshot.items()):
            count = len(measurements)
            total = sum(measurements)
            report[name] = {
                "count": count,
                "total_ms": round(total * 1000, 2),
                "avg_ms": round(total / count * 1000, 2),
                "min_ms": round(min(measurements) * 1000, 2),
                "max_ms": round(max(measurements) * 1000, 2),
            }
            log_func(
                f"{name}: count={count}, avg={report[name]['avg_ms']:.2f}ms, "
                f"max={report[name]['max_ms']:.2f}ms"
            )

        return report

    def clear(self) -> None:
        """Clear all measurements."""
        with self._lock:
            self._measurements.clear()


_global_tracker = PerformanceTracker()


def get_tracker() -> PerformanceTracker:
    """Get the global performance tracker."""
    return _global_tracker


def _finish(name: str, start_time: float, log_func: Callable) -> None:
    elapsed = time.perf_counter() - start_time
    _global_tracker.record(name, elapsed)
    log_func(f"⏱️  {name} took {elapsed*1000:.2f}ms")


def timed(name: Optional[str] = None, log_level: str = "INFO"):
    """
    Decorator to time a sync or async function.

    Usage:
        @timed("ExH: submit video")
        def submit_video(...):
            ...

    Args:
        name: Name for the measurement (defaults to function name)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    def decorator(func: Callable) -> Callable:
        timer_name = name or func.__name__
        log_func = getattr(logger, log_level.lower())

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _finish(timer_name, start_time, log_func)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                _finish(timer_name, start_time, log_func)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@contextmanager
def timer_context(name: str, log_level: str = "INFO"):
    """
    Context manager to time a code block.

    Usage:
        with timer_context("Media: save result"):
            ...
    """
    log_func = getattr(logger, log_level.lower())
    start_time = time.perf_counter()
    try:
        yield
    finally:
        _finish(name, start_time, log_func)
