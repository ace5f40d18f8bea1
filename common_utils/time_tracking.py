"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import functools
import logging
import time


logger = logging.getLogger(__name__)


def timeit(func):
    """Decorator logging the wall time of every call under the logger of the decorated function's module."""
    func_logger = logging.getLogger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            func_logger.debug(f"[TIMEIT] {func.__qualname__} executed in {time.perf_counter() - start:.4f} seconds")
    return wrapper


class Stopwatch:
    """
    Context manager measuring a block, e.g. the solver call of one planning cycle.

        with Stopwatch() as sw:
            solver.solve(problem)
        sw.elapsed
    """
    def __init__(self):
        self.start = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.elapsed = time.perf_counter() - self.start
        return False
