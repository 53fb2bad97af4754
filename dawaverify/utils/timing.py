import time
from contextlib import contextmanager

@contextmanager
def timer():
    """Yields a callable returning the milliseconds elapsed since the block was entered."""
    t0 = time.perf_counter()
    yield lambda: int((time.perf_counter() - t0) * 1000)
