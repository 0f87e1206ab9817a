"""Lightweight wall-clock timing.

Provides:
    - timer(): Context manager for wall-clock timing with optional sink

Used to measure:
    - Codec encode/decode
    - Rasterization of large polygons
    - Glyph rasterization on cache misses

No heavy dependencies (no cProfile overhead in draw loops). Without a sink,
timings go to this module's logger at DEBUG, so they cost nothing unless the
host enables debug logging.
"""

import logging
import time
from contextlib import contextmanager
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name (for logging/display)
    sink : Optional[Callable[[str, float], None]]
        Optional callback(name, elapsed_seconds). If None, logs at DEBUG.

    Examples
    --------
    >>> timings = {}
    >>> with timer("encode_png", sink=timings.__setitem__):
    ...     data = buffer.to_bytes()
    >>> "encode_png" in timings
    True
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            logger.debug(f"{name}: {elapsed * 1000.0:.2f} ms")
