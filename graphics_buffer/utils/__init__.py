"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Colors and 8-bit quantization (color)
    - Affine transforms and curve flattening (geometry)
    - Atomic I/O and YAML loading (fs)
    - Content hashing (hashing)
    - Unified logging (logging_config)
    - Wall-clock timing (profiler)

No module in utils/ may import from graphics_buffer.buffer.

Convenience imports:
    from graphics_buffer.utils import fs, color, geometry, validators
    from graphics_buffer.utils.logging_config import setup_logging, get_logger
"""

from . import color
from . import fs
from . import geometry
from . import hashing
from . import logging_config
from . import profiler
from . import validators

from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    'color',
    'fs',
    'geometry',
    'hashing',
    'logging_config',
    'profiler',
    'validators',
    'setup_logging',
    'get_logger',
    'push_context',
]
