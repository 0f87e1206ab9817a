"""SHA-256 hashing for buffer content and file provenance.

Provides:
    - sha256_bytes(): Hash raw bytes
    - sha256_array(): Hash an ndarray's shape, dtype and values
    - sha256_file(): Hash file contents (chunked)

Used for:
    - RenderBuffer.digest(): compare render results without holding both buffers
    - Checking parallel vs sequential compositing for byte-identical output
    - Verifying a saved screenshot matches the in-memory buffer

Results are hex strings (64 chars).

Note: Module named `hashing.py` to avoid shadowing builtin `hash()`.
"""

import hashlib
from pathlib import Path
from typing import Union

import numpy as np


def sha256_bytes(data: Union[bytes, bytearray, memoryview]) -> str:
    """Compute SHA-256 hex digest of a bytes-like object."""
    return hashlib.sha256(bytes(data)).hexdigest()


def sha256_array(arr: np.ndarray) -> str:
    """Compute SHA-256 of an array's shape, dtype and C-ordered values.

    Two arrays hash equal iff they have the same shape, dtype and bytes, so a
    (2, 8, 4) and a (4, 4, 4) buffer with identical bytes are distinguished.

    Examples
    --------
    >>> a = np.zeros((2, 2, 4), dtype=np.uint8)
    >>> sha256_array(a) == sha256_array(a.copy())
    True
    """
    arr = np.ascontiguousarray(arr)
    h = hashlib.sha256()
    h.update(str(arr.shape).encode('ascii'))
    h.update(str(arr.dtype).encode('ascii'))
    h.update(arr.tobytes())
    return h.hexdigest()


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents.

    Parameters
    ----------
    path : Union[str, Path]
        File path
    chunk_size : int
        Read chunk size in bytes, default 1 MB

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    h = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            h.update(chunk)
    return h.hexdigest()
