"""Atomic filesystem operations for buffer persistence and YAML configs.

Provides:
    - Atomic writes: tmp file → fsync → rename (prevents partial reads)
    - Whole-file reads with OSError normalization
    - YAML loading for render configs
    - Directory creation with exist_ok semantics

A screenshot written by save() must never be observed half-written by a
viewer polling the same path, so every write goes through a temporary file in
the destination directory followed by an atomic rename.

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from graphics_buffer.utils import fs
    fs.atomic_write_bytes("shots/frame_0001.png", png_bytes)
    cfg = fs.load_yaml("configs/render.v1.yaml")
"""

import os
from pathlib import Path
from typing import Any, Dict, Union

import yaml


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory if it doesn't exist, return Path object.

    Parameters
    ----------
    p : Union[str, Path]
        Directory path

    Returns
    -------
    Path
        Path object (guaranteed to exist)
    """
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    OSError
        If the directory cannot be created or the file cannot be written.
        The original error is chained.

    Notes
    -----
    The tmp file lives in the target directory so the rename stays on one
    filesystem. The tmp file is removed on failure.
    """
    path = Path(path)
    tmp_path = path.with_name(path.name + tmp_suffix)

    try:
        ensure_dir(path.parent)
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise OSError(e.errno, f"Failed to write {path} atomically: {e}") from e


def read_bytes(path: Union[str, Path]) -> bytes:
    """Read a whole file.

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    OSError
        For any other read failure
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if path.is_dir():
        raise IsADirectoryError(f"Expected a file, got a directory: {path}")
    with open(path, 'rb') as f:
        return f.read()


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content ({} for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save object as YAML atomically (safe_dump, insertion order kept)."""
    yaml_str = yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True
    )
    atomic_write_bytes(path, yaml_str.encode('utf-8'))
