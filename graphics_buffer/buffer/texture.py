"""Texture export: one-shot snapshot of a buffer into a host texture.

The render buffer never depends on a windowing or GPU toolkit directly.
Hosts implement TextureContext; the package ships TorchTextureContext,
which produces torch tensors on any torch device (CPU, CUDA, MPS).

Snapshot semantics:
    create_texture() copies the pixels. Later buffer mutations are not
    reflected; re-export to refresh.

torch is an optional dependency (the `texture` extra) and is imported only
when a TorchTextureContext is constructed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np

from graphics_buffer.buffer.errors import SizeMismatchError, TextureError

logger = logging.getLogger(__name__)

TEXTURE_DTYPES = ("uint8", "float32")


@dataclass(frozen=True)
class TextureSettings:
    """How pixels are laid out in the exported texture.

    Attributes
    ----------
    dtype : str
        "uint8" → (H, W, 4) bytes; "float32" → (4, H, W) in [0, 1]
    flip_y : bool
        Store rows bottom-up (OpenGL texture convention)
    """
    dtype: str = "uint8"
    flip_y: bool = False

    def __post_init__(self):
        if self.dtype not in TEXTURE_DTYPES:
            raise ValueError(f"dtype must be one of {TEXTURE_DTYPES}, got {self.dtype!r}")


class TextureContext(ABC):
    """Factory for host textures."""

    @abstractmethod
    def create_texture(
        self,
        width: int,
        height: int,
        rgba: Union[bytes, np.ndarray],
        settings: Optional[TextureSettings] = None
    ) -> Any:
        """Create a texture from row-major RGBA8 pixels.

        Raises
        ------
        SizeMismatchError
            If len(rgba) != width * height * 4
        TextureError
            If the host fails to create the texture
        """


def rgba_snapshot(width: int, height: int, rgba: Union[bytes, np.ndarray]) -> np.ndarray:
    """Validate raw RGBA8 pixels and return an owned (H, W, 4) copy."""
    flat = np.frombuffer(rgba, dtype=np.uint8) if isinstance(rgba, (bytes, bytearray, memoryview)) \
        else np.asarray(rgba, dtype=np.uint8).reshape(-1)
    if flat.size != width * height * 4:
        raise SizeMismatchError(int(flat.size), width, height)
    return flat.reshape(height, width, 4).copy()


@dataclass
class TorchTexture:
    """Texture backed by a torch tensor.

    Attributes
    ----------
    tensor : torch.Tensor
        uint8 (H, W, 4) or float32 (4, H, W), per settings
    width, height : int
        Pixel size
    settings : TextureSettings
        Layout used at export
    """
    tensor: Any
    width: int
    height: int
    settings: TextureSettings

    @property
    def device(self):
        return self.tensor.device

    def get_size(self):
        return self.width, self.height


class TorchTextureContext(TextureContext):
    """Creates TorchTexture snapshots on a torch device.

    Parameters
    ----------
    device : str or torch.device
        Target device, default "cpu"

    Raises
    ------
    TextureError
        If torch is not installed or the device is invalid
    """

    def __init__(self, device="cpu"):
        try:
            import torch
        except ImportError as e:
            raise TextureError("Texture export requires torch (pip install graphics-buffer[texture])") from e
        self._torch = torch
        try:
            self.device = torch.device(device)
        except (RuntimeError, TypeError) as e:
            raise TextureError(f"Invalid torch device {device!r}: {e}") from e

    def create_texture(
        self,
        width: int,
        height: int,
        rgba: Union[bytes, np.ndarray],
        settings: Optional[TextureSettings] = None
    ) -> TorchTexture:
        settings = settings or TextureSettings()
        pixels = rgba_snapshot(width, height, rgba)
        if settings.flip_y:
            pixels = np.ascontiguousarray(pixels[::-1])

        torch = self._torch
        try:
            tensor = torch.from_numpy(pixels)
            if settings.dtype == "float32":
                tensor = tensor.permute(2, 0, 1).to(torch.float32).div_(255.0).contiguous()
            tensor = tensor.to(self.device)
        except RuntimeError as e:
            raise TextureError(f"Failed to create {width}x{height} texture on {self.device}: {e}") from e

        logger.debug(f"Exported {width}x{height} texture ({settings.dtype}) to {self.device}")
        return TorchTexture(tensor=tensor, width=width, height=height, settings=settings)
