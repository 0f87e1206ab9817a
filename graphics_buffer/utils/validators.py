"""YAML schema validation and config loading.

Centralized validation for the render configuration using pydantic:
    - Render schema (render.v1.yaml): rasterizer, compositor, blitter,
      glyph, line, ellipse and codec settings

Configs are validated once at load time so a bad value fails fast with the
offending key and the allowed range instead of surfacing mid-draw.

Usage:
    from graphics_buffer.utils import validators

    cfg = validators.load_render_config("configs/render.v1.yaml")
    cfg = validators.default_render_config()
"""

from pathlib import Path
from typing import Any, Dict, Union

from pydantic import BaseModel, Field, field_validator


FILL_RULES = ("nonzero", "evenodd")
LINE_CAPS = ("butt", "square", "round")
SAMPLING_MODES = ("nearest", "bilinear")
LOSSLESS_FORMATS = ("PNG", "TIFF")


# ============================================================================
# RENDER CONFIG (render.v1.yaml)
# ============================================================================

class RasterizerConfig(BaseModel):
    """Scanline rasterizer settings.

    subsamples is the number of sub-scanlines per pixel row. Horizontal
    coverage is exact, so this only controls vertical anti-aliasing.
    """
    model_config = {'validate_assignment': True}

    antialias: bool = Field(default=True)
    subsamples: int = Field(default=16, ge=1, le=256)
    default_fill_rule: str = Field(default="nonzero")

    @field_validator('subsamples')
    @classmethod
    def validate_power_of_two(cls, v: int) -> int:
        # Keeps 1/subsamples exact in binary floating point.
        if v & (v - 1):
            raise ValueError(f"subsamples must be a power of two, got {v}")
        return v

    @field_validator('default_fill_rule')
    @classmethod
    def validate_fill_rule(cls, v: str) -> str:
        if v not in FILL_RULES:
            raise ValueError(f"default_fill_rule must be one of {FILL_RULES}, got {v}")
        return v


class CompositorConfig(BaseModel):
    """Row-band parallelism for compositing (1 = sequential)."""
    model_config = {'validate_assignment': True}

    workers: int = Field(default=1, ge=1, le=64)
    min_rows_per_band: int = Field(default=32, ge=1)


class BlitterConfig(BaseModel):
    """Image sampling mode."""
    model_config = {'validate_assignment': True}

    sampling: str = Field(default="nearest")

    @field_validator('sampling')
    @classmethod
    def validate_sampling(cls, v: str) -> str:
        if v not in SAMPLING_MODES:
            raise ValueError(f"sampling must be one of {SAMPLING_MODES}, got {v}")
        return v


class GlyphConfig(BaseModel):
    """Glyph cache settings (RenderBuffer.glyph_cache)."""
    model_config = {'validate_assignment': True}

    fallback_codepoint: int = Field(default=0xFFFD, ge=0, le=0x10FFFF)


class LineConfig(BaseModel):
    """Line drawer defaults."""
    model_config = {'validate_assignment': True}

    default_cap: str = Field(default="butt")

    @field_validator('default_cap')
    @classmethod
    def validate_cap(cls, v: str) -> str:
        if v not in LINE_CAPS:
            raise ValueError(f"default_cap must be one of {LINE_CAPS}, got {v}")
        return v


class EllipseConfig(BaseModel):
    """Polygon resolution used when approximating ellipses."""
    model_config = {'validate_assignment': True}

    resolution: int = Field(default=128, ge=3, le=4096)


class CodecConfig(BaseModel):
    """Lossless raster codec settings."""
    model_config = {'validate_assignment': True}

    default_format: str = Field(default="PNG")
    compress_level: int = Field(default=6, ge=0, le=9)

    @field_validator('default_format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        v = v.upper()
        if v not in LOSSLESS_FORMATS:
            raise ValueError(f"default_format must be one of {LOSSLESS_FORMATS}, got {v}")
        return v


class RenderConfigV1(BaseModel):
    """Render buffer configuration (render.v1.yaml schema)."""
    schema_version: str = Field(default="render.v1", alias="schema")
    rasterizer: RasterizerConfig = Field(default_factory=RasterizerConfig)
    compositor: CompositorConfig = Field(default_factory=CompositorConfig)
    blitter: BlitterConfig = Field(default_factory=BlitterConfig)
    glyphs: GlyphConfig = Field(default_factory=GlyphConfig)
    line: LineConfig = Field(default_factory=LineConfig)
    ellipse: EllipseConfig = Field(default_factory=EllipseConfig)
    codec: CodecConfig = Field(default_factory=CodecConfig)

    model_config = {'populate_by_name': True, 'validate_assignment': True}

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "render.v1":
            raise ValueError(f"schema must be 'render.v1', got {v}")
        return v


def default_render_config() -> RenderConfigV1:
    """Return the built-in defaults (identical to configs/render.v1.yaml)."""
    return RenderConfigV1()


def load_render_config(path: Union[str, Path]) -> RenderConfigV1:
    """Load and validate render config from YAML.

    Parameters
    ----------
    path : str or Path
        Path to render.v1.yaml file

    Returns
    -------
    RenderConfigV1
        Validated config model

    Raises
    ------
    FileNotFoundError
        If file does not exist
    ValueError
        If validation fails (with the offending key in the message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Render config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return RenderConfigV1(**data)
    except Exception as e:
        raise ValueError(f"Render config validation failed at {path}: {e}") from e


def validate_fill_rule(fill_rule: str) -> str:
    """Normalize and check a fill rule name ("even-odd" is accepted)."""
    rule = fill_rule.lower().replace("-", "").replace("_", "")
    if rule not in FILL_RULES:
        raise ValueError(f"fill_rule must be one of {FILL_RULES}, got {fill_rule!r}")
    return rule


def validate_line_cap(cap: str) -> str:
    """Check a line cap name."""
    if cap not in LINE_CAPS:
        raise ValueError(f"cap must be one of {LINE_CAPS}, got {cap!r}")
    return cap


def flatten_config(cfg: Union[Dict, BaseModel], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested config into dotted keys (for logging a run's settings).

    Examples
    --------
    >>> flatten_config(default_render_config())['rasterizer.subsamples']
    16
    """
    if isinstance(cfg, BaseModel):
        cfg = cfg.model_dump()

    flat = {}
    for key, value in cfg.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(flatten_config(value, prefix=f"{full_key}."))
        else:
            flat[full_key] = value
    return flat
