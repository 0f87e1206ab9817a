#!/usr/bin/env python3
"""Render the example scenes to lossless image files.

Scenes:
    circles  three overlapping translucent ellipses (red, blue, green)
    tiled    a source image tiled 2×2, each tile tinted a different color
    text     "Oh boy!" in white on black (needs --font)

Usage:
    python scripts/render_examples.py --output_dir outputs/examples
    python scripts/render_examples.py --scene tiled --image photo.png
    python scripts/render_examples.py --scene text --font fonts/Roboto-Regular.ttf
    python scripts/render_examples.py --config configs/render.v1.yaml --workers 4

Outputs:
    - circles.png / tiled.png / text.png in --output_dir
    - one log line per scene with the output digest (SHA-256)

Exit status:
    0 all scenes rendered, 1 a scene failed, 2 unusable config or --workers
"""

import argparse
import logging
import sys
from typing import Optional

import numpy as np

from graphics_buffer.buffer import RenderBuffer, TrueTypeFont
from graphics_buffer.buffer.errors import GraphicsBufferError
from graphics_buffer.utils import fs, logging_config
from graphics_buffer.utils.geometry import Transform
from graphics_buffer.utils.validators import (
    RenderConfigV1,
    default_render_config,
    load_render_config,
)

logger = logging.getLogger(__name__)

SCENES = ('circles', 'tiled', 'text')


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render graphics_buffer example scenes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        '--scene',
        choices=SCENES + ('all',),
        default='all',
        help='Scene to render, default: all'
    )
    parser.add_argument(
        '--output_dir',
        type=str,
        default='outputs/examples',
        help='Output directory, default: outputs/examples'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='render.v1.yaml path (built-in defaults if omitted)'
    )
    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help='Override compositor.workers'
    )
    parser.add_argument(
        '--image',
        type=str,
        default=None,
        help='Source image for the tiled scene (generated gradient if omitted)'
    )
    parser.add_argument(
        '--font',
        type=str,
        default=None,
        help='TrueType font for the text scene'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )
    return parser.parse_args(argv)


def render_circles(config: RenderConfigV1) -> RenderBuffer:
    """Big red circle, small blue top-left, small green bottom-right, all 70% alpha."""
    buffer = RenderBuffer(100, 100, config)
    buffer.clear([0.0, 0.0, 0.0, 0.0])
    buffer.ellipse([0.0, 0.0, 100.0, 100.0], [1.0, 0.0, 0.0, 0.7])
    buffer.ellipse([0.0, 0.0, 50.0, 50.0], [0.0, 0.0, 1.0, 0.7])
    buffer.ellipse([50.0, 50.0, 50.0, 50.0], [0.0, 1.0, 0.0, 0.7])
    return buffer


def gradient_image(width: int = 64, height: int = 48) -> np.ndarray:
    """Opaque RGBA8 test image: horizontal/vertical ramps with a checker."""
    xs = np.linspace(0.0, 1.0, width)[np.newaxis, :]
    ys = np.linspace(0.0, 1.0, height)[:, np.newaxis]
    checker = ((np.arange(height)[:, None] // 8 + np.arange(width)[None, :] // 8) % 2).astype(np.float64)
    rgba = np.empty((height, width, 4), dtype=np.float64)
    rgba[..., 0] = np.broadcast_to(xs, (height, width))
    rgba[..., 1] = np.broadcast_to(ys, (height, width))
    rgba[..., 2] = 0.25 + 0.5 * checker
    rgba[..., 3] = 1.0
    return np.rint(rgba * 255.0).astype(np.uint8)


def render_tiled(config: RenderConfigV1, image_path: Optional[str] = None) -> RenderBuffer:
    """Tile a source 2×2 with red, yellow, green and blue tints."""
    source = RenderBuffer.load(image_path, config) if image_path else \
        RenderBuffer.from_raw(64, 48, gradient_image(64, 48), config)
    w, h = source.width, source.height

    buffer = RenderBuffer(w * 2, h * 2, config)
    buffer.clear([0.0, 0.0, 0.0, 1.0])
    tiles = [
        ([1.0, 0.2, 0.2, 1.0], (0.0, 0.0)),
        ([1.0, 1.0, 0.0, 1.0], (float(w), 0.0)),
        ([0.0, 1.0, 0.0, 1.0], (0.0, float(h))),
        ([0.2, 0.2, 1.0, 1.0], (float(w), float(h))),
    ]
    for color, (x, y) in tiles:
        buffer.draw_image(source, transform=Transform.identity().trans(x, y), color=color)
    return buffer


def render_text(config: RenderConfigV1, font_path: str) -> RenderBuffer:
    """White "Oh boy!" at size 30 with the pen at (10, 30)."""
    buffer = RenderBuffer(100, 40, config)
    buffer.clear([0.0, 0.0, 0.0, 1.0])
    glyphs = buffer.glyph_cache(TrueTypeFont(font_path))
    buffer.draw_text(
        glyphs, "Oh boy!", 30, (0.0, 0.0), [1.0, 1.0, 1.0, 1.0],
        transform=Transform.identity().trans(10.0, 30.0)
    )
    logger.info(f"Glyph cache: {len(glyphs)} glyphs, {glyphs.hits} hits, {glyphs.misses} misses")
    return buffer


def main(argv=None) -> int:
    args = parse_args(argv)
    logging_config.setup_logging(
        log_level='DEBUG' if args.verbose else 'INFO',
        context={'app': 'render_examples'}
    )
    logging_config.install_excepthook()

    try:
        config = load_render_config(args.config) if args.config else default_render_config()
        if args.workers is not None:
            config.compositor.workers = args.workers
    except (ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    out_dir = fs.ensure_dir(args.output_dir)
    scenes = SCENES if args.scene == 'all' else (args.scene,)

    failures = 0
    for scene in scenes:
        try:
            if scene == 'circles':
                buffer = render_circles(config)
            elif scene == 'tiled':
                buffer = render_tiled(config, args.image)
            else:
                if args.font is None:
                    logger.warning("Skipping text scene: --font not given")
                    continue
                buffer = render_text(config, args.font)
            path = buffer.save(out_dir / f"{scene}.png")
            logger.info(f"{scene}: {path} sha256={buffer.digest()[:16]}")
        except (GraphicsBufferError, OSError) as e:
            logger.error(f"{scene} failed: {e}")
            failures += 1

    return 1 if failures else 0


if __name__ == '__main__':
    sys.exit(main())
