"""Tests for transformed image blits.

Covers:
    - Identity / translated / scaled copies (nearest sampling)
    - Tinting and transparent texels
    - src_rect cropping and degenerate inputs
    - Bilinear sampling (OpenCV remap) in the interior, and past the
      remap size limit (tiled destination, huge source)
    - Accepted source types (PixelStore, PIL, uint8/float ndarray)

Run:
    pytest tests/test_blitter.py -v
"""

import cv2
import numpy as np
import pytest
from PIL import Image

from graphics_buffer.buffer.blitter import ImageBlitter, bilinear_gather, image_to_rgba8
from graphics_buffer.buffer.compositor import Compositor
from graphics_buffer.buffer.pixel_store import PixelStore
from graphics_buffer.buffer.render_buffer import RenderBuffer
from graphics_buffer.utils.geometry import Transform
from graphics_buffer.utils.validators import RenderConfigV1


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def blitter():
    return ImageBlitter(Compositor())


@pytest.fixture
def store():
    """16×16 transparent store."""
    return PixelStore(16, 16)


@pytest.fixture
def opaque_src():
    """4×3 opaque source with distinct texels."""
    rng = np.random.default_rng(7)
    rgba = rng.integers(0, 256, size=(3, 4, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    return rgba


# ============================================================================
# PLACEMENT
# ============================================================================

def test_identity_copies_exactly(blitter, store, opaque_src):
    touched = blitter.blit(store, opaque_src)
    assert touched == 12
    np.testing.assert_array_equal(store.data[0:3, 0:4], opaque_src)
    assert not store.data[3:].any()
    assert not store.data[:, 4:].any()


def test_dest_rect_translation(blitter, store, opaque_src):
    blitter.blit(store, opaque_src, dest_rect=[5, 6, 4, 3])
    np.testing.assert_array_equal(store.data[6:9, 5:9], opaque_src)
    assert store.data[0:6].sum() == 0


def test_transform_translation(blitter, store, opaque_src):
    blitter.blit(store, opaque_src, transform=Transform.translation(2, 3))
    np.testing.assert_array_equal(store.data[3:6, 2:6], opaque_src)


def test_half_pixel_offset_samples_at_centres(blitter, store, opaque_src):
    """Pixel centres x+0.5 map to u = x, so a +0.5 shift lands on the same texels."""
    blitter.blit(store, opaque_src, dest_rect=[0.5, 0, 4, 3])
    np.testing.assert_array_equal(store.data[0:3, 0:4], opaque_src)
    assert not store.data[:, 4].any()


def test_nearest_upscale(blitter, store, opaque_src):
    blitter.blit(store, opaque_src, dest_rect=[0, 0, 8, 6])
    expected = np.repeat(np.repeat(opaque_src, 2, axis=0), 2, axis=1)
    np.testing.assert_array_equal(store.data[0:6, 0:8], expected)


def test_partially_outside_is_clipped(blitter, store, opaque_src):
    touched = blitter.blit(store, opaque_src, dest_rect=[14, -1, 4, 3])
    assert touched == 2 * 2
    np.testing.assert_array_equal(store.data[0:2, 14:16], opaque_src[1:3, 0:2])


def test_fully_outside_draws_nothing(blitter, store, opaque_src):
    assert blitter.blit(store, opaque_src, dest_rect=[40, 40, 4, 3]) == 0
    assert not store.data.any()


# ============================================================================
# TINT & ALPHA
# ============================================================================

def test_tint_multiplies_texels(blitter, store):
    white = np.full((2, 2, 4), 255, dtype=np.uint8)
    blitter.blit(store, white, color=[0.2, 0.4, 1.0, 1.0])
    assert store.get_rgba8(1, 1) == (51, 102, 255, 255)


def test_transparent_tint_is_noop(blitter, store, opaque_src):
    store.clear([0.1, 0.2, 0.3, 1.0])
    before = store.pixels
    assert blitter.blit(store, opaque_src, color=[1, 1, 1, 0]) == 0
    assert store.pixels == before


def test_transparent_texels_leave_destination(blitter, store, opaque_src):
    store.clear([0.1, 0.2, 0.3, 1.0])
    before = store.data.copy()
    src = opaque_src.copy()
    src[:, :2, 3] = 0
    blitter.blit(store, src)
    np.testing.assert_array_equal(store.data[0:3, 0:2], before[0:3, 0:2])
    np.testing.assert_array_equal(store.data[0:3, 2:4], src[:, 2:4])


# ============================================================================
# DEGENERATE INPUT
# ============================================================================

def test_singular_transform_draws_nothing(blitter, store, opaque_src):
    assert blitter.blit(store, opaque_src, transform=Transform.scaling(0.0, 1.0)) == 0
    assert blitter.blit(store, opaque_src, dest_rect=[0, 0, 0, 3]) == 0
    assert not store.data.any()


def test_src_rect_crop(blitter, store):
    src = np.arange(4 * 4 * 4, dtype=np.uint8).reshape(4, 4, 4)
    src[..., 3] = 255
    blitter.blit(store, src, src_rect=[1, 1, 2, 2])
    np.testing.assert_array_equal(store.data[0:2, 0:2], src[1:3, 1:3])
    assert not store.data[2:].any()


def test_src_rect_outside_source(blitter, store, opaque_src):
    assert blitter.blit(store, opaque_src, src_rect=[10, 10, 2, 2]) == 0


def test_empty_store(blitter, opaque_src):
    assert blitter.blit(PixelStore(0, 5), opaque_src) == 0


def test_bad_sampling_rejected(blitter, store, opaque_src):
    with pytest.raises(ValueError, match="sampling"):
        blitter.blit(store, opaque_src, sampling="cubic")
    with pytest.raises(ValueError, match="sampling"):
        ImageBlitter(Compositor(), sampling="cubic")


# ============================================================================
# BILINEAR
# ============================================================================

def test_bilinear_interpolates_interior(blitter, store):
    src = np.zeros((4, 4, 4), dtype=np.uint8)
    src[..., 0] = np.array([0, 80, 160, 240], dtype=np.uint8)
    src[..., 3] = 255
    blitter.blit(store, src, dest_rect=[0, 0, 8, 8], sampling="bilinear")

    # Device centre x + 0.5 → u = (x + 0.5) / 2 → texel-centre coordinate u − 0.5
    for x, expected in ((2, 60), (3, 100), (4, 140), (5, 180)):
        r, g, b, a = store.get_rgba8(x, 3)
        assert abs(r - expected) <= 1
        assert a == 255


def test_bilinear_uniform_image_is_exact_inside(store):
    blitter = ImageBlitter(Compositor(), sampling="bilinear")
    src = np.empty((6, 6, 4), dtype=np.uint8)
    src[...] = (51, 102, 153, 255)
    blitter.blit(store, src, dest_rect=[0, 0, 12, 12])
    for y in range(2, 10):
        for x in range(2, 10):
            assert store.get_rgba8(x, y) == (51, 102, 153, 255)


def test_bilinear_wide_destination():
    # Wider than cv2.remap's SHRT_MAX map limit
    config = RenderConfigV1(blitter={"sampling": "bilinear"})
    buf = RenderBuffer(40000, 2, config)
    buf.draw_image(np.full((2, 2, 4), 255, dtype=np.uint8), dest_rect=[0, 0, 40000, 2])
    for x in (20479, 20480, 25000):
        assert buf.store.get_rgba8(x, 0) == (255, 255, 255, 255)
        assert buf.store.get_rgba8(x, 1) == (255, 255, 255, 255)
    assert 0 < buf.store.get_rgba8(0, 0)[3] < 255


def test_bilinear_tall_source(store):
    blitter = ImageBlitter(Compositor(), sampling="bilinear")
    src = np.zeros((80000, 4, 4), dtype=np.uint8)
    src[..., 0] = np.array([0, 80, 160, 240], dtype=np.uint8)
    src[..., 3] = 255
    blitter.blit(store, src, dest_rect=[0, 0, 4, 4])
    for y in range(4):
        assert [store.get_rgba8(x, y) for x in range(4)] == [
            (0, 0, 0, 255), (80, 0, 0, 255), (160, 0, 0, 255), (240, 0, 0, 255)
        ]
    assert store.get_rgba8(4, 0) == (0, 0, 0, 0)


def test_bilinear_gather_matches_remap():
    yy, xx = np.mgrid[0:9, 0:7].astype(np.float32)
    image = np.stack([xx / 20.0, yy / 20.0, (xx + yy) / 40.0, np.ones_like(xx)], axis=-1)
    rng = np.random.default_rng(5)
    map_x = rng.uniform(-1.5, 7.5, size=(5, 6)).astype(np.float32)
    map_y = rng.uniform(-1.5, 9.5, size=(5, 6)).astype(np.float32)

    expected = cv2.remap(
        image, map_x, map_y,
        interpolation=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0.0, 0.0, 0.0, 0.0)
    )
    np.testing.assert_allclose(bilinear_gather(image, map_x, map_y), expected, atol=0.02)


# ============================================================================
# SOURCE TYPES
# ============================================================================

def test_pixel_store_source(blitter, store):
    src = PixelStore(2, 2)
    src.clear([0.0, 1.0, 0.0, 1.0])
    blitter.blit(store, src)
    assert store.get_rgba8(1, 1) == (0, 255, 0, 255)


def test_pil_source(blitter, store):
    img = Image.new('RGB', (3, 2), (10, 20, 30))
    blitter.blit(store, img)
    assert store.get_rgba8(2, 1) == (10, 20, 30, 255)
    assert store.get_rgba8(3, 1) == (0, 0, 0, 0)


def test_image_to_rgba8_variants():
    rgb = np.full((2, 3, 3), 7, dtype=np.uint8)
    out = image_to_rgba8(rgb)
    assert out.shape == (2, 3, 4)
    assert np.all(out[..., 3] == 255)

    flt = np.full((2, 2, 4), 0.2)
    np.testing.assert_array_equal(image_to_rgba8(flt), np.full((2, 2, 4), 51, dtype=np.uint8))

    with pytest.raises(ValueError, match="shape"):
        image_to_rgba8(np.zeros((4, 4), dtype=np.uint8))
    with pytest.raises(TypeError, match="uint8"):
        image_to_rgba8(np.zeros((4, 4, 4), dtype=np.int32))
