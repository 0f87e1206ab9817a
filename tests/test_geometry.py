"""Test affine transforms, polygon helpers, curve flattening and colors.

Tests for graphics_buffer.utils.geometry and graphics_buffer.utils.color:
    - Transform builders post-multiply (elementary op applies first)
    - Composition, inversion, singular matrices
    - Signed area / bbox / rect corners
    - Bézier flattening endpoints and flatness
    - Color validation and 8-bit quantization

Run:
    pytest tests/test_geometry.py -v
"""

import math

import numpy as np
import pytest

from graphics_buffer.utils import color as color_utils
from graphics_buffer.utils import geometry
from graphics_buffer.utils.geometry import Transform, as_transform


# ============================================================================
# TRANSFORM
# ============================================================================

def test_identity_is_neutral():
    pts = np.array([[1.5, -2.0], [3.0, 4.0]])
    np.testing.assert_array_equal(Transform.identity().apply(pts), pts)
    t = Transform([[2, 0, 1], [0, 3, -1]])
    assert (Transform.identity() @ t) == t
    assert (t @ Transform.identity()) == t


def test_builder_order_scale_then_translate():
    """trans(...).scale(...) scales in local space, then translates."""
    t = Transform.identity().trans(10.0, 0.0).scale(2.0)
    np.testing.assert_allclose(t.apply([[1.0, 1.0]]), [[12.0, 2.0]])


def test_composition_matches_nested_application():
    a = Transform.rotation(0.3).trans(4.0, -1.0)
    b = Transform.scaling(2.0, 0.5).shear(0.2, 0.0)
    p = np.array([[3.0, 7.0]])
    np.testing.assert_allclose((a @ b).apply(p), a.apply(b.apply(p)))


def test_rot_deg_quarter_turn():
    t = Transform.identity().rot_deg(90.0)
    np.testing.assert_allclose(t.apply([[1.0, 0.0]]), [[0.0, 1.0]], atol=1e-12)


def test_invert_roundtrip():
    t = Transform.identity().trans(5.0, 6.0).rot_rad(0.7).scale(3.0, 2.0)
    p = np.array([[1.0, 2.0], [-4.0, 0.5]])
    np.testing.assert_allclose(t.invert().apply(t.apply(p)), p, atol=1e-12)
    assert (t @ t.invert()).allclose(Transform.identity())


def test_singular_invert_raises():
    t = Transform.scaling(0.0, 1.0)
    assert not t.is_invertible()
    with pytest.raises(ValueError, match="not invertible"):
        t.invert()


def test_matrix_forms_accepted():
    m6 = [1, 2, 3, 4, 5, 6]
    m3 = [[1, 2, 3], [4, 5, 6], [0, 0, 1]]
    assert Transform(m6) == Transform(m3) == Transform([[1, 2, 3], [4, 5, 6]])
    with pytest.raises(ValueError, match="2x3"):
        Transform([[1, 2], [3, 4]])


def test_matrix_is_read_only():
    t = Transform.identity()
    with pytest.raises(ValueError):
        t.matrix[0, 0] = 5.0


def test_as_transform():
    assert as_transform(None).is_identity()
    t = Transform.translation(1, 2)
    assert as_transform(t) is t
    assert as_transform([[1, 0, 1], [0, 1, 2]]) == t


def test_apply_shape_validation():
    with pytest.raises(ValueError, match=r"\(\.\.\., 2\)"):
        Transform.identity().apply([[1.0, 2.0, 3.0]])


# ============================================================================
# POLYGONS
# ============================================================================

def test_signed_area_orientation():
    sq = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=float)
    assert geometry.polygon_signed_area(sq) == pytest.approx(1.0)
    assert geometry.polygon_signed_area(sq[::-1]) == pytest.approx(-1.0)
    assert geometry.polygon_signed_area(sq[:2]) == 0.0


def test_polygon_bbox_and_empty():
    poly = np.array([[3.0, -1.0], [5.0, 2.0], [-2.0, 0.0]])
    assert geometry.polygon_bbox(poly) == (-2.0, -1.0, 5.0, 2.0)
    with pytest.raises(ValueError):
        geometry.polygon_bbox(np.zeros((0, 2)))


def test_as_polygon_shapes():
    assert geometry.as_polygon([]).shape == (0, 2)
    with pytest.raises(ValueError):
        geometry.as_polygon([1.0, 2.0, 3.0])


def test_rect_corners_order():
    np.testing.assert_array_equal(
        geometry.rect_corners([1, 2, 3, 4]),
        [[1, 2], [4, 2], [4, 6], [1, 6]]
    )


# ============================================================================
# BÉZIER FLATTENING
# ============================================================================

def test_flatten_cubic_endpoints():
    p = [np.array(v, dtype=float) for v in ([0, 0], [10, 20], [30, 20], [40, 0])]
    poly = geometry.flatten_cubic(*p, max_err=0.05)
    np.testing.assert_allclose(poly[0], p[0])
    np.testing.assert_allclose(poly[-1], p[3])
    assert len(poly) > 4


def test_flatten_cubic_straight_line_is_two_points():
    p = [np.array(v, dtype=float) for v in ([0, 0], [1, 1], [2, 2], [3, 3])]
    assert len(geometry.flatten_cubic(*p)) == 2


def test_flatten_quadratic_stays_close_to_curve():
    p0, p1, p2 = np.array([0.0, 0.0]), np.array([50.0, 100.0]), np.array([100.0, 0.0])
    poly = geometry.flatten_quadratic(p0, p1, p2, max_err=0.1)
    # Peak of this parabola is y = 50 at x = 50
    assert poly[:, 1].max() == pytest.approx(50.0, abs=0.2)
    assert np.all(np.diff(poly[:, 0]) > 0)


def test_arc_points_inclusive():
    pts = geometry.arc_points((0.0, 0.0), 2.0, 0.0, math.pi, 8)
    assert pts.shape == (9, 2)
    np.testing.assert_allclose(pts[0], [2.0, 0.0])
    np.testing.assert_allclose(pts[-1], [-2.0, 0.0], atol=1e-12)


# ============================================================================
# COLORS
# ============================================================================

def test_as_color_validation():
    with pytest.raises(ValueError, match="4 components"):
        color_utils.as_color([1, 2, 3])
    with pytest.raises(ValueError, match="finite"):
        color_utils.as_color([0.0, float('nan'), 0.0, 1.0])
    np.testing.assert_array_equal(color_utils.as_color([2.0, -1.0, 0.5, 1.0]), [1.0, 0.0, 0.5, 1.0])


def test_rgba8_quantization_rounds_to_nearest():
    np.testing.assert_array_equal(
        color_utils.to_rgba8([0.0, 1.0, 0.2, 1 / 255 * 0.6]),
        [0, 255, 51, 1]
    )
    c = np.array([51, 102, 153, 204], dtype=np.uint8)
    np.testing.assert_array_equal(color_utils.to_rgba8(color_utils.from_rgba8(c)), c)


def test_hex_color():
    np.testing.assert_allclose(color_utils.hex_color("#ff0000"), [1, 0, 0, 1])
    np.testing.assert_allclose(color_utils.hex_color("00ff0080"), [0, 1, 0, 128 / 255])
    with pytest.raises(ValueError):
        color_utils.hex_color("#fff")
    with pytest.raises(ValueError):
        color_utils.hex_color("#gggggg")


def test_color_constants_read_only():
    with pytest.raises(ValueError):
        color_utils.WHITE[0] = 0.5


def test_mul_componentwise():
    np.testing.assert_allclose(color_utils.mul([1, 0.5, 0.2, 1], [0.5, 0.5, 1, 0.5]), [0.5, 0.25, 0.2, 0.5])
