"""
Tests for coordinates - normalized / pixel / page-point conversions.
"""

import pytest

from coordinates import (
    A4_HEIGHT,
    A4_WIDTH,
    NormalizedCoordinate,
    PagePointCoordinate,
    PixelCoordinate,
    calculate_scale,
    clamp,
    is_valid_normalized,
    legacy_pixels_to_page_points,
    normalized_to_pixels,
    page_size_for,
    pixels_to_normalized,
    to_normalized,
    to_page_points,
    validate_page_size,
)

W, H = A4_WIDTH, A4_HEIGHT


# =============================================================================
# Tests: to_page_points
# =============================================================================

class TestToPagePoints:
    def test_top_left_maps_to_top_of_page(self):
        assert to_page_points(NormalizedCoordinate(0, 0), W, H) == (0.0, 841.89)

    def test_bottom_right_maps_to_page_origin_corner(self):
        assert to_page_points(NormalizedCoordinate(1, 1), W, H) == (W, 0.0)

    def test_center_maps_to_half_dimensions(self):
        point = to_page_points(NormalizedCoordinate(0.5, 0.5), W, H)
        assert point.x_points == W / 2
        assert point.y_points == H / 2

    def test_other_corners(self):
        assert to_page_points(NormalizedCoordinate(1, 0), W, H) == (W, H)
        assert to_page_points(NormalizedCoordinate(0, 1), W, H) == (0.0, 0.0)

    def test_out_of_range_input_is_clamped(self):
        clamped = to_page_points(NormalizedCoordinate(1.5, -0.5), W, H)
        assert clamped == to_page_points(NormalizedCoordinate(1, 0), W, H)

    def test_letter_page(self):
        point = to_page_points(NormalizedCoordinate(0.5, 0.5), 612, 792)
        assert point == PagePointCoordinate(306.0, 396.0)

    def test_negative_dimension_raises(self):
        with pytest.raises(ValueError):
            to_page_points(NormalizedCoordinate(0.5, 0.5), -10, H)


# =============================================================================
# Tests: to_normalized / round trip
# =============================================================================

class TestToNormalized:
    def test_round_trip_across_the_page(self):
        steps = [i / 20 for i in range(21)]
        for x in steps:
            for y in steps:
                back = to_normalized(to_page_points(NormalizedCoordinate(x, y), W, H), W, H)
                assert back.x_pct == pytest.approx(x, abs=1e-12)
                assert back.y_pct == pytest.approx(y, abs=1e-12)

    def test_reverse_path_is_not_clamped(self):
        back = to_normalized(PagePointCoordinate(2 * W, -H), W, H)
        assert back == pytest.approx((2.0, 2.0))

    def test_zero_dimension_raises(self):
        with pytest.raises(ValueError):
            to_normalized(PagePointCoordinate(1, 1), 0, H)


# =============================================================================
# Tests: pixels, clamping, helpers
# =============================================================================

class TestPixelConversions:
    def test_normalized_to_pixels(self):
        assert normalized_to_pixels(NormalizedCoordinate(0.25, 0.5), 800, 600) == (200.0, 300.0)

    def test_pixels_to_normalized(self):
        assert pixels_to_normalized(PixelCoordinate(200, 300), 800, 600) == (0.25, 0.5)

    def test_zero_container_returns_origin(self):
        assert pixels_to_normalized(PixelCoordinate(10, 10), 0, 600) == (0.0, 0.0)
        assert normalized_to_pixels(NormalizedCoordinate(0.5, 0.5), 800, 0) == (0.0, 0.0)

    def test_clamp_each_axis_independently(self):
        assert clamp(NormalizedCoordinate(-0.2, 0.4)) == (0.0, 0.4)
        assert clamp(NormalizedCoordinate(0.4, 7)) == (0.4, 1.0)

    def test_is_valid_normalized(self):
        assert is_valid_normalized(NormalizedCoordinate(0, 1))
        assert not is_valid_normalized(NormalizedCoordinate(1.01, 0.5))

    def test_legacy_pixels_invert_without_clamp_or_baseline(self):
        assert legacy_pixels_to_page_points(100, 100, 842) == (100.0, 742.0)
        assert legacy_pixels_to_page_points(100, 900, 842) == (100.0, -58.0)

    def test_calculate_scale(self):
        scale_x, scale_y, uniform = calculate_scale(612, 396, 612, 792)
        assert (scale_x, scale_y, uniform) == (1.0, 0.5, 0.5)


class TestPageSizes:
    def test_named_sizes(self):
        assert page_size_for("A4") == (W, H)
        assert page_size_for("letter") == (612.0, 792.0)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            page_size_for("tabloid")

    def test_default_is_a4(self):
        assert validate_page_size(None) == (W, H)

    def test_rejects_non_positive(self):
        with pytest.raises(ValueError):
            validate_page_size((0, 100))
        with pytest.raises(ValueError):
            validate_page_size((100, -1))
