"""Tests for watermark placement geometry."""
import pytest

from listing_desk.images.placement import (
    GAP,
    MARGIN,
    Anchor,
    WatermarkMode,
    compute_layout,
    font_size,
    logo_size,
    parse_anchor,
    parse_mode,
)


class TestElementSizes:
    def test_logo_height_is_fifteen_percent_of_short_side(self):
        assert logo_size((1000, 600), (200, 100)) == (180, 90)

    def test_logo_scale_multiplies(self):
        assert logo_size((1000, 600), (200, 100), scale=2.0) == (360, 180)

    def test_font_size_has_floor(self):
        assert font_size(200) == 14
        assert font_size(1200) == 30
        assert font_size(1200, scale=0.5) == 15


class TestComputeLayout:
    def test_bottom_right_keeps_margin(self):
        layout = compute_layout((800, 600), (100, 50), (160, 20), Anchor.BOTTOM_RIGHT)
        assert layout.block.right == 800 - MARGIN
        assert layout.block.bottom == 600 - MARGIN

    def test_gap_only_between_two_elements(self):
        both = compute_layout((800, 600), (100, 50), (160, 20))
        assert both.block.height == 50 + GAP + 20
        logo_only = compute_layout((800, 600), (100, 50), (0, 0))
        assert logo_only.block.height == 50

    def test_elements_centered_in_block(self):
        layout = compute_layout((800, 600), (100, 50), (160, 20), Anchor.TOP_LEFT)
        assert layout.block.x == MARGIN and layout.block.y == MARGIN
        assert layout.logo.x == MARGIN + 30
        assert layout.text.x == MARGIN
        assert layout.text.y == layout.logo.bottom + GAP

    def test_center_anchor(self):
        layout = compute_layout((800, 600), (100, 50), (0, 0), Anchor.CENTER)
        assert (layout.block.x, layout.block.y) == (350, 275)

    def test_position_overrides_anchor(self):
        layout = compute_layout((800, 600), (100, 50), (0, 0), Anchor.BOTTOM_RIGHT, position=(0.0, 0.0))
        assert (layout.block.x, layout.block.y) == (0, 0)

    def test_position_is_clamped(self):
        layout = compute_layout((800, 600), (100, 50), (0, 0), position=(1.5, -1))
        assert (layout.block.x, layout.block.y) == (700, 0)


class TestParsing:
    def test_parse_mode_accepts_underscores(self):
        assert parse_mode("CONTACT_ONLY") == WatermarkMode.CONTACT_ONLY
        assert WatermarkMode.LOGO_ONLY.draws_logo and not WatermarkMode.LOGO_ONLY.draws_text

    def test_parse_anchor_rejects_unknown(self):
        with pytest.raises(ValueError):
            parse_anchor("middle")
