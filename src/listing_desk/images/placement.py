"""
Watermark placement

Pure geometry for the watermark block (logo stacked above contact text):
element sizes derived from the photo, and where the combined box lands for
an anchor or a relative position.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


MARGIN = 20
GAP = 15
LOGO_SIZE_RATIO = 0.15
MIN_FONT_SIZE = 14
FONT_WIDTH_DIVISOR = 40


class WatermarkMode(Enum):
    """Which elements are drawn"""
    LOGO_CONTACT = "logo-contact"
    LOGO_ONLY = "logo-only"
    CONTACT_ONLY = "contact-only"

    @property
    def draws_logo(self) -> bool:
        return self in (WatermarkMode.LOGO_CONTACT, WatermarkMode.LOGO_ONLY)

    @property
    def draws_text(self) -> bool:
        return self in (WatermarkMode.LOGO_CONTACT, WatermarkMode.CONTACT_ONLY)


class Anchor(Enum):
    """Where the watermark block sits"""
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"
    CENTER = "center"


def parse_mode(value) -> WatermarkMode:
    if isinstance(value, WatermarkMode):
        return value
    return WatermarkMode(str(value).strip().lower().replace('_', '-'))


def parse_anchor(value) -> Anchor:
    if isinstance(value, Anchor):
        return value
    return Anchor(str(value).strip().lower().replace('_', '-'))


@dataclass(frozen=True)
class Box:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.right, self.bottom)


@dataclass(frozen=True)
class Layout:
    """Computed boxes for one composite"""
    block: Box
    logo: Box
    text: Box


def logo_size(image_size: Tuple[int, int], logo_size: Tuple[int, int], scale: float = 1.0) -> Tuple[int, int]:
    """Height is min(W, H) * 0.15 * scale; width follows the logo's aspect ratio"""
    width, height = image_size
    logo_w, logo_h = logo_size
    if logo_w <= 0 or logo_h <= 0:
        return (0, 0)
    target_h = max(1, round(min(width, height) * LOGO_SIZE_RATIO * scale))
    target_w = max(1, round(logo_w * target_h / logo_h))
    return (target_w, target_h)


def font_size(image_width: int, scale: float = 1.0) -> int:
    return max(1, round(max(MIN_FONT_SIZE, image_width / FONT_WIDTH_DIVISOR) * scale))


def compute_layout(
    image_size: Tuple[int, int],
    logo_box: Tuple[int, int],
    text_box: Tuple[int, int],
    anchor: Anchor = Anchor.BOTTOM_RIGHT,
    position: Optional[Tuple[float, float]] = None,
    margin: int = MARGIN,
    gap: int = GAP
) -> Layout:
    """
    Place the combined logo + text block

    Args:
        image_size: (width, height) of the photo
        logo_box: (width, height) of the scaled logo, (0, 0) if none
        text_box: (width, height) of the rendered text, (0, 0) if none
        anchor: Corner or center to align to; corners keep `margin` px from the edges
        position: Relative (x, y) in [0, 1]; overrides the anchor
        margin: Edge margin for corner anchors
        gap: Vertical space between logo and text when both exist

    Returns:
        Layout with the block and the two element boxes, each element
        horizontally centered within the block
    """
    width, height = image_size
    logo_w, logo_h = logo_box
    text_w, text_h = text_box

    spacing = gap if (logo_h > 0 and text_h > 0) else 0
    block_w = max(logo_w, text_w)
    block_h = logo_h + spacing + text_h

    if position is not None:
        rel_x = min(1.0, max(0.0, float(position[0])))
        rel_y = min(1.0, max(0.0, float(position[1])))
        x = round((width - block_w) * rel_x)
        y = round((height - block_h) * rel_y)
    elif anchor == Anchor.CENTER:
        x = round((width - block_w) / 2)
        y = round((height - block_h) / 2)
    else:
        if anchor in (Anchor.TOP_LEFT, Anchor.BOTTOM_LEFT):
            x = margin
        else:
            x = width - block_w - margin
        if anchor in (Anchor.TOP_LEFT, Anchor.TOP_RIGHT):
            y = margin
        else:
            y = height - block_h - margin

    block = Box(x, y, block_w, block_h)
    logo = Box(x + round((block_w - logo_w) / 2), y, logo_w, logo_h)
    text = Box(x + round((block_w - text_w) / 2), y + logo_h + spacing, text_w, text_h)
    return Layout(block=block, logo=logo, text=text)
