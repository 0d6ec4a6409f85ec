import logging
import re
from typing import NamedTuple

from reportlab.lib.colors import Color
from reportlab.pdfgen import canvas

from coordinates import (
    NormalizedCoordinate,
    PagePointCoordinate,
    legacy_pixels_to_page_points,
    to_normalized,
    to_page_points,
)
from font_loader import EmbeddedFont, FontKey, FontLoader, font_key
from layout_models import DebugOptions, LayoutField, UserData

logger = logging.getLogger(__name__)

RENDERABLE_TYPES = frozenset({"text", "date"})
LINE_HEIGHT_FACTOR = 1.2
DEBUG_PADDING = 2.0
DEBUG_MARKER_SIZE = 8.0
DEBUG_LABEL_SIZE = 7.0

_NAMED_COLORS = {
    "black": (0.0, 0.0, 0.0),
    "white": (1.0, 1.0, 1.0),
    "red": (1.0, 0.0, 0.0),
    "green": (0.0, 0.5, 0.0),
    "blue": (0.0, 0.0, 1.0),
    "yellow": (1.0, 1.0, 0.0),
    "gray": (0.5, 0.5, 0.5),
    "grey": (0.5, 0.5, 0.5),
}
_HEX_DIGITS = frozenset("0123456789abcdef")
_RGB_RE = re.compile(r"rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)")

BLACK = (0.0, 0.0, 0.0)


class TextPlacement(NamedTuple):
    anchor_x: float
    anchor_y: float
    draw_x: float
    draw_y: float
    rotation: float


def is_renderable(field: LayoutField) -> bool:
    return field.type in RENDERABLE_TYPES


def resolve_field_text(field: LayoutField, user_data: UserData | None) -> str:
    """Value for a field: user_data[id], then user_data[label], then field.value."""
    data = user_data or {}
    by_id = data.get(field.id)
    if by_id:
        return str(by_id)
    if field.label:
        by_label = data.get(field.label)
        if by_label:
            return str(by_label)
    return str(field.value) if field.value else ""


def parse_hex_color(
    value: str | None,
    fallback: tuple[float, float, float] = BLACK,
) -> tuple[float, float, float]:
    if not isinstance(value, str):
        return fallback
    s = value.strip().lower()
    if s in _NAMED_COLORS:
        return _NAMED_COLORS[s]
    m = _RGB_RE.fullmatch(s)
    if m:
        return tuple(max(0, min(255, int(m.group(i)))) / 255.0 for i in (1, 2, 3))
    hexv = s[1:] if s.startswith("#") else s
    if len(hexv) == 3:
        hexv = "".join(ch * 2 for ch in hexv)
    if len(hexv) != 6 or not all(ch in _HEX_DIGITS for ch in hexv):
        return fallback
    return (
        int(hexv[0:2], 16) / 255.0,
        int(hexv[2:4], 16) / 255.0,
        int(hexv[4:6], 16) / 255.0,
    )


def aligned_x(x: float, text_width: float, align: str = "left", field_width: float | None = None) -> float:
    if align == "center":
        return x - text_width / 2.0
    if align == "right":
        if field_width:
            return x + field_width - text_width
        return x - text_width
    return x


def page_rotation(rotation: float | None) -> float:
    # Editor angles are clockwise in a Y-down space; PDF angles are
    # counter-clockwise in a Y-up space, so the sign flips.
    if not rotation:
        return 0.0
    normalized = float(rotation) % 360.0
    return -normalized if normalized else 0.0


def anchor_point(
    field: LayoutField,
    page_size: tuple[float, float],
    coordinate_mode: str = "percentage",
) -> PagePointCoordinate:
    page_w, page_h = page_size
    if coordinate_mode == "pixels":
        return legacy_pixels_to_page_points(field.x, field.y, page_h)
    return to_page_points(NormalizedCoordinate(field.x, field.y), page_w, page_h)


def compute_placement(
    field: LayoutField,
    text_width: float,
    page_size: tuple[float, float],
    coordinate_mode: str = "percentage",
) -> TextPlacement:
    """Anchor, aligned draw origin and page-space rotation for a field.

    The baseline sits exactly on the converted anchor. No font-size based
    baseline shift is applied.
    """
    anchor = anchor_point(field, page_size, coordinate_mode)
    draw_x = aligned_x(anchor.x_points, text_width, field.align, field.width)
    return TextPlacement(
        anchor_x=anchor.x_points,
        anchor_y=anchor.y_points,
        draw_x=draw_x,
        draw_y=anchor.y_points,
        rotation=page_rotation(field.rotation),
    )


def split_lines(text: str) -> list[str]:
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def format_debug_label(
    field: LayoutField,
    placement: TextPlacement,
    page_size: tuple[float, float],
) -> str:
    page_w, page_h = page_size
    norm = to_normalized(PagePointCoordinate(placement.anchor_x, placement.anchor_y), page_w, page_h)
    return (
        f"{field.label or field.id} ({norm.x_pct * 100:.0f}%,{norm.y_pct * 100:.0f}%)"
        f" -> pdf({placement.draw_x:.0f},{placement.draw_y:.0f})"
    )


def draw_debug_overlay(
    c: canvas.Canvas,
    placement: TextPlacement,
    box: tuple[float, float, float, float],
    text_height: float,
    debug: DebugOptions,
    label: str | None = None,
) -> None:
    """Box around the text, crosshair + dot on the anchor, and a caption.

    box is (x, y, width, height) of the unrotated text advance box.
    """
    r, g, b = parse_hex_color(debug.color, (1.0, 0.0, 0.0))
    line_width = debug.line_width
    x, y = placement.anchor_x, placement.anchor_y

    c.saveState()
    c.setStrokeColor(Color(r, g, b, alpha=0.8))
    c.setFillColor(Color(r, g, b, alpha=0.8))
    c.setLineWidth(line_width)

    if debug.show_bounding_boxes:
        bx, by, bw, bh = box
        c.rect(
            bx - DEBUG_PADDING,
            by - DEBUG_PADDING,
            bw + DEBUG_PADDING * 2,
            bh + DEBUG_PADDING * 2,
            stroke=1,
            fill=0,
        )

    if debug.show_position_markers:
        c.line(x, y - DEBUG_MARKER_SIZE, x, y + text_height + DEBUG_MARKER_SIZE)
        c.line(x - DEBUG_MARKER_SIZE, y, x + box[2] + DEBUG_MARKER_SIZE, y)
        c.circle(x, y, 1.5, stroke=0, fill=1)
        c.circle(x, y, 3, stroke=1, fill=0)

    if debug.show_labels and label:
        c.setFont("Helvetica", DEBUG_LABEL_SIZE)
        c.drawString(x + 6, y + text_height + 4, label)

    c.restoreState()


def render_field(
    c: canvas.Canvas,
    field: LayoutField,
    text: str,
    font_map: dict[FontKey, EmbeddedFont],
    page_size: tuple[float, float],
    resolver: FontLoader | None = None,
    *,
    coordinate_mode: str = "percentage",
    debug: DebugOptions | None = None,
) -> TextPlacement | None:
    if not is_renderable(field) or not text:
        return None

    key = font_key(field.font, field.bold, field.italic)
    font = font_map.get(key)
    if font is None:
        font = (resolver or FontLoader()).resolve(key.family, key.bold, key.italic)
        font_map[key] = font

    size = field.size
    lines = split_lines(text)
    widths = [font.width(line, size) for line in lines]
    placement = compute_placement(field, widths[0], page_size, coordinate_mode)

    line_height = size * LINE_HEIGHT_FACTOR
    # Offsets of each line relative to the first line's draw origin, in the
    # text's own (rotated) frame.
    offsets = [
        (aligned_x(placement.anchor_x, width, field.align, field.width) - placement.draw_x, -i * line_height)
        for i, width in enumerate(widths)
    ]

    if debug is not None and debug.enabled:
        left = min(placement.draw_x + dx for dx, _ in offsets)
        right = max(placement.draw_x + dx + w for (dx, _), w in zip(offsets, widths))
        text_height = size + (len(lines) - 1) * line_height
        box = (left, placement.draw_y - (len(lines) - 1) * line_height, right - left, text_height)
        label = format_debug_label(field, placement, page_size) if debug.show_labels else None
        draw_debug_overlay(c, placement, box, size, debug, label)

    r, g, b = parse_hex_color(field.color)
    c.saveState()
    c.setFillColor(Color(r, g, b))
    c.setFont(font.name, size)
    c.translate(placement.draw_x, placement.draw_y)
    if placement.rotation:
        c.rotate(placement.rotation)
    for line, (dx, dy) in zip(lines, offsets):
        if line:
            c.drawString(dx, dy, line)
    c.restoreState()

    logger.debug(
        "Rendered field %s at (%.2f, %.2f) rotation=%.1f font=%s",
        field.id,
        placement.draw_x,
        placement.draw_y,
        placement.rotation,
        font.name,
    )
    return placement
