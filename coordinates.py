"""Conversions between the editor's normalized space, pixels and PDF points.

Editor / normalized space: origin top-left, y grows downward, both axes 0-1.
Page space: origin bottom-left, y grows upward, unit is the PDF point (1/72 in).

to_page_points() is the only place the Y axis is flipped for normalized
input. Everything downstream treats page points as final.
"""

from typing import NamedTuple

A4_WIDTH = 595.28
A4_HEIGHT = 841.89
DEFAULT_PAGE_SIZE: tuple[float, float] = (A4_WIDTH, A4_HEIGHT)

PAGE_SIZES: dict[str, tuple[float, float]] = {
    "a4": (A4_WIDTH, A4_HEIGHT),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
}


class NormalizedCoordinate(NamedTuple):
    x_pct: float
    y_pct: float


class PixelCoordinate(NamedTuple):
    x: float
    y: float


class PagePointCoordinate(NamedTuple):
    x_points: float
    y_points: float


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def clamp(coord: NormalizedCoordinate) -> NormalizedCoordinate:
    return NormalizedCoordinate(clamp01(coord.x_pct), clamp01(coord.y_pct))


def is_valid_normalized(coord: NormalizedCoordinate) -> bool:
    return 0.0 <= coord.x_pct <= 1.0 and 0.0 <= coord.y_pct <= 1.0


def to_page_points(
    coord: NormalizedCoordinate,
    page_width: float,
    page_height: float,
) -> PagePointCoordinate:
    """Convert a normalized coordinate to page points.

    x_points = x_pct * width
    y_points = height - y_pct * height

    Both axes are clamped to 0-1 first so out-of-range editor values land on
    the page edge instead of off the page.
    """
    if page_width < 0 or page_height < 0:
        raise ValueError(f"Page dimensions must not be negative: {page_width} x {page_height}")
    x_pct = clamp01(coord.x_pct)
    y_pct = clamp01(coord.y_pct)
    return PagePointCoordinate(x_pct * page_width, page_height - y_pct * page_height)


def to_normalized(
    points: PagePointCoordinate,
    page_width: float,
    page_height: float,
) -> NormalizedCoordinate:
    """Inverse of to_page_points(). Not clamped; used for diagnostics."""
    if page_width <= 0 or page_height <= 0:
        raise ValueError(f"Page dimensions must be positive: {page_width} x {page_height}")
    return NormalizedCoordinate(
        points.x_points / page_width,
        (page_height - points.y_points) / page_height,
    )


def normalized_to_pixels(
    coord: NormalizedCoordinate,
    container_width: float,
    container_height: float,
) -> PixelCoordinate:
    if container_width == 0 or container_height == 0:
        return PixelCoordinate(0.0, 0.0)
    return PixelCoordinate(coord.x_pct * container_width, coord.y_pct * container_height)


def pixels_to_normalized(
    pixel: PixelCoordinate,
    container_width: float,
    container_height: float,
) -> NormalizedCoordinate:
    if container_width == 0 or container_height == 0:
        return NormalizedCoordinate(0.0, 0.0)
    return NormalizedCoordinate(pixel.x / container_width, pixel.y / container_height)


def legacy_pixels_to_page_points(x: float, y: float, page_height: float) -> PagePointCoordinate:
    # Legacy absolute layouts: same Y inversion, no clamp, no baseline shift.
    return PagePointCoordinate(float(x), page_height - float(y))


def calculate_scale(
    container_width: float,
    container_height: float,
    page_width: float = A4_WIDTH,
    page_height: float = A4_HEIGHT,
) -> tuple[float, float, float]:
    """Return (scale_x, scale_y, uniform_scale) from page points to container pixels."""
    scale_x = container_width / page_width
    scale_y = container_height / page_height
    return scale_x, scale_y, min(scale_x, scale_y)


def page_size_for(name: str) -> tuple[float, float]:
    key = name.strip().lower()
    if key not in PAGE_SIZES:
        raise ValueError(f"Unknown page size '{name}'. Expected one of: {', '.join(PAGE_SIZES)}")
    return PAGE_SIZES[key]


def validate_page_size(size: tuple[float, float] | list[float] | None) -> tuple[float, float]:
    if size is None:
        return DEFAULT_PAGE_SIZE
    if len(size) != 2:
        raise ValueError(f"Page size must be [width, height], got {list(size)}")
    width, height = float(size[0]), float(size[1])
    if width <= 0 or height <= 0:
        raise ValueError(f"Page dimensions must be positive: {width} x {height}")
    return width, height
