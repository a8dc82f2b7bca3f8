"""Pointer tracking for the interactive charts.

Mouse and touch input are reduced to a position inside the chart box by thin
adapters; index resolution and tooltip placement are shared by both.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from charts import (
    BAR_GUTTER_LEFT,
    BAR_PAD_TOP,
    BarChartGeometry,
    LineCanvas,
    PORTFOLIO_CANVAS,
    clamp,
)
from formatting import round_half_up

TOOLTIP_OFFSET = 14
TOOLTIP_MARGIN = 8


class PointerSource(Protocol):
    def position(self) -> tuple[float, float]: ...


@dataclass(frozen=True)
class MouseEvent:
    client_x: float
    client_y: float
    rect_left: float = 0.0
    rect_top: float = 0.0

    def position(self) -> tuple[float, float]:
        return self.client_x - self.rect_left, self.client_y - self.rect_top


@dataclass(frozen=True)
class TouchEvent:
    location_x: float
    location_y: float

    def position(self) -> tuple[float, float]:
        return self.location_x, self.location_y


@dataclass(frozen=True)
class TooltipSize:
    width: float
    height: float


DUAL_LINE_TOOLTIP = TooltipSize(220, 74)
SINGLE_LINE_TOOLTIP = TooltipSize(170, 48)
BAR_TOOLTIP = TooltipSize(180, 44)


@dataclass(frozen=True)
class TooltipPosition:
    left: float
    top: float
    pointer_x: Optional[float] = None


def pointer_ratio(x: float, layout_width: float, canvas: LineCanvas) -> float:
    """Normalized ``[0, 1]`` position of ``x`` across the padded plot area."""
    if layout_width <= 0:
        return 0.0
    x_svg = x / layout_width * canvas.width
    return clamp((x_svg - canvas.pad_x) / (canvas.width - canvas.pad_x * 2), 0, 1)


def nearest_index(ratio: float, n: int) -> int:
    if n <= 1:
        return 0
    return int(clamp(round_half_up(ratio * (n - 1)), 0, n - 1))


def index_from_x(x: float, layout_width: float, n: int, canvas: LineCanvas) -> int:
    if not layout_width or n <= 1:
        return 0
    return nearest_index(pointer_ratio(x, layout_width, canvas), n)


def place_line_tooltip(
    x: float,
    y: float,
    layout_width: float,
    container_height: float,
    size: TooltipSize,
) -> TooltipPosition:
    prefer_right = x + TOOLTIP_OFFSET
    flip_left = x - size.width - TOOLTIP_OFFSET
    left = flip_left if prefer_right + size.width > (layout_width or 0) else prefer_right
    left = clamp(
        left,
        TOOLTIP_MARGIN,
        max(TOOLTIP_MARGIN, (layout_width or 0) - size.width - TOOLTIP_MARGIN),
    )
    top = clamp(
        y - size.height - 10,
        TOOLTIP_MARGIN,
        max(TOOLTIP_MARGIN, container_height - size.height - TOOLTIP_MARGIN),
    )
    return TooltipPosition(left=left, top=top)


@dataclass(frozen=True)
class LineHover:
    index: int
    tooltip: TooltipPosition


def resolve_line_hover(
    source: PointerSource,
    *,
    layout_width: float,
    container_height: float,
    n: int,
    canvas: LineCanvas = PORTFOLIO_CANVAS,
    size: TooltipSize = SINGLE_LINE_TOOLTIP,
) -> LineHover:
    x, y = source.position()
    return LineHover(
        index=index_from_x(x, layout_width, n, canvas),
        tooltip=place_line_tooltip(x, y, layout_width, container_height, size),
    )


def bar_index_at(x: float, geometry: BarChartGeometry) -> Optional[int]:
    """Bar whose column contains ``x``, or ``None`` outside the plot."""
    step = geometry.layout.step
    if geometry.count == 0 or step <= 0:
        return None
    offset = x - BAR_GUTTER_LEFT
    if offset < 0:
        return None
    idx = int(offset // step)
    return idx if idx < geometry.count else None


def place_bar_tooltip(
    index: Optional[int],
    geometry: BarChartGeometry,
    size: TooltipSize = BAR_TOOLTIP,
) -> Optional[TooltipPosition]:
    if index is None or geometry.width <= 0 or geometry.plot_width <= 0:
        return None
    if not 0 <= index < geometry.count:
        return None
    bar = geometry.bars[index]
    left = max(10, min(geometry.width - size.width - 10, bar.cx - size.width / 2))
    top = max(8, BAR_PAD_TOP + (geometry.baseline - bar.height) - size.height - 10)
    pointer_x = max(10, min(size.width - 10, bar.cx - left))
    return TooltipPosition(left=left, top=top, pointer_x=pointer_x)


@dataclass(frozen=True)
class BarHover:
    index: Optional[int]
    tooltip: Optional[TooltipPosition]


def resolve_bar_hover(source: PointerSource, geometry: BarChartGeometry) -> BarHover:
    x, _ = source.position()
    index = bar_index_at(x, geometry)
    return BarHover(index=index, tooltip=place_bar_tooltip(index, geometry))

