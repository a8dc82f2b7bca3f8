"""SVG geometry for the dashboard, register and portfolio charts.

Everything here maps already-aggregated numbers onto a virtual canvas; the
templates only interpolate the resulting coordinates and path strings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from formatting import format_axis_number, round_half_up
from schemas import BarPoint, PieSlice

EPSILON = 1e-12
TAU = 2 * math.pi

BAR_PAD_TOP = 14
BAR_PAD_RIGHT = 12
BAR_GUTTER_LEFT = 54
BAR_LABEL_ROW_H = 26
BAR_PAD_BOTTOM = 12
BAR_MIN_PLOT_H = 140

SAVING_EXPENSE_COLOR = "#ef4444"
SAVING_COLOR = "#3b82f6"

ALLOCATION_PALETTE = [
    "#2563EB",
    "#16A34A",
    "#F59E0B",
    "#DC2626",
    "#7C3AED",
    "#0EA5E9",
    "#10B981",
    "#F97316",
    "#EC4899",
    "#64748B",
]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def nice_ceil_max(raw_max: float) -> float:
    """Round a domain maximum up to 1, 2, 5 or 10 times a power of ten."""
    value = max(raw_max, 1)
    exponent = math.floor(math.log10(value))
    base = 10**exponent
    f = value / base
    if f <= 1:
        nice = 1
    elif f <= 2:
        nice = 2
    elif f <= 5:
        nice = 5
    else:
        nice = 10
    return nice * base


# Bar chart


@dataclass(frozen=True)
class BarLayout:
    step: float
    bar_width: float


@dataclass(frozen=True)
class Tick:
    value: float
    y: int
    label: str
    is_zero: bool


@dataclass(frozen=True)
class BarRect:
    index: int
    x: float
    y: float
    width: float
    height: int
    cx: float
    display: float
    real: float
    label: str
    is_zero: bool


@dataclass
class BarChartGeometry:
    width: float
    height: float
    plot_width: float
    plot_height: float
    baseline: float
    max_y: float
    layout: BarLayout
    ticks: list[Tick] = field(default_factory=list)
    bars: list[BarRect] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.bars)

    @property
    def left(self) -> float:
        return BAR_GUTTER_LEFT

    @property
    def top(self) -> float:
        return BAR_PAD_TOP


def bar_layout(plot_width: float, n: int) -> BarLayout:
    if plot_width <= 0 or n <= 0:
        return BarLayout(step=28, bar_width=14)
    step = plot_width / n
    if n >= 18:
        max_w = 14
    elif n >= 12:
        max_w = 16
    elif n >= 8:
        max_w = 20
    else:
        max_w = 24
    min_w = 10 if n >= 18 else 12
    return BarLayout(step=step, bar_width=clamp(step * 0.58, min_w, max_w))


def y_for_value(value: float, max_y: float, baseline: float) -> int:
    if max_y <= 0:
        return round_half_up(baseline)
    return round_half_up(baseline - (value / max_y) * baseline)


def bar_height(display: float, max_y: float, baseline: float) -> int:
    value = max(0.0, abs(display))
    ratio = value / max_y if max_y > 0 else 0.0
    return max(3, round_half_up(ratio * max(0.0, baseline - 8)))


def build_bar_chart(
    data: Sequence[BarPoint],
    labels: Sequence[str],
    width: float,
    height: float = 260,
) -> BarChartGeometry:
    n = max(len(labels), len(data))
    displays = [
        max(0.0, abs(data[i].display)) if i < len(data) else 0.0 for i in range(n)
    ]
    max_y = nice_ceil_max(max(displays + [1.0]))

    plot_height = max(
        BAR_MIN_PLOT_H, height - BAR_PAD_TOP - BAR_LABEL_ROW_H - BAR_PAD_BOTTOM
    )
    plot_width = max(0.0, width - BAR_GUTTER_LEFT - BAR_PAD_RIGHT)
    # Zero sits one pixel inside the plot box.
    baseline = max(0.0, plot_height - 1)
    layout = bar_layout(plot_width, n)

    ticks = [
        Tick(
            value=value,
            y=y_for_value(value, max_y, baseline),
            label=format_axis_number(value),
            is_zero=value == 0,
        )
        for value in (max_y, 2 * max_y / 3, max_y / 3, 0)
    ]

    bars: list[BarRect] = []
    for i in range(n):
        point = data[i] if i < len(data) else BarPoint(display=0, real=0)
        h = bar_height(point.display, max_y, baseline)
        cx = BAR_GUTTER_LEFT + i * layout.step + layout.step / 2
        bars.append(
            BarRect(
                index=i,
                x=cx - layout.bar_width / 2,
                y=BAR_PAD_TOP + baseline - h,
                width=layout.bar_width,
                height=h,
                cx=cx,
                display=point.display,
                real=point.real,
                label=str(labels[i]) if i < len(labels) else "",
                is_zero=displays[i] == 0,
            )
        )

    return BarChartGeometry(
        width=width,
        height=height,
        plot_width=plot_width,
        plot_height=plot_height,
        baseline=baseline,
        max_y=max_y,
        layout=layout,
        ticks=ticks,
        bars=bars,
    )


# Line charts


@dataclass(frozen=True)
class LineCanvas:
    width: float
    height: float
    pad_x: float
    pad_y: float

    @property
    def plot_width(self) -> float:
        return self.width - self.pad_x * 2

    @property
    def plot_height(self) -> float:
        return self.height - self.pad_y * 2

    @property
    def bottom(self) -> float:
        return self.height - self.pad_y


PORTFOLIO_CANVAS = LineCanvas(1000, 300, 28, 22)
WEALTH_CANVAS = LineCanvas(860, 160, 12, 14)
SPARK_CANVAS = LineCanvas(340, 128, 12, 14)


class LinearScale:
    """Maps indexes onto x and values onto y for one canvas.

    ``[min, max]`` of the domain lands on ``[height - pad_y, pad_y]``; a flat
    domain uses a span of 1 so every point sits on the bottom line.
    """

    def __init__(
        self,
        values: Sequence[float],
        canvas: LineCanvas,
        count: Optional[int] = None,
    ) -> None:
        self.canvas = canvas
        self.count = len(values) if count is None else count
        self.min_value = min(values) if values else 0.0
        self.max_value = max(values) if values else 0.0
        self.denominator = (self.max_value - self.min_value) or 1

    def x_at(self, index: int) -> float:
        if self.count <= 1:
            return self.canvas.pad_x
        return self.canvas.pad_x + (index / (self.count - 1)) * self.canvas.plot_width

    def y_at(self, value: float) -> float:
        t = (value - self.min_value) / self.denominator
        return self.canvas.pad_y + (1 - t) * self.canvas.plot_height


def build_line_path(points: Sequence[tuple[float, float]]) -> str:
    return " ".join(
        f"{'M' if i == 0 else 'L'} {x:.2f} {y:.2f}" for i, (x, y) in enumerate(points)
    )


def build_area_path(points: Sequence[tuple[float, float]], canvas: LineCanvas) -> str:
    if len(points) < 2:
        return ""
    bottom = f"{canvas.bottom:.2f}"
    return (
        f"{build_line_path(points)} L {points[-1][0]:.2f} {bottom} "
        f"L {points[0][0]:.2f} {bottom} Z"
    )


def crosshair_path(x: float, canvas: LineCanvas) -> str:
    return f"M {x:.2f} {canvas.pad_y} L {x:.2f} {canvas.bottom:.2f}"


def grid_paths(canvas: LineCanvas, middle: bool = False) -> list[str]:
    rows = [canvas.pad_y, canvas.bottom]
    if middle:
        rows.insert(1, canvas.pad_y + canvas.plot_height * 0.5)
    return [f"M {canvas.pad_x} {y:g} L {canvas.width - canvas.pad_x} {y:g}" for y in rows]


@dataclass
class LineSeries:
    values: list[float]
    points: list[tuple[float, float]]
    path: str
    area: str = ""


@dataclass
class LineChart:
    canvas: LineCanvas
    scale: LinearScale
    series: list[LineSeries]
    grid: list[str]

    @property
    def drawable(self) -> bool:
        return self.scale.count >= 2


def map_series(values: Sequence[float], scale: LinearScale) -> list[tuple[float, float]]:
    return [(scale.x_at(i), scale.y_at(v)) for i, v in enumerate(values)]


def build_line_chart(
    *series_values: Sequence[float],
    canvas: LineCanvas = PORTFOLIO_CANVAS,
    area: bool = False,
    middle_grid: bool = False,
) -> LineChart:
    """Lay out one or more series sharing a single value domain.

    With ``area`` set, the first series also gets a closed fill path down to
    the bottom padding line.
    """
    all_values = [float(v) for values in series_values for v in values]
    count = max((len(values) for values in series_values), default=0)
    scale = LinearScale(all_values, canvas, count=count)
    built: list[LineSeries] = []
    for idx, values in enumerate(series_values):
        floats = [float(v) for v in values]
        points = map_series(floats, scale)
        built.append(
            LineSeries(
                values=floats,
                points=points,
                path=build_line_path(points),
                area=build_area_path(points, canvas) if area and idx == 0 else "",
            )
        )
    return LineChart(
        canvas=canvas,
        scale=scale,
        series=built,
        grid=grid_paths(canvas, middle=middle_grid),
    )


def sparkline_points(
    values: Sequence[float],
    width: float = 100.0,
    height: float = 30.0,
    pad: float = 2.0,
) -> str:
    """``x,y`` pairs for an inline ``<polyline>`` KPI sparkline."""
    if not values:
        return ""
    if len(values) == 1:
        values = [values[0], values[0]]
    min_v = min(values)
    max_v = max(values)
    usable_h = height - pad * 2
    step = width / (len(values) - 1)
    points: list[str] = []
    for idx, v in enumerate(values):
        x = idx * step
        if max_v == min_v:
            y = height / 2
        else:
            t = (v - min_v) / (max_v - min_v)
            y = pad + (1 - t) * usable_h
        points.append(f"{x:.2f},{y:.2f}")
    return " ".join(points)


# Pie / donut


@dataclass(frozen=True)
class PieArc:
    index: int
    value: float
    start_angle: float
    end_angle: float
    pad_angle: float


def pie_layout(
    values: Sequence[float],
    pad_angle: float = 0.01,
    start_angle: float = 0.0,
    end_angle: float = TAU,
) -> list[PieArc]:
    """Angles for each value in input order, clockwise from 12 o'clock."""
    n = len(values)
    if n == 0:
        return []
    da = min(TAU, max(-TAU, end_angle - start_angle))
    total = sum(v for v in values if v > 0)
    p = min(abs(da) / n, pad_angle)
    pa = p if da >= 0 else -p
    k = (da - n * pa) / total if total else 0.0

    arcs: list[PieArc] = []
    a0 = start_angle
    for idx, v in enumerate(values):
        a1 = a0 + (v * k if v > 0 else 0.0) + pa
        arcs.append(PieArc(idx, v, a0, a1, p))
        a0 = a1
    return arcs


class _PathBuilder:
    def __init__(self) -> None:
        self._parts: list[str] = []
        self._x: Optional[float] = None
        self._y: Optional[float] = None

    def move_to(self, x: float, y: float) -> None:
        self._parts.append(f"M {x:.2f} {y:.2f}")
        self._x, self._y = x, y

    def line_to(self, x: float, y: float) -> None:
        self._parts.append(f"L {x:.2f} {y:.2f}")
        self._x, self._y = x, y

    def arc(self, r: float, a0: float, a1: float, ccw: bool) -> None:
        dx = r * math.cos(a0)
        dy = r * math.sin(a0)
        sweep = 0 if ccw else 1
        da = a0 - a1 if ccw else a1 - a0
        if self._x is None or self._y is None:
            self.move_to(dx, dy)
        elif abs(self._x - dx) > 1e-6 or abs(self._y - dy) > 1e-6:
            self.line_to(dx, dy)
        if not r:
            return
        if da < 0:
            da = da % TAU + TAU
        if da > TAU - 1e-6:
            self._parts.append(f"A {r:.2f} {r:.2f} 0 1 {sweep} {-dx:.2f} {-dy:.2f}")
            self._parts.append(f"A {r:.2f} {r:.2f} 0 1 {sweep} {dx:.2f} {dy:.2f}")
            self._x, self._y = dx, dy
        elif da > 1e-6:
            x1 = r * math.cos(a1)
            y1 = r * math.sin(a1)
            large = 1 if da >= math.pi else 0
            self._parts.append(f"A {r:.2f} {r:.2f} 0 {large} {sweep} {x1:.2f} {y1:.2f}")
            self._x, self._y = x1, y1

    def close(self) -> None:
        self._parts.append("Z")

    def __str__(self) -> str:
        return " ".join(self._parts)


def arc_path(arc: PieArc, inner_radius: float, outer_radius: float) -> str:
    """Annular sector path centred on the origin, padded like d3-shape."""
    r0, r1 = sorted((inner_radius, outer_radius))
    a0 = arc.start_angle - math.pi / 2
    a1 = arc.end_angle - math.pi / 2
    da = abs(a1 - a0)
    cw = a1 > a0
    path = _PathBuilder()

    if not r1 > EPSILON:
        path.move_to(0, 0)
    elif da > TAU - EPSILON:
        path.move_to(r1 * math.cos(a0), r1 * math.sin(a0))
        path.arc(r1, a0, a1, not cw)
        if r0 > EPSILON:
            path.move_to(r0 * math.cos(a1), r0 * math.sin(a1))
            path.arc(r0, a1, a0, cw)
    else:
        a01, a11, a00, a10 = a0, a1, a0, a1
        da0 = da1 = da
        ap = arc.pad_angle / 2
        rp = math.sqrt(r0 * r0 + r1 * r1) if ap > EPSILON else 0.0
        if rp > EPSILON:
            direction = 1 if cw else -1
            p0 = math.asin(clamp(rp / r0 * math.sin(ap), -1, 1)) if r0 > EPSILON else 0.0
            p1 = math.asin(clamp(rp / r1 * math.sin(ap), -1, 1))
            da0 -= p0 * 2
            if da0 > EPSILON:
                a00 += p0 * direction
                a10 -= p0 * direction
            else:
                da0 = 0
                a00 = a10 = (a0 + a1) / 2
            da1 -= p1 * 2
            if da1 > EPSILON:
                a01 += p1 * direction
                a11 -= p1 * direction
            else:
                da1 = 0
                a01 = a11 = (a0 + a1) / 2

        path.move_to(r1 * math.cos(a01), r1 * math.sin(a01))
        if da1 > EPSILON:
            path.arc(r1, a01, a11, not cw)
        if not r0 > EPSILON or not da0 > EPSILON:
            path.line_to(r0 * math.cos(a10), r0 * math.sin(a10))
        else:
            path.arc(r0, a10, a00, cw)

    path.close()
    return str(path)


@dataclass(frozen=True)
class DonutSegment:
    index: int
    label: str
    value: float
    real_value: float
    color: str
    percent: float
    path: str
    active: bool


@dataclass
class DonutChart:
    size: float
    inner_radius: float
    segments: list[DonutSegment]
    center_label: str
    center_value: float
    reference_total: float
    empty_message: Optional[str] = None

    @property
    def frame(self) -> float:
        return self.size + 20

    @property
    def center(self) -> float:
        return self.frame / 2


def saving_pie_slices(incomes: float, expenses: float) -> list[PieSlice]:
    """Expense vs saving split; a lone expense slice once spending exceeds income."""
    if expenses <= incomes:
        candidates = [
            PieSlice(
                label="Gastos",
                value=expenses,
                real_value=expenses,
                color=SAVING_EXPENSE_COLOR,
            ),
            PieSlice(
                label="Ahorro",
                value=incomes - expenses,
                real_value=incomes - expenses,
                color=SAVING_COLOR,
            ),
        ]
        return [s for s in candidates if s.value > 0]
    return [
        PieSlice(
            label="Gastos",
            value=expenses,
            real_value=expenses,
            color=SAVING_EXPENSE_COLOR,
        )
    ]


def build_donut(
    slices: Sequence[PieSlice],
    *,
    mode: str = "expense",
    incomes: float = 0.0,
    expenses: float = 0.0,
    size: float = 170,
    inner_radius: float = 55,
    active_index: Optional[int] = None,
) -> DonutChart:
    if mode == "saving":
        if incomes <= 0 and expenses <= 0:
            return DonutChart(size, inner_radius, [], "Ahorro", 0.0, 0.0, "Sin datos")
        data = saving_pie_slices(incomes, expenses)
        reference = incomes if incomes > 0 else expenses
    else:
        data = [s for s in slices if s.value > 0]
        reference = sum(s.real_value for s in data)

    if sum(s.value for s in data) <= 0:
        return DonutChart(
            size, inner_radius, [], "Total", 0.0, reference, "Sin datos suficientes"
        )

    if active_index is not None and not 0 <= active_index < len(data):
        active_index = None

    radius = size / 2
    segments: list[DonutSegment] = []
    for arc in pie_layout([s.value for s in data]):
        item = data[arc.index]
        is_active = arc.index == active_index
        segments.append(
            DonutSegment(
                index=arc.index,
                label=item.label,
                value=item.value,
                real_value=item.real_value,
                color=item.color,
                percent=item.real_value / (reference or 1) * 100,
                path=arc_path(arc, inner_radius, radius + 6 if is_active else radius),
                active=is_active,
            )
        )

    if mode == "saving":
        center_label, center_value = "Ahorro", incomes - expenses
    elif active_index is not None:
        center_label = data[active_index].label
        center_value = data[active_index].real_value
    else:
        center_label, center_value = "Total", reference
    return DonutChart(
        size, inner_radius, segments, center_label, center_value, reference
    )


@dataclass(frozen=True)
class RingSegment:
    label: str
    color: str
    path: str


def _polar(cx: float, cy: float, r: float, angle_deg: float) -> tuple[float, float]:
    a = math.radians(angle_deg)
    return cx + r * math.cos(a), cy + r * math.sin(a)


def describe_arc(
    cx: float, cy: float, r: float, start_angle: float, end_angle: float
) -> str:
    sx, sy = _polar(cx, cy, r, start_angle)
    ex, ey = _polar(cx, cy, r, end_angle)
    large = "0" if end_angle - start_angle <= 180 else "1"
    return f"M {sx:.2f} {sy:.2f} A {r:.2f} {r:.2f} 0 {large} 1 {ex:.2f} {ey:.2f}"


def ring_segments(
    fractions: Sequence[tuple[str, float, str]], size: float, stroke_width: float
) -> list[RingSegment]:
    """Stroked ring arcs from 12 o'clock; ``fractions`` holds ``(label, 0..1, color)``."""
    cx = cy = size / 2
    r = (size - stroke_width) / 2
    acc = 0.0
    segments: list[RingSegment] = []
    for label, fraction, color in fractions:
        sweep = max(0.0, clamp(fraction, 0, 1) * 360)
        if sweep <= 0.2:
            acc += sweep
            continue
        start = -90 + acc
        acc += sweep
        # A full 360 sweep collapses to a zero-length arc in SVG.
        end = min(start + sweep, start + 359.99)
        segments.append(RingSegment(label, color, describe_arc(cx, cy, r, start, end)))
    return segments
