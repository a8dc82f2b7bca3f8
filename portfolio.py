from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from charts import ALLOCATION_PALETTE
from periods import parse_record_date
from schemas import AssetSummary, SeriesPoint, TimelinePoint

PORTFOLIO_RANGES = ("1M", "3M", "6M", "1Y", "ALL")
PORTFOLIO_TABS = ("value", "perf", "contrib", "dd")

# ALL is served by the same one-year window as 1Y.
RANGE_TO_DAYS = {"1M": 30, "3M": 90, "6M": 180, "1Y": 365, "ALL": 365}

DETAIL_RANGES = ("1m", "3m", "6m", "1y", "all")
DETAIL_RANGE_DAYS: dict[str, Optional[int]] = {
    "1m": 30,
    "3m": 90,
    "6m": 180,
    "1y": 365,
    "all": None,
}

MIN_POINTS_IN_RANGE = 4
FALLBACK_POINTS = 8
MAX_ALLOCATION_SLICES = 8


@dataclass(frozen=True)
class EquityPoint:
    date: str
    equity: float
    net_contributions: float

    @property
    def profit(self) -> float:
        return self.equity - self.net_contributions


def range_days(range_key: str) -> int:
    try:
        return RANGE_TO_DAYS[range_key]
    except KeyError as exc:
        raise ValueError(f"Unknown portfolio range: {range_key!r}") from exc


def normalize_timeline(points: Iterable[TimelinePoint]) -> list[EquityPoint]:
    normalized: list[EquityPoint] = []
    for p in points:
        if p.equity is not None:
            equity = p.equity
        elif p.total_current_value is not None:
            equity = p.total_current_value
        else:
            equity = 0.0
        normalized.append(
            EquityPoint(
                date=p.date,
                equity=float(equity),
                net_contributions=float(p.net_contributions or 0.0),
            )
        )
    return normalized


def performance_series(points: Sequence[EquityPoint]) -> list[SeriesPoint]:
    """Profit change relative to the first point, in percent.

    The baseline is the largest of 1, the first profit's magnitude and the
    first equity, so tiny or negative starting profits do not blow up the scale.
    """
    if not points:
        return []
    p0 = points[0].profit
    baseline = max(1.0, abs(p0), points[0].equity)
    return [SeriesPoint(date=p.date, value=(p.profit - p0) / baseline * 100) for p in points]


def contribution_series(points: Sequence[EquityPoint]) -> list[SeriesPoint]:
    return [SeriesPoint(date=p.date, value=p.net_contributions) for p in points]


def drawdown_series(points: Sequence[EquityPoint]) -> list[SeriesPoint]:
    peak = float("-inf")
    series: list[SeriesPoint] = []
    for p in points:
        peak = max(peak, p.equity)
        dd = (p.equity - peak) / peak * 100 if peak > 0 else 0.0
        series.append(SeriesPoint(date=p.date, value=dd))
    return series


def tab_series(points: Sequence[EquityPoint], tab: str) -> list[SeriesPoint]:
    if tab == "perf":
        return performance_series(points)
    if tab == "contrib":
        return contribution_series(points)
    if tab == "dd":
        return drawdown_series(points)
    raise ValueError(f"Unknown portfolio tab: {tab!r}")


@dataclass(frozen=True)
class AllocationSlice:
    id: int
    label: str
    value: float
    pct: float
    color: str


def allocation_slices(assets: Sequence[AssetSummary]) -> tuple[float, list[AllocationSlice]]:
    total = sum(a.current_value or 0.0 for a in assets)
    if not total:
        return 0.0, []
    slices = [
        AllocationSlice(
            id=a.id,
            label=a.name,
            value=a.current_value or 0.0,
            pct=(a.current_value or 0.0) / total,
            color=ALLOCATION_PALETTE[idx % len(ALLOCATION_PALETTE)],
        )
        for idx, a in enumerate(assets)
    ]
    slices = [s for s in slices if s.pct > 0]
    slices.sort(key=lambda s: s.value, reverse=True)
    return total, slices[:MAX_ALLOCATION_SLICES]


def search_assets(assets: Sequence[AssetSummary], query: Optional[str]) -> list[AssetSummary]:
    q = (query or "").strip().lower()
    matches = [
        a for a in assets if not q or q in f"{a.name} {a.symbol or ''}".lower()
    ]
    return sorted(matches, key=lambda a: a.current_value or 0.0, reverse=True)


def sort_series(points: Iterable[SeriesPoint]) -> list[SeriesPoint]:
    return sorted(
        (p for p in points if p.date), key=lambda p: parse_record_date(p.date)
    )


def filter_series_range(
    points: Sequence[SeriesPoint], range_key: str, today: date
) -> list[SeriesPoint]:
    """Points newer than the range cutoff, falling back to the last few points.

    When fewer than four points fall inside the window, the last eight points
    are returned instead so the sparkline still has a shape.
    """
    if range_key not in DETAIL_RANGE_DAYS:
        raise ValueError(f"Unknown range: {range_key!r}")
    ordered = sort_series(points)
    days = DETAIL_RANGE_DAYS[range_key]
    if not ordered or days is None:
        return ordered
    cutoff = today - timedelta(days=days)
    inside = [p for p in ordered if parse_record_date(p.date) >= cutoff]
    if len(inside) >= MIN_POINTS_IN_RANGE:
        return inside
    return ordered[-FALLBACK_POINTS:]


@dataclass(frozen=True)
class SeriesDelta:
    last_step: float
    last_step_pct: float
    range_delta: float
    range_delta_pct: float


def _pct(delta: float, base: float) -> float:
    return delta / abs(base) * 100 if base else 0.0


def series_deltas(points: Sequence[SeriesPoint]) -> Optional[SeriesDelta]:
    if len(points) < 2:
        return None
    first, prev, last = points[0].value, points[-2].value, points[-1].value
    return SeriesDelta(
        last_step=last - prev,
        last_step_pct=_pct(last - prev, prev),
        range_delta=last - first,
        range_delta_pct=_pct(last - first, first),
    )


def pnl_percent(pnl: float, invested: float) -> float:
    return pnl / invested * 100 if invested else 0.0
