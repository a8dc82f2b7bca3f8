from datetime import date

import pytest

from portfolio import (
    EquityPoint,
    allocation_slices,
    contribution_series,
    drawdown_series,
    filter_series_range,
    normalize_timeline,
    performance_series,
    pnl_percent,
    range_days,
    search_assets,
    series_deltas,
    tab_series,
)
from schemas import AssetSummary, SeriesPoint, TimelinePoint


def make_points(*rows: tuple[float, float]) -> list[EquityPoint]:
    return [
        EquityPoint(date=f"2024-01-{i + 1:02d}", equity=equity, net_contributions=contrib)
        for i, (equity, contrib) in enumerate(rows)
    ]


def test_range_days() -> None:
    assert range_days("1M") == 30
    assert range_days("ALL") == 365
    with pytest.raises(ValueError):
        range_days("5Y")


def test_normalize_timeline_falls_back_to_total_value() -> None:
    rows = [
        TimelinePoint.model_validate({"date": "2024-01-01", "equity": 100, "netContributions": 90}),
        TimelinePoint.model_validate({"date": "2024-01-02", "totalCurrentValue": 120}),
        TimelinePoint.model_validate({"date": "2024-01-03"}),
    ]
    points = normalize_timeline(rows)
    assert [(p.equity, p.net_contributions) for p in points] == [(100, 90), (120, 0), (0, 0)]
    assert points[0].profit == 10


def test_performance_series_uses_guarded_baseline() -> None:
    points = make_points((100, 100), (150, 100), (90, 100))
    assert [p.value for p in performance_series(points)] == [0, 50, -10]
    assert performance_series([]) == []


def test_drawdown_tracks_running_peak() -> None:
    points = make_points((100, 0), (200, 0), (150, 0), (250, 0))
    assert [p.value for p in drawdown_series(points)] == [0, 0, -25, 0]
    assert [p.value for p in drawdown_series(make_points((0, 0)))] == [0]


def test_tab_series_dispatch() -> None:
    points = make_points((100, 80), (120, 90))
    assert [p.value for p in tab_series(points, "contrib")] == [80, 90]
    assert tab_series(points, "contrib") == contribution_series(points)
    with pytest.raises(ValueError):
        tab_series(points, "value")


def test_allocation_keeps_top_slices() -> None:
    assets = [
        AssetSummary.model_validate({"id": i, "name": f"A{i}", "currentValue": (i + 1) * 10})
        for i in range(10)
    ]
    assets.append(AssetSummary(id=99, name="Empty"))
    total, slices = allocation_slices(assets)
    assert total == 550
    assert len(slices) == 8
    assert slices[0].label == "A9"
    assert slices[0].pct == 100 / 550
    assert allocation_slices([]) == (0.0, [])


def test_search_assets_matches_name_or_symbol() -> None:
    assets = [
        AssetSummary(id=1, name="World ETF", symbol="iwda", currentValue=10),
        AssetSummary(id=2, name="Bitcoin", symbol="BTC", currentValue=30),
    ]
    assert [a.id for a in search_assets(assets, "btc")] == [2]
    assert [a.id for a in search_assets(assets, "IWDA")] == [1]
    assert [a.id for a in search_assets(assets, None)] == [2, 1]


def test_filter_series_range_falls_back_to_last_points() -> None:
    today = date(2024, 6, 30)
    points = [SeriesPoint(date=f"2024-{m:02d}-01", value=m) for m in range(6, 0, -1)]
    assert [p.value for p in filter_series_range(points, "all", today)] == [1, 2, 3, 4, 5, 6]
    # Only June is inside the last month, so the whole tail is returned.
    assert len(filter_series_range(points, "1m", today)) == 6
    assert [p.value for p in filter_series_range(points, "6m", today)] == [2, 3, 4, 5, 6]
    with pytest.raises(ValueError):
        filter_series_range(points, "2y", today)


def test_series_deltas() -> None:
    points = [SeriesPoint(date="2024-01-01", value=v) for v in (100, 80, 120)]
    deltas = series_deltas(points)
    assert deltas.last_step == 40
    assert deltas.last_step_pct == 50
    assert deltas.range_delta == 20
    assert deltas.range_delta_pct == 20
    assert series_deltas(points[:1]) is None
    assert series_deltas([SeriesPoint(date="2024-01-01", value=0)] * 2).range_delta_pct == 0


def test_pnl_percent() -> None:
    assert pnl_percent(25, 100) == 25
    assert pnl_percent(25, 0) == 0
