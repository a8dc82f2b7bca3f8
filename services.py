from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from aggregation import (
    bar_labels,
    filter_for_stats,
    filter_transactions,
    group_by_category,
    pie_slices,
    sort_newest_first,
    summarize,
    type_bars,
)
from api_client import ApiClient, ApiError
from balances import (
    RegisterTotals,
    build_register,
    global_totals,
    select_year,
    year_totals,
)
from charts import (
    PORTFOLIO_CANVAS,
    WEALTH_CANVAS,
    BarChartGeometry,
    DonutChart,
    LineChart,
    RingSegment,
    build_bar_chart,
    build_donut,
    build_line_chart,
    ring_segments,
    sparkline_points,
)
from formatting import axis_date_label, date_label
from periods import Period, local_today, parse_record_date
from portfolio import (
    PORTFOLIO_TABS,
    AllocationSlice,
    EquityPoint,
    SeriesDelta,
    allocation_slices,
    filter_series_range,
    normalize_timeline,
    pnl_percent,
    range_days,
    search_assets,
    series_deltas,
    tab_series,
)
from schemas import (
    AssetSummary,
    BarPoint,
    CategoryBreakdown,
    ManualMonthRow,
    MonthSummary,
    PeriodSummary,
    SeriesPoint,
    TimelinePoint,
    TransactionRecord,
    TransactionType,
    WealthPoint,
    YearSummary,
)

logger = logging.getLogger(__name__)

LOAD_ERROR = "No se pudieron cargar los datos. Pulsa actualizar para reintentar."

M = TypeVar("M", bound=BaseModel)


def parse_rows(model: type[M], rows: Iterable[Any]) -> list[M]:
    parsed: list[M] = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                f"row_skipped: model={model.__name__} errors={exc.error_count()}"
            )
    return parsed


def wallet_balance(wallet: dict[str, Any]) -> float:
    for key in ("balance", "currentBalance", "amount", "total"):
        try:
            value = float(wallet.get(key) or 0)
        except (TypeError, ValueError):
            value = 0.0
        if value:
            return value
    return 0.0


@dataclass
class DashboardView:
    period: Period
    graph_type: str
    wallet_id: Optional[int] = None
    net_worth: float = 0.0
    summary: PeriodSummary = field(default_factory=PeriodSummary)
    breakdown: CategoryBreakdown = field(default_factory=CategoryBreakdown)
    bars: list[BarPoint] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    chart: Optional[BarChartGeometry] = None
    donut: Optional[DonutChart] = None
    transactions: list[TransactionRecord] = field(default_factory=list)
    error: Optional[str] = None


class DashboardService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def load(
        self,
        period: Period,
        graph_type: str = "expense",
        *,
        wallet_id: Optional[int] = None,
        query: Optional[str] = None,
        category: Optional[str] = None,
        chart_width: float = 760,
        chart_height: float = 250,
        active_slice: Optional[int] = None,
    ) -> DashboardView:
        if graph_type not in ("income", "expense", "saving"):
            raise ValueError(f"Unknown graph type: {graph_type!r}")
        view = DashboardView(period=period, graph_type=graph_type, wallet_id=wallet_id)
        params = period.api_params()
        try:
            wallets = self.client.wallets()
            raw = self.client.transactions(
                params["dateFrom"], params["dateTo"], wallet_id
            )
        except ApiError as exc:
            logger.warning(f"dashboard_load_failed: period={period.slug} error={exc}")
            view.error = LOAD_ERROR
            view.chart = build_bar_chart([], [], chart_width, chart_height)
            return view

        if wallet_id is not None:
            selected = [w for w in wallets if w.get("id") == wallet_id]
            view.net_worth = wallet_balance(selected[0]) if selected else 0.0
        else:
            view.net_worth = sum(wallet_balance(w) for w in wallets)

        records = sort_newest_first(
            filter_for_stats(parse_rows(TransactionRecord, raw))
        )
        view.summary = summarize(records)
        view.breakdown = group_by_category(records)
        view.bars = type_bars(records, period.start, period.end, period.slug, graph_type)
        view.labels = bar_labels(period.slug, len(view.bars), records)
        view.chart = build_bar_chart(view.bars, view.labels, chart_width, chart_height)

        if graph_type == "saving":
            view.donut = build_donut(
                [],
                mode="saving",
                incomes=view.summary.total_income,
                expenses=view.summary.total_expenses,
            )
        else:
            income = graph_type == "income"
            aggregates = view.breakdown.incomes if income else view.breakdown.expenses
            denominator = (
                view.summary.total_income if income else view.summary.total_expenses
            )
            view.donut = build_donut(
                pie_slices(aggregates, denominator),
                mode=graph_type,
                active_index=active_slice,
            )

        view.transactions = filter_transactions(records, query, category)
        return view


@dataclass
class RegisterView:
    years: list[int]
    selected_year: int
    months: list[MonthSummary] = field(default_factory=list)
    year_summaries: list[YearSummary] = field(default_factory=list)
    year_totals: RegisterTotals = field(default_factory=RegisterTotals)
    global_totals: RegisterTotals = field(default_factory=RegisterTotals)
    wealth: list[WealthPoint] = field(default_factory=list)
    wealth_chart: Optional[LineChart] = None
    wealth_delta: float = 0.0
    saving_sparkline: str = ""
    error: Optional[str] = None


class RegisterService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def load(
        self,
        year: Optional[int] = None,
        *,
        today: Optional[date] = None,
        initial_balance: float = 0.0,
    ) -> RegisterView:
        today = today or local_today()
        error = None
        try:
            raw = self.client.transactions()
            manual = self.client.manual_months()
        except ApiError as exc:
            logger.warning(f"register_load_failed: error={exc}")
            raw, manual, error = [], [], LOAD_ERROR

        records = [
            r
            for r in filter_for_stats(parse_rows(TransactionRecord, raw))
            if r.type in (TransactionType.income, TransactionType.expense)
        ]
        register = build_register(
            records,
            parse_rows(ManualMonthRow, manual),
            today=today,
            initial_balance=initial_balance,
        )
        selected = select_year(register.years, year, today.year)
        months = register.months_by_year.get(selected, [])
        view = RegisterView(
            years=register.years,
            selected_year=selected,
            months=months,
            year_summaries=register.year_summaries,
            year_totals=year_totals(months),
            global_totals=global_totals(register.year_summaries),
            wealth=register.wealth,
            saving_sparkline=sparkline_points([m.saving for m in months if m.finished]),
            error=error,
        )
        if register.wealth:
            view.wealth_chart = build_line_chart(
                [p.final_amount for p in register.wealth], canvas=WEALTH_CANVAS
            )
            view.wealth_delta = (
                register.wealth[-1].final_amount - register.wealth[0].final_amount
            )
        return view


@dataclass
class PortfolioView:
    range_key: str
    tab: str
    total_invested: float = 0.0
    total_current_value: float = 0.0
    total_pnl: float = 0.0
    last_valuation: Optional[str] = None
    assets: list[AssetSummary] = field(default_factory=list)
    allocation_total: float = 0.0
    allocation: list[AllocationSlice] = field(default_factory=list)
    allocation_ring: list[RingSegment] = field(default_factory=list)
    points: list[EquityPoint] = field(default_factory=list)
    series: list[SeriesPoint] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    chart: Optional[LineChart] = None
    error: Optional[str] = None

    @property
    def can_draw(self) -> bool:
        return len(self.points) >= 2

    @property
    def last(self) -> Optional[EquityPoint]:
        return self.points[-1] if self.points else None


class PortfolioService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def load(
        self,
        range_key: str = "ALL",
        tab: str = "value",
        *,
        query: Optional[str] = None,
        donut_size: float = 180,
        donut_stroke: float = 22,
    ) -> PortfolioView:
        days = range_days(range_key)
        if tab not in PORTFOLIO_TABS:
            raise ValueError(f"Unknown portfolio tab: {tab!r}")
        view = PortfolioView(range_key=range_key, tab=tab)
        try:
            summary = self.client.investment_summary() or {}
            timeline = self.client.investment_timeline(days)
        except ApiError as exc:
            logger.warning(f"portfolio_load_failed: range={range_key} error={exc}")
            view.error = LOAD_ERROR
            return view

        view.total_invested = float(summary.get("totalInvested") or 0)
        view.total_current_value = float(summary.get("totalCurrentValue") or 0)
        view.total_pnl = float(summary.get("totalPnL") or 0)
        assets = parse_rows(AssetSummary, summary.get("assets") or [])
        dates = sorted(
            (a.last_valuation_date for a in assets if a.last_valuation_date),
            key=parse_record_date,
        )
        view.last_valuation = dates[-1] if dates else None
        view.assets = search_assets(assets, query)
        view.allocation_total, view.allocation = allocation_slices(assets)
        view.allocation_ring = ring_segments(
            [(s.label, s.pct, s.color) for s in view.allocation],
            donut_size,
            donut_stroke,
        )

        view.points = normalize_timeline(parse_rows(TimelinePoint, timeline))
        view.labels = [
            axis_date_label(parse_record_date(p.date), range_key) for p in view.points
        ]
        if not view.can_draw:
            return view
        if tab == "value":
            view.chart = build_line_chart(
                [p.equity for p in view.points],
                [p.net_contributions for p in view.points],
                canvas=PORTFOLIO_CANVAS,
                area=True,
            )
        else:
            view.series = tab_series(view.points, tab)
            view.chart = build_line_chart(
                [p.value for p in view.series], canvas=PORTFOLIO_CANVAS
            )
        return view


@dataclass
class InvestmentView:
    asset_id: int
    range_key: str
    asset: Optional[dict[str, Any]] = None
    summary: Optional[AssetSummary] = None
    series: list[SeriesPoint] = field(default_factory=list)
    visible_series: list[SeriesPoint] = field(default_factory=list)
    chart: Optional[LineChart] = None
    deltas: Optional[SeriesDelta] = None
    invested: float = 0.0
    current_value: float = 0.0
    pnl: float = 0.0
    pnl_pct: float = 0.0
    last_label: str = "Sin datos"
    valuations: list[dict[str, Any]] = field(default_factory=list)
    operations: list[dict[str, Any]] = field(default_factory=list)
    not_found: bool = False
    error: Optional[str] = None

    @property
    def title(self) -> str:
        if not self.asset:
            return "Detalle del activo"
        symbol = self.asset.get("symbol")
        name = self.asset.get("name", "")
        return f"{name} ({str(symbol).upper()})" if symbol else name


class InvestmentDetailService:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    def load(
        self,
        asset_id: int,
        range_key: str = "all",
        *,
        today: Optional[date] = None,
    ) -> InvestmentView:
        today = today or local_today()
        view = InvestmentView(asset_id=asset_id, range_key=range_key)
        try:
            asset = self.client.investment_asset(asset_id)
            summary = self.client.investment_summary() or {}
            raw_series = self.client.investment_asset_series(asset_id)
            valuations = self.client.investment_valuations(asset_id)
            operations = self.client.investment_operations(asset_id)
        except ApiError as exc:
            if exc.status == 404:
                view.not_found = True
                return view
            logger.warning(f"investment_load_failed: asset_id={asset_id} error={exc}")
            view.error = LOAD_ERROR
            return view

        if not asset:
            view.not_found = True
            return view
        view.asset = asset
        rows = [
            row
            for row in parse_rows(AssetSummary, summary.get("assets") or [])
            if row.id == asset_id
        ]
        view.summary = rows[0] if rows else None

        view.series = filter_series_range(
            parse_rows(SeriesPoint, raw_series), "all", today
        )
        view.visible_series = filter_series_range(view.series, range_key, today)
        if view.visible_series:
            view.chart = build_line_chart(
                [p.value for p in view.visible_series],
                canvas=PORTFOLIO_CANVAS,
                area=True,
                middle_grid=True,
            )
        view.deltas = series_deltas(view.visible_series)

        initial = float(asset.get("initialInvested") or 0)
        row = view.summary
        view.invested = row.invested if row and row.invested is not None else initial
        view.current_value = (
            row.current_value
            if row and row.current_value is not None
            else view.invested
        )
        view.pnl = (
            row.pnl
            if row and row.pnl is not None
            else view.current_value - view.invested
        )
        view.pnl_pct = pnl_percent(view.pnl, view.invested)
        if row and row.last_valuation_date:
            view.last_label = date_label(parse_record_date(row.last_valuation_date))
        elif view.series:
            view.last_label = date_label(parse_record_date(view.series[-1].date))

        view.valuations = sorted(
            (
                v
                for v in valuations
                if v.get("active", True) is not False and v.get("date")
            ),
            key=lambda v: parse_record_date(v["date"]),
            reverse=True,
        )
        view.operations = sorted(
            (o for o in operations if o.get("date")),
            key=lambda o: parse_record_date(o["date"]),
            reverse=True,
        )
        return view
