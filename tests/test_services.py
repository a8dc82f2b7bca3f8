from datetime import date

import pytest

from api_client import ApiError
from periods import resolve_period
from services import (
    LOAD_ERROR,
    DashboardService,
    InvestmentDetailService,
    PortfolioService,
    RegisterService,
    parse_rows,
    wallet_balance,
)
from schemas import TransactionRecord

TODAY = date(2024, 3, 10)


def seed_transactions(client) -> None:
    client.wallet_rows = [{"id": 1, "balance": 1500}, {"id": 2, "currentBalance": "250.5"}]
    client.transaction_rows = [
        {"id": 1, "type": "income", "amount": 1000, "date": "2024-03-01",
         "category": {"name": "Salary", "color": "#16a34a"}},
        {"id": 2, "type": "expense", "amount": 250, "date": "2024-03-02",
         "category": {"name": "Rent", "color": "#ef4444"}, "note": "Piso"},
        {"id": 3, "type": "expense", "amount": 50, "date": "2024-03-09",
         "category": {"name": "Food"}},
        {"id": 4, "type": "transfer", "amount": 400, "date": "2024-03-03"},
        {"id": 5, "type": "expense", "amount": "not-a-number", "date": "2024-03-04"},
        {"type": "bogus", "date": "2024-03-04"},
    ]


def test_parse_rows_skips_invalid_rows() -> None:
    rows = parse_rows(TransactionRecord, [{"type": "income", "date": "2024-01-01"}, {"type": "x"}])
    assert len(rows) == 1


def test_parse_rows_skips_rows_with_bad_dates() -> None:
    rows = parse_rows(
        TransactionRecord,
        [
            {"type": "income", "amount": 1, "date": ""},
            {"type": "income", "amount": 1, "date": "not-a-date"},
            {"type": "income", "amount": 1, "date": "2024-01-01T10:00:00Z"},
        ],
    )
    assert [r.date for r in rows] == ["2024-01-01T10:00:00Z"]


def test_bad_backend_dates_do_not_break_screens(fake_client) -> None:
    fake_client.transaction_rows = [
        {"type": "income", "amount": 1000, "date": "2024-01-15"},
        {"type": "income", "amount": 1, "date": ""},
    ]
    register = RegisterService(fake_client).load(today=TODAY)
    assert register.error is None
    assert register.months[0].income == 1000
    period = resolve_period("month", "2024-01", today=TODAY)
    dashboard = DashboardService(fake_client).load(period, "income")
    assert dashboard.summary.total_income == 1000


def test_wallet_balance_reads_known_keys() -> None:
    assert wallet_balance({"balance": 10}) == 10
    assert wallet_balance({"currentBalance": "2.5"}) == 2.5
    assert wallet_balance({"balance": "n/a"}) == 0


def test_dashboard_builds_every_panel(fake_client) -> None:
    seed_transactions(fake_client)
    period = resolve_period("month", "2024-03", today=TODAY)
    view = DashboardService(fake_client).load(period, "expense", query="piso")

    assert view.error is None
    assert view.net_worth == 1750.5
    assert view.summary.total_income == 1000
    assert view.summary.total_expenses == 300
    assert [c.name for c in view.breakdown.expenses] == ["Rent", "Food"]
    assert [b.real for b in view.bars] == [250, 50, 0, 0]
    assert view.labels == ["S1", "S2", "S3", "S4"]
    assert view.chart.count == 4
    assert [s.label for s in view.donut.segments] == ["Rent", "Food"]
    assert [t.id for t in view.transactions] == [2]
    assert fake_client.calls[0][1].startswith("2024-03-01T00:00:00")


def test_dashboard_saving_donut(fake_client) -> None:
    seed_transactions(fake_client)
    period = resolve_period("month", "2024-03", today=TODAY)
    view = DashboardService(fake_client).load(period, "saving")
    assert view.donut.center_label == "Ahorro"
    assert view.donut.center_value == 700


def test_dashboard_filters_by_wallet(fake_client) -> None:
    seed_transactions(fake_client)
    period = resolve_period("month", "2024-03", today=TODAY)
    view = DashboardService(fake_client).load(period, wallet_id=2)
    assert view.net_worth == 250.5
    assert fake_client.calls[0][3] == 2


def test_dashboard_reports_load_errors(fake_client) -> None:
    fake_client.fail_with = ApiError("boom", status=500)
    view = DashboardService(fake_client).load(resolve_period(None, today=TODAY))
    assert view.error == LOAD_ERROR
    assert view.chart is not None
    assert view.transactions == []


def test_dashboard_rejects_unknown_graph(fake_client) -> None:
    with pytest.raises(ValueError):
        DashboardService(fake_client).load(resolve_period(None, today=TODAY), "profit")


def test_register_view(fake_client) -> None:
    fake_client.transaction_rows = [
        {"type": "income", "amount": 1000, "date": "2024-01-15"},
        {"type": "expense", "amount": 600, "date": "2024-01-20"},
        {"type": "income", "amount": 1100, "date": "2024-02-15"},
        {"type": "expense", "amount": 500, "date": "2024-02-20"},
        {"type": "transfer", "amount": 999, "date": "2024-02-21"},
    ]
    fake_client.manual_rows = [{"year": 2024, "month": 2, "income": 50}]
    view = RegisterService(fake_client).load(today=TODAY)
    assert view.years == [2024]
    assert view.selected_year == 2024
    assert [m.final_amount for m in view.months[:3]] == [400, 1000, 0]
    assert view.months[2].has_override is True
    assert view.year_totals.final_amount == 1000
    assert view.wealth_delta == 600
    assert view.wealth_chart is not None
    assert view.saving_sparkline


def test_register_view_survives_api_errors(fake_client) -> None:
    fake_client.fail_with = ApiError("down")
    view = RegisterService(fake_client).load(2020, today=TODAY)
    assert view.error == LOAD_ERROR
    assert view.years == [2024]
    assert view.selected_year == 2024
    assert view.wealth_chart is not None


def seed_portfolio(client) -> None:
    client.summary = {
        "totalInvested": 1000,
        "totalCurrentValue": 1200,
        "totalPnL": 200,
        "assets": [
            {"id": 1, "name": "World ETF", "symbol": "iwda", "invested": 600,
             "currentValue": 900, "pnl": 300, "lastValuationDate": "2024-03-01"},
            {"id": 2, "name": "Bonds", "invested": 400, "currentValue": 300,
             "pnl": -100, "lastValuationDate": "2024-03-05"},
        ],
    }
    client.timeline = [
        {"date": "2024-01-01", "equity": 1000, "netContributions": 1000},
        {"date": "2024-02-01", "equity": 1100, "netContributions": 1000},
        {"date": "2024-03-01", "totalCurrentValue": 1200, "netContributions": 1000},
    ]


def test_portfolio_value_tab(fake_client) -> None:
    seed_portfolio(fake_client)
    view = PortfolioService(fake_client).load("3M", "value")
    assert fake_client.calls == [("timeline", 90)]
    assert view.total_current_value == 1200
    assert view.last_valuation == "2024-03-05"
    assert view.allocation_total == 1200
    assert [s.label for s in view.allocation] == ["World ETF", "Bonds"]
    assert len(view.allocation_ring) == 2
    assert view.last.equity == 1200
    assert len(view.chart.series) == 2
    assert view.chart.series[0].area
    assert view.labels == ["ENE", "FEB", "MAR"]


def test_portfolio_other_tabs_use_single_series(fake_client) -> None:
    seed_portfolio(fake_client)
    view = PortfolioService(fake_client).load("ALL", "dd")
    assert [p.value for p in view.series] == [0, 0, 0]
    assert len(view.chart.series) == 1


def test_portfolio_validation(fake_client) -> None:
    with pytest.raises(ValueError):
        PortfolioService(fake_client).load("2Y")
    with pytest.raises(ValueError):
        PortfolioService(fake_client).load("1M", "returns")


def test_portfolio_needs_two_points_to_draw(fake_client) -> None:
    seed_portfolio(fake_client)
    fake_client.timeline = fake_client.timeline[:1]
    view = PortfolioService(fake_client).load()
    assert not view.can_draw
    assert view.chart is None


def test_investment_detail(fake_client) -> None:
    seed_portfolio(fake_client)
    fake_client.assets = {1: {"id": 1, "name": "World ETF", "symbol": "iwda"}}
    fake_client.asset_series = [
        {"date": f"2024-0{m}-01", "value": 800 + m * 20} for m in range(1, 4)
    ]
    fake_client.valuation_rows = [
        {"date": "2024-01-01", "value": 820},
        {"date": "2024-03-01", "value": 860},
        {"date": "2024-02-01", "value": 840, "active": False},
    ]
    fake_client.operation_rows = [{"date": "2024-01-05", "type": "buy", "amount": 600}]
    view = InvestmentDetailService(fake_client).load(1, "all", today=TODAY)
    assert view.title == "World ETF (IWDA)"
    assert (view.invested, view.current_value, view.pnl) == (600, 900, 300)
    assert view.pnl_pct == 50
    assert view.last_label == "01 mar 2024"
    assert [p.value for p in view.visible_series] == [820, 840, 860]
    assert view.deltas.range_delta == 40
    assert view.chart is not None
    assert [v["date"] for v in view.valuations] == ["2024-03-01", "2024-01-01"]


def test_investment_detail_not_found(fake_client) -> None:
    view = InvestmentDetailService(fake_client).load(42, today=TODAY)
    assert view.not_found
    assert view.title == "Detalle del activo"


def test_investment_detail_api_error(fake_client) -> None:
    fake_client.fail_with = ApiError("down", status=503)
    view = InvestmentDetailService(fake_client).load(1, today=TODAY)
    assert not view.not_found
    assert view.error == LOAD_ERROR
