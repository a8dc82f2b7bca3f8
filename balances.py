from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from formatting import MONTH_NAMES, month_short_label
from periods import parse_record_date
from schemas import (
    ManualMonthRow,
    MonthSummary,
    TransactionRecord,
    TransactionType,
    WealthPoint,
    YearSummary,
)


@dataclass
class MonthTotals:
    year: int
    month: int  # 1-12
    income: float = 0.0
    expense: float = 0.0
    finished: bool = False
    override: Optional[ManualMonthRow] = None


@dataclass
class RegisterTotals:
    income: float = 0.0
    expense: float = 0.0
    saving: float = 0.0
    final_amount: Optional[float] = None


@dataclass
class Register:
    years: list[int]
    months_by_year: dict[int, list[MonthSummary]]
    year_summaries: list[YearSummary]
    wealth: list[WealthPoint] = field(default_factory=list)


def is_month_finished(year: int, month: int, today: date) -> bool:
    return year < today.year or (year == today.year and month < today.month)


def fold_running_balance(
    months: Iterable[MonthTotals], initial_balance: float = 0.0
) -> list[MonthSummary]:
    """Walk months oldest to newest carrying the running balance forward.

    A finished month adds its saving to the running total, unless it carries a
    ``finalBalance`` override, which replaces the total outright. Unfinished
    months report zeros and leave the running total untouched.
    """
    running = initial_balance
    summaries: list[MonthSummary] = []
    for item in months:
        override = item.override
        has_override = override is not None and override.has_values()
        if not item.finished:
            summaries.append(
                MonthSummary(
                    year=item.year,
                    month=item.month,
                    month_name=MONTH_NAMES[item.month - 1],
                    finished=False,
                    has_override=has_override,
                )
            )
            continue

        income = item.income
        expense = item.expense
        if override is not None and override.income is not None:
            income = override.income
        if override is not None and override.expense is not None:
            expense = override.expense
        saving = income - expense

        if override is not None and override.final_balance is not None:
            running = override.final_balance
        else:
            running = running + saving

        summaries.append(
            MonthSummary(
                year=item.year,
                month=item.month,
                month_name=MONTH_NAMES[item.month - 1],
                income=income,
                expense=expense,
                saving=saving,
                final_amount=running,
                finished=True,
                has_override=has_override,
            )
        )
    return summaries


def monthly_totals(
    records: Iterable[TransactionRecord],
) -> dict[tuple[int, int], tuple[float, float]]:
    totals: dict[tuple[int, int], tuple[float, float]] = {}
    for record in records:
        if record.type not in (TransactionType.income, TransactionType.expense):
            continue
        d = parse_record_date(record.date)
        income, expense = totals.get((d.year, d.month), (0.0, 0.0))
        if record.type == TransactionType.income:
            income += abs(record.amount)
        else:
            expense += abs(record.amount)
        totals[(d.year, d.month)] = (income, expense)
    return totals


def override_map(rows: Iterable[ManualMonthRow]) -> dict[tuple[int, int], ManualMonthRow]:
    """Key manual rows by ``(year, month 1-12)``; later rows win."""
    return {(row.year, row.month + 1): row for row in rows}


def register_years(
    years_with_data: Iterable[int], current_year: int
) -> list[int]:
    known = list(years_with_data)
    if not known:
        return [current_year]
    first = min(min(known), current_year)
    return list(range(first, current_year + 1))


def build_register(
    records: Iterable[TransactionRecord],
    overrides: Iterable[ManualMonthRow] = (),
    *,
    today: date,
    initial_balance: float = 0.0,
) -> Register:
    totals = monthly_totals(records)
    manual = override_map(overrides)
    years = register_years(
        [y for y, _ in totals] + [y for y, _ in manual], today.year
    )

    months: list[MonthTotals] = []
    for year in years:
        for month in range(1, 13):
            income, expense = totals.get((year, month), (0.0, 0.0))
            months.append(
                MonthTotals(
                    year=year,
                    month=month,
                    income=income,
                    expense=expense,
                    finished=is_month_finished(year, month, today),
                    override=manual.get((year, month)),
                )
            )

    folded = fold_running_balance(months, initial_balance)
    months_by_year: dict[int, list[MonthSummary]] = {year: [] for year in years}
    for summary in folded:
        months_by_year[summary.year].append(summary)

    year_summaries = [
        summarize_year(year, months_by_year[year], today) for year in years
    ]
    return Register(
        years=years,
        months_by_year=months_by_year,
        year_summaries=year_summaries,
        wealth=wealth_series(folded),
    )


def summarize_year(year: int, months: list[MonthSummary], today: date) -> YearSummary:
    if year >= today.year:
        return YearSummary(year=year, finished=False)
    finished = [m for m in months if m.finished]
    income = sum(m.income for m in finished)
    expense = sum(m.expense for m in finished)
    return YearSummary(
        year=year,
        income=income,
        expense=expense,
        saving=income - expense,
        final_amount=finished[-1].final_amount if finished else 0.0,
        finished=True,
    )


def select_year(years: list[int], requested: Optional[int], current_year: int) -> int:
    if requested is not None and requested in years:
        return requested
    return years[-1] if years else current_year


def year_totals(months: Iterable[MonthSummary]) -> RegisterTotals:
    finished = [m for m in months if m.finished]
    income = sum(m.income for m in finished)
    expense = sum(m.expense for m in finished)
    return RegisterTotals(
        income=income,
        expense=expense,
        saving=sum(m.saving for m in finished),
        final_amount=finished[-1].final_amount if finished else None,
    )


def global_totals(years: Iterable[YearSummary]) -> RegisterTotals:
    finished = [y for y in years if y.finished]
    return RegisterTotals(
        income=sum(y.income for y in finished),
        expense=sum(y.expense for y in finished),
        saving=sum(y.saving for y in finished),
        final_amount=finished[-1].final_amount if finished else None,
    )


def wealth_series(months: Iterable[MonthSummary]) -> list[WealthPoint]:
    points: dict[tuple[int, int], WealthPoint] = {}
    for m in months:
        if not m.finished or (m.year, m.month) in points:
            continue
        points[(m.year, m.month)] = WealthPoint(
            year=m.year,
            month=m.month,
            label=month_short_label(m.year, m.month),
            final_amount=m.final_amount,
        )
    return [points[key] for key in sorted(points)]
