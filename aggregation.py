from __future__ import annotations

import unicodedata
from datetime import date
from typing import Iterable, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from periods import parse_record_date
from schemas import (
    BarPoint,
    CategoryAggregate,
    CategoryBreakdown,
    PeriodSummary,
    PieSlice,
    TransactionRecord,
    TransactionType,
)

WEEK_LABELS = ["L", "M", "X", "J", "V", "S", "D"]
YEAR_LABELS = ["E", "F", "M", "A", "M", "J", "J", "A", "S", "O", "N", "D"]
GRAPH_TYPES = ("income", "expense", "saving")


def filter_for_stats(records: Iterable[TransactionRecord]) -> list[TransactionRecord]:
    """Records that count towards dashboard/stats/register figures.

    Transfers, recurring series parents, inactive rows and rows flagged
    ``excludeFromStats`` are left out.
    """
    return [
        r
        for r in records
        if r.type != TransactionType.transfer
        and r.is_recurring is False
        and r.active is not False
        and r.exclude_from_stats is not True
    ]


def sort_newest_first(records: Iterable[TransactionRecord]) -> list[TransactionRecord]:
    return sorted(records, key=lambda r: parse_record_date(r.date), reverse=True)


def group_by_category(records: Iterable[TransactionRecord]) -> CategoryBreakdown:
    income_map: dict[str, CategoryAggregate] = {}
    expense_map: dict[str, CategoryAggregate] = {}

    for record in records:
        if record.category is None:
            continue
        if record.type == TransactionType.income:
            bucket = income_map
        elif record.type == TransactionType.expense:
            bucket = expense_map
        else:
            continue

        key = record.category.name
        if key not in bucket:
            bucket[key] = CategoryAggregate(
                name=record.category.name,
                emoji=record.category.emoji,
                color=record.category.color,
            )
        bucket[key].amount += abs(record.amount)
        bucket[key].count += 1

    return CategoryBreakdown(
        incomes=sorted(income_map.values(), key=lambda c: c.amount, reverse=True),
        expenses=sorted(expense_map.values(), key=lambda c: c.amount, reverse=True),
    )


def _month_bucket(day: int) -> int:
    if day <= 7:
        return 0
    if day <= 14:
        return 1
    if day <= 21:
        return 2
    if day <= 28:
        return 3
    return 4


def record_years(records: Iterable[TransactionRecord]) -> list[int]:
    return sorted({parse_record_date(r.date).year for r in records})


def generate_bars(
    records: Iterable[TransactionRecord],
    start: Optional[date],
    end: Optional[date],
    range_type: str,
    *,
    years: Optional[Sequence[int]] = None,
) -> list[float]:
    """Bucket absolute amounts for a bar chart.

    ``week`` gives 7 day buckets counted from ``start``; ``month`` gives 5
    day-of-month spans (1-7, 8-14, 15-21, 22-28, 29+) with the last one dropped
    when empty; ``year`` gives 12 month buckets; ``all`` gives one bucket per
    year in ascending order (``years`` fixes the axis, e.g. to align two
    series). Any other range type yields no bars. Transfers never count.
    """
    if start is None or end is None:
        return []
    records = [r for r in records if r.type != TransactionType.transfer]

    if range_type == "week":
        days = [0.0] * 7
        for record in records:
            diff = (parse_record_date(record.date) - start).days
            if 0 <= diff < 7:
                days[diff] += abs(record.amount)
        return days

    if range_type == "month":
        buckets = [0.0] * 5
        for record in records:
            d = parse_record_date(record.date)
            if d < start or d > end:
                continue
            buckets[_month_bucket(d.day)] += abs(record.amount)
        if buckets[4] == 0:
            buckets.pop()
        return buckets

    if range_type == "year":
        months = [0.0] * 12
        for record in records:
            months[parse_record_date(record.date).month - 1] += abs(record.amount)
        return months

    if range_type == "all":
        axis = list(years) if years is not None else record_years(records)
        totals = {year: 0.0 for year in axis}
        for record in records:
            year = parse_record_date(record.date).year
            if year in totals:
                totals[year] += abs(record.amount)
        return [totals[year] for year in axis]

    return []


def bar_labels(
    range_type: str, bar_count: int, records: Iterable[TransactionRecord]
) -> list[str]:
    if range_type == "week":
        return list(WEEK_LABELS)
    if range_type == "month":
        return [f"S{i + 1}" for i in range(bar_count)]
    if range_type == "year":
        return list(YEAR_LABELS)
    if range_type == "all":
        return [str(year) for year in record_years(records)]
    return []


def type_bars(
    records: Sequence[TransactionRecord],
    start: Optional[date],
    end: Optional[date],
    range_type: str,
    graph_type: str,
) -> list[BarPoint]:
    """Bars for one graph tab; ``saving`` bars are income minus expense."""
    if graph_type == "saving":
        return saving_bars(records, start, end, range_type)
    wanted = TransactionType(graph_type)
    values = generate_bars(
        [r for r in records if r.type == wanted],
        start,
        end,
        range_type,
        years=record_years(records),
    )
    return [BarPoint(display=v, real=v) for v in values]


def saving_bars(
    records: Sequence[TransactionRecord],
    start: Optional[date],
    end: Optional[date],
    range_type: str,
) -> list[BarPoint]:
    years = record_years(records)
    incomes = generate_bars(
        [r for r in records if r.type == TransactionType.income],
        start,
        end,
        range_type,
        years=years,
    )
    expenses = generate_bars(
        [r for r in records if r.type == TransactionType.expense],
        start,
        end,
        range_type,
        years=years,
    )
    if range_type == "month" and len(expenses) > len(incomes):
        incomes.append(0.0)
    bars: list[BarPoint] = []
    for idx, income in enumerate(incomes):
        saving = income - (expenses[idx] if idx < len(expenses) else 0.0)
        bars.append(BarPoint(display=max(saving, 0.0), real=saving))
    return bars


def summarize(records: Iterable[TransactionRecord]) -> PeriodSummary:
    summary = PeriodSummary()
    for record in records:
        amount = abs(record.amount)
        if record.type == TransactionType.income:
            summary.total_income += amount
            if record.category is None:
                summary.uncategorized_income += amount
        elif record.type == TransactionType.expense:
            summary.total_expenses += amount
            if record.category is None:
                summary.uncategorized_expenses += amount
    summary.balance = summary.total_income - summary.total_expenses
    if summary.total_income > 0:
        summary.savings_rate = summary.balance / summary.total_income * 100
    return summary


def normalize_text(value: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFD", (value or "").lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip()


def resolve_category_name(
    names: Iterable[str], requested: Optional[str]
) -> Optional[str]:
    """Match a category filter against known names.

    Exact (accent and case insensitive) matches win; otherwise a single name
    within one edit is accepted. Ambiguous or distant filters return None.
    """
    wanted = normalize_text(requested)
    if not wanted:
        return None
    known = sorted(set(names))
    for name in known:
        if normalize_text(name) == wanted:
            return name
    best_distance: Optional[int] = None
    best: list[str] = []
    for name in known:
        dist = int(Levenshtein.distance(wanted, normalize_text(name)))
        if best_distance is None or dist < best_distance:
            best_distance = dist
            best = [name]
        elif dist == best_distance:
            best.append(name)
    if best_distance is not None and best_distance <= 1 and len(best) == 1:
        return best[0]
    return None


def filter_transactions(
    records: Iterable[TransactionRecord],
    query: Optional[str] = None,
    category_name: Optional[str] = None,
) -> list[TransactionRecord]:
    records = list(records)
    needle = normalize_text(query)
    category = None
    if normalize_text(category_name):
        category = resolve_category_name(
            (r.category.name for r in records if r.category), category_name
        )
        if category is None:
            return []
    matches: list[TransactionRecord] = []
    for record in records:
        if category is not None:
            current = record.category.name if record.category else ""
            if current != category:
                continue
        if needle:
            parts = [
                record.category.name if record.category else None,
                record.subcategory.name if record.subcategory else None,
                record.note,
                record.description,
            ]
            haystack = normalize_text(" ".join(p for p in parts if p))
            if needle not in haystack:
                continue
        matches.append(record)
    return matches


def pie_slices(
    aggregates: Iterable[CategoryAggregate], denominator: float
) -> list[PieSlice]:
    return [
        PieSlice(
            label=agg.name,
            value=agg.amount,
            real_value=agg.amount,
            color=agg.color,
            percent=(agg.amount / denominator * 100) if denominator > 0 else 0.0,
        )
        for agg in aggregates
    ]
