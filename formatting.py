"""Spanish (es-ES) presentation helpers.

Labels follow the conventions of the es-ES locale as rendered by browsers:
decimal comma, dot thousands separator from five integer digits on, trailing
euro sign. These helpers are not locale-aware beyond es-ES.
"""

from __future__ import annotations

import math
from datetime import date

MONTH_NAMES = [
    "Enero",
    "Febrero",
    "Marzo",
    "Abril",
    "Mayo",
    "Junio",
    "Julio",
    "Agosto",
    "Septiembre",
    "Octubre",
    "Noviembre",
    "Diciembre",
]

MONTH_SHORT = [
    "ene",
    "feb",
    "mar",
    "abr",
    "may",
    "jun",
    "jul",
    "ago",
    "sept",
    "oct",
    "nov",
    "dic",
]


def round_half_up(value: float) -> int:
    # Matches Math.round: halves go towards +infinity.
    return math.floor(value + 0.5)


def _finite(value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    return v if math.isfinite(v) else 0.0


def _group_thousands(integer_part: str) -> str:
    if len(integer_part) < 5:
        return integer_part
    groups: list[str] = []
    while integer_part:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    return ".".join(groups)


def format_number(value: float, decimals: int = 2) -> str:
    v = _finite(value)
    text = f"{abs(v):.{decimals}f}"
    if decimals:
        integer_part, fraction = text.split(".")
        body = f"{_group_thousands(integer_part)},{fraction}"
    else:
        body = _group_thousands(text)
    if v < 0 and float(text) != 0:
        return f"-{body}"
    return body


def format_euro(value: float, currency: str = "EUR") -> str:
    symbol = "€" if currency.upper() == "EUR" else currency.upper()
    return f"{format_number(value, 2)} {symbol}"


def format_percent(value: float, decimals: int = 1) -> str:
    return f"{_finite(value):.{decimals}f}".replace(".", ",") + "%"


def format_axis_number(value: float) -> str:
    n = round_half_up(_finite(value))
    magnitude = abs(n)
    if magnitude >= 1_000_000:
        return f"{n / 1_000_000:.1f}".replace(".", ",") + "M"
    if magnitude >= 10_000:
        return f"{round_half_up(n / 1000)}k"
    if magnitude >= 1_000:
        return f"{n / 1000:.1f}".replace(".", ",") + "k"
    return str(n)


def month_label(d: date) -> str:
    return f"{MONTH_NAMES[d.month - 1]} {d.year}"


def month_short_label(year: int, month: int) -> str:
    """``month`` is 1-12; renders e.g. ``ene 24``."""
    return f"{MONTH_SHORT[month - 1]} {year % 100:02d}"


def day_label(d: date) -> str:
    return f"{d.day:02d} de {MONTH_NAMES[d.month - 1].lower()} de {d.year}"


def short_day_label(d: date) -> str:
    return f"{d.day:02d} {MONTH_SHORT[d.month - 1]}"


def week_label(start: date, end: date) -> str:
    return f"Semana {short_day_label(start)} - {short_day_label(end)}"


def date_label(d: date) -> str:
    return f"{short_day_label(d)} {d.year}"


def axis_date_label(d: date, range_key: str) -> str:
    if range_key == "1M":
        return f"{d.day:02d}/{d.month:02d}"
    return MONTH_SHORT[d.month - 1].upper()
