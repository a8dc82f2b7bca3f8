from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from formatting import day_label, month_label, week_label

RANGE_TYPES = ("day", "week", "month", "year", "all", "custom")

DateLike = Union[str, date, datetime]


def local_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def local_today() -> date:
    return datetime.now(local_zone()).date()


def parse_record_date(value: DateLike) -> date:
    """Calendar date of an ISO-8601 value in the configured timezone.

    Aware timestamps (``...Z`` or with an offset) are converted to local time
    first; naive timestamps and plain dates are taken as local already.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid ISO-8601 date: {value!r}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(local_zone())
    return parsed.date()


def end_of_day(d: Union[date, datetime]) -> datetime:
    day = d.date() if isinstance(d, datetime) else d
    return datetime.combine(day, time.max)


def to_iso_week_value(d: Union[date, datetime]) -> str:
    iso = (d.date() if isinstance(d, datetime) else d).isocalendar()
    return f"{iso[0]}-W{iso[1]:02d}"


def week_start_from_iso_week(value: str) -> date:
    year_part, sep, week_part = value.strip().partition("-W")
    if not sep or not year_part.isdigit() or not week_part.isdigit():
        raise ValueError(f"Invalid ISO week value: {value!r}")
    return date.fromisocalendar(int(year_part), int(week_part), 1)


def to_month_value(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def from_month_value(value: str) -> date:
    try:
        year_str, month_str = value.strip().split("-")
        return date(int(year_str), int(month_str), 1)
    except ValueError as exc:
        raise ValueError(f"Invalid month value: {value!r}") from exc


def to_date_value(d: date) -> str:
    return d.isoformat()


def from_date_value(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid date value: {value!r}") from exc


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date
    label: str = ""

    def bounds(self) -> tuple[datetime, datetime]:
        return datetime.combine(self.start, time.min), end_of_day(self.end)

    def api_params(self) -> dict[str, str]:
        zone = local_zone()
        start, end = self.bounds()
        return {
            "dateFrom": start.replace(tzinfo=zone).isoformat(),
            "dateTo": end.replace(tzinfo=zone).isoformat(),
        }

    def query_params(self) -> dict[str, str]:
        """Query string that resolves back to this period."""
        if self.slug == "all":
            return {"range": "all"}
        if self.slug == "custom":
            return {
                "range": "custom",
                "from": to_date_value(self.start),
                "to": to_date_value(self.end),
            }
        if self.slug == "week":
            value = to_iso_week_value(self.start)
        elif self.slug == "month":
            value = to_month_value(self.start)
        elif self.slug == "year":
            value = str(self.start.year)
        else:
            value = to_date_value(self.start)
        return {"range": self.slug, "value": value}


def current_month_period(today: Optional[date] = None) -> Period:
    today = today or local_today()
    return Period("month", month_start(today), month_end(today), month_label(today))


def resolve_period(
    period: Optional[str],
    value: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if not period:
        return current_month_period(today)
    if period == "all":
        return Period("all", date(1970, 1, 1), today, "Todas")
    if period == "day":
        d = from_date_value(value) if value else today
        return Period("day", d, d, day_label(d))
    if period == "week":
        first = week_start_from_iso_week(value or to_iso_week_value(today))
        last = first + timedelta(days=6)
        return Period("week", first, last, week_label(first, last))
    if period == "month":
        first = from_month_value(value) if value else month_start(today)
        return Period("month", first, month_end(first), month_label(first))
    if period == "year":
        try:
            year = int(value) if value else today.year
        except ValueError as exc:
            raise ValueError(f"Invalid year value: {value!r}") from exc
        return Period("year", date(year, 1, 1), date(year, 12, 31), str(year))
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = from_date_value(start)
        end_date = from_date_value(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        label = (
            f"{start_date.strftime('%d/%m/%Y')} - {end_date.strftime('%d/%m/%Y')}"
        )
        return Period("custom", start_date, end_date, label)
    raise ValueError(f"Unknown period type: {period!r}")
