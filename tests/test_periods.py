from datetime import date, datetime, time, timezone

import pytest

from periods import (
    Period,
    end_of_day,
    from_month_value,
    local_zone,
    month_end,
    parse_record_date,
    resolve_period,
    to_iso_week_value,
    to_month_value,
    week_start_from_iso_week,
)

TODAY = date(2024, 5, 15)


def test_iso_week_value_matches_iso_calendar() -> None:
    assert to_iso_week_value(date(2024, 1, 1)) == "2024-W01"
    # Sunday 2023-01-01 still belongs to the last ISO week of 2022.
    assert to_iso_week_value(date(2023, 1, 1)) == "2022-W52"
    assert to_iso_week_value(datetime(2024, 12, 30, 8, 0)) == "2025-W01"


def test_week_start_round_trip() -> None:
    for d in (date(2024, 1, 1), date(2024, 2, 29), date(2020, 12, 31)):
        start = week_start_from_iso_week(to_iso_week_value(d))
        assert start.weekday() == 0
        assert start <= d <= date.fromordinal(start.toordinal() + 6)


@pytest.mark.parametrize("value", ["2024", "2024-W", "W05", "2024-Wxx", "2024-W60"])
def test_week_start_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValueError):
        week_start_from_iso_week(value)


def test_month_helpers() -> None:
    assert to_month_value(date(2024, 3, 9)) == "2024-03"
    assert from_month_value("2024-03") == date(2024, 3, 1)
    assert month_end(date(2024, 2, 10)) == date(2024, 2, 29)
    assert month_end(date(2023, 12, 1)) == date(2023, 12, 31)
    with pytest.raises(ValueError):
        from_month_value("march")


def test_end_of_day_is_last_microsecond() -> None:
    assert end_of_day(date(2024, 5, 1)) == datetime.combine(date(2024, 5, 1), time.max)
    assert end_of_day(datetime(2024, 5, 1, 9, 30)).time() == time(23, 59, 59, 999999)


def test_parse_record_date_converts_aware_values_to_local_zone() -> None:
    raw = "2024-03-31T23:30:00Z"
    expected = (
        datetime(2024, 3, 31, 23, 30, tzinfo=timezone.utc).astimezone(local_zone()).date()
    )
    assert parse_record_date(raw) == expected
    assert parse_record_date("2024-03-31T23:30:00") == date(2024, 3, 31)
    assert parse_record_date("2024-03-31") == date(2024, 3, 31)
    with pytest.raises(ValueError):
        parse_record_date("yesterday")


def test_resolve_period_defaults_to_current_month() -> None:
    period = resolve_period(None, today=TODAY)
    assert period == Period("month", date(2024, 5, 1), date(2024, 5, 31), "Mayo 2024")


def test_resolve_period_week() -> None:
    period = resolve_period("week", "2024-W01", today=TODAY)
    assert period.start == date(2024, 1, 1)
    assert period.end == date(2024, 1, 7)
    assert period.label == "Semana 01 ene - 07 ene"


def test_resolve_period_all_and_year() -> None:
    everything = resolve_period("all", today=TODAY)
    assert (everything.start, everything.end, everything.label) == (
        date(1970, 1, 1),
        TODAY,
        "Todas",
    )
    year = resolve_period("year", "2023", today=TODAY)
    assert (year.start, year.end, year.label) == (date(2023, 1, 1), date(2023, 12, 31), "2023")


def test_resolve_period_custom_requires_ordered_bounds() -> None:
    period = resolve_period("custom", start="2024-02-01", end="2024-02-10", today=TODAY)
    assert period.label == "01/02/2024 - 10/02/2024"
    with pytest.raises(ValueError):
        resolve_period("custom", start="2024-02-10", end="2024-02-01", today=TODAY)
    with pytest.raises(ValueError):
        resolve_period("custom", start="2024-02-10", today=TODAY)


@pytest.mark.parametrize(
    "slug,value", [("year", "abc"), ("month", "2024/05"), ("week", "nope"), ("decade", None)]
)
def test_resolve_period_rejects_bad_input(slug: str, value) -> None:
    with pytest.raises(ValueError):
        resolve_period(slug, value, today=TODAY)


def test_api_params_cover_whole_days() -> None:
    params = resolve_period("month", "2024-05", today=TODAY).api_params()
    assert params["dateFrom"].startswith("2024-05-01T00:00:00")
    assert params["dateTo"].startswith("2024-05-31T23:59:59.999999")


def test_query_params_resolve_back_to_the_same_period() -> None:
    for args in (
        ("week", "2024-W10", None, None),
        ("month", "2024-02", None, None),
        ("year", "2022", None, None),
        ("day", "2024-05-03", None, None),
        ("custom", None, "2024-01-05", "2024-01-20"),
        ("all", None, None, None),
    ):
        period = resolve_period(*args, today=TODAY)
        params = period.query_params()
        again = resolve_period(
            params.get("range"),
            params.get("value"),
            params.get("from"),
            params.get("to"),
            today=TODAY,
        )
        assert again == period
