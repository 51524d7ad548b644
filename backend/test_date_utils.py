from datetime import date, datetime, timezone

import pytest

from date_utils import format_date, get_relative_time, is_today_or_later, parse_date, to_date_input_value


@pytest.mark.parametrize(
    "value",
    ["2024-01-15", "2024-01-15T10:30:00Z", "15/01/2024", "15 Jan 2024", "15 JAN 2024", date(2024, 1, 15)],
)
def test_format_date_accepts_stored_formats(value):
    assert format_date(value) == "15 Jan 2024"


def test_format_date_placeholders_and_garbage():
    assert format_date(None) == "Not specified"
    assert format_date("") == "Not specified"
    assert format_date("Not specified") == "Not specified"
    assert format_date("next tuesday") == "Invalid date"
    assert format_date("31/02/2024") == "Invalid date"
    assert format_date("15 Foo 2024") == "Invalid date"


def test_parse_date_never_raises():
    assert parse_date("1/2/2024") is None
    assert parse_date(12345) is None
    assert parse_date("2024-03-05") == datetime(2024, 3, 5)
    assert parse_date("05/03/2024") == datetime(2024, 3, 5)


def test_to_date_input_value():
    assert to_date_input_value("15 Jan 2024") == "2024-01-15"
    assert to_date_input_value("2024-01-15T23:30:00-02:00") == "2024-01-16"
    assert to_date_input_value("rubbish") == ""
    assert to_date_input_value(None) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-19", "1 day ago"),
        ("2024-01-17", "3 days ago"),
        ("2024-01-10", "2 weeks ago"),
        ("2023-12-01", "2 months ago"),
        ("2022-01-20", "2 years ago"),
        ("2024-01-20", "0 days ago"),
        ("2024-01-13", "1 weeks ago"),
        ("2023-12-21", "1 months ago"),
        ("2023-12-11", "2 months ago"),
        ("2023-01-20", "1 years ago"),
    ],
)
def test_get_relative_time(value, expected):
    assert get_relative_time(value, now=datetime(2024, 1, 20)) == expected


def test_get_relative_time_mixes_naive_and_aware():
    now = datetime(2024, 1, 20, tzinfo=timezone.utc)
    assert get_relative_time("2024-01-17", now=now) == "3 days ago"
    assert get_relative_time("2024-01-17T00:00:00Z", now=datetime(2024, 1, 20)) == "3 days ago"


def test_get_relative_time_unparseable():
    assert get_relative_time("whenever") == ""
    assert get_relative_time(None) == ""


def test_is_today_or_later():
    today = date(2024, 1, 20)
    assert is_today_or_later("2024-01-20", today)
    assert is_today_or_later("01 Feb 2024", today)
    assert not is_today_or_later("19/01/2024", today)
    assert not is_today_or_later("soon", today)
