from datetime import date

import pytest

from attendance_bot.storage.identity_map import IdentityMapping
from attendance_bot.vacations import (
    InvalidRangeError,
    calendar_payload,
    group_by_date,
    names_by_employee_number,
    parse_calendar_range,
)
from fakes import time_off

TODAY = date(2025, 3, 12)


def test_group_by_date_covers_every_date_and_clips() -> None:
    vacations = [
        time_off("E001", date(2025, 2, 27), date(2025, 3, 4)),
        time_off("E002", date(2025, 3, 4), date(2025, 3, 4), kind=""),
    ]

    grouped = group_by_date(vacations, date(2025, 3, 3), date(2025, 3, 6), {"E001": "Alice"})

    assert list(grouped) == [date(2025, 3, d) for d in range(3, 7)]
    assert [v.name for v in grouped[date(2025, 3, 3)]] == ["Alice"]
    assert [v.employee_number for v in grouped[date(2025, 3, 4)]] == ["E001", "E002"]
    assert grouped[date(2025, 3, 4)][1].name == "E002"
    assert grouped[date(2025, 3, 4)][1].time_off_type == "Annual leave"
    assert grouped[date(2025, 3, 5)] == []


def test_employee_listed_once_per_date() -> None:
    vacations = [
        time_off("E001", date(2025, 3, 3), date(2025, 3, 3), kind="반차"),
        time_off("E001", date(2025, 3, 3), date(2025, 3, 3), kind="외근"),
    ]

    grouped = group_by_date(vacations, date(2025, 3, 3), date(2025, 3, 3))

    assert len(grouped[date(2025, 3, 3)]) == 1


def test_names_by_employee_number_prefers_first_account() -> None:
    mapping = {
        "alice@example.com": IdentityMapping("E001", "Alice"),
        "alice2@example.com": IdentityMapping("E001", "Alice Two"),
        "bob@example.com": IdentityMapping("E002"),
    }

    assert names_by_employee_number(mapping) == {"E001": "Alice", "E002": "bob@example.com"}


def test_calendar_payload_shape() -> None:
    start, end = date(2025, 3, 3), date(2025, 3, 5)
    grouped = group_by_date([time_off("E001", start, start)], start, end, {"E001": "Alice"})

    payload = calendar_payload(grouped, start, end)

    assert payload == {
        "success": True,
        "data": {
            "startDate": "2025-03-03",
            "endDate": "2025-03-05",
            "vacationDays": [
                {
                    "date": "2025-03-03",
                    "vacationers": [
                        {
                            "employeeNumber": "E001",
                            "employeeName": "Alice",
                            "vacationType": "연차",
                            "startDate": "2025-03-03",
                            "endDate": "2025-03-03",
                        }
                    ],
                    "count": 1,
                }
            ],
            "totalVacationDays": 1,
        },
    }


def test_parse_range_defaults_to_current_month() -> None:
    assert parse_calendar_range({}, TODAY) == (date(2025, 3, 1), date(2025, 3, 31))


def test_parse_range_year_month() -> None:
    assert parse_calendar_range({"year": "2024", "month": "2"}, TODAY) == (
        date(2024, 2, 1),
        date(2024, 2, 29),
    )


def test_parse_range_explicit_dates() -> None:
    query = {"startDate": "2025-03-10", "endDate": "2025-03-20"}

    assert parse_calendar_range(query, TODAY) == (date(2025, 3, 10), date(2025, 3, 20))


@pytest.mark.parametrize(
    "query",
    [
        {"month": "13"},
        {"month": "0"},
        {"year": "0", "month": "1"},
        {"year": "9999", "month": "12"},
        {"year": "abc"},
        {"startDate": "2025-03-10"},
        {"startDate": "2025/03/10", "endDate": "2025-03-20"},
        {"startDate": "2025-03-20", "endDate": "2025-03-10"},
        {"startDate": "2025-01-01", "endDate": "2025-12-31"},
    ],
)
def test_parse_range_rejects_bad_input(query) -> None:
    with pytest.raises(InvalidRangeError):
        parse_calendar_range(query, TODAY)
