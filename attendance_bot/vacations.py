"""
Vacation calendar grouping and query parsing.

Shared by the weekly vacation report and the vacation calendar endpoint.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional

from attendance_bot.dates import iter_dates, month_bounds
from attendance_bot.flex.schema import TimeOffUse
from attendance_bot.storage.identity_map import IdentityMapping

logger = logging.getLogger(__name__)


class InvalidRangeError(ValueError):
    """Malformed or inverted calendar query."""


@dataclass
class Vacationer:
    employee_number: str
    name: str
    time_off_type: str
    start_date: date
    end_date: date

    def to_dict(self) -> dict:
        return {
            "employeeNumber": self.employee_number,
            "employeeName": self.name,
            "vacationType": self.time_off_type,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }


def names_by_employee_number(mapping: Mapping[str, IdentityMapping]) -> dict[str, str]:
    """Display name (or UPN) per employee number, first account wins."""
    names: dict[str, str] = {}
    for account_id, entry in mapping.items():
        names.setdefault(entry.subject_id, entry.display_name or account_id)
    return names


def group_by_date(
    vacations: Iterable[TimeOffUse],
    start: date,
    end: date,
    names: Optional[Mapping[str, str]] = None,
) -> dict[date, list[Vacationer]]:
    """
    Spread time-off uses over the dates they cover.

    Every date from ``start`` to ``end`` is present in the result. An
    employee appears at most once per date.
    """
    names = names or {}
    days: dict[date, dict[str, Vacationer]] = {day: {} for day in iter_dates(start, end)}

    for time_off in vacations:
        first = max(time_off.start_date, start)
        last = min(time_off.end_date, end)
        for day in iter_dates(first, last):
            days[day].setdefault(
                time_off.employee_number,
                Vacationer(
                    employee_number=time_off.employee_number,
                    name=names.get(time_off.employee_number, time_off.employee_number),
                    time_off_type=time_off.time_off_type or "Annual leave",
                    start_date=time_off.start_date,
                    end_date=time_off.end_date,
                ),
            )

    return {day: list(people.values()) for day, people in days.items()}


def calendar_payload(grouped: Mapping[date, list[Vacationer]], start: date, end: date) -> dict:
    """JSON body of the vacation calendar endpoint."""
    vacation_days = [
        {
            "date": day.isoformat(),
            "vacationers": [v.to_dict() for v in people],
            "count": len(people),
        }
        for day, people in sorted(grouped.items())
        if people
    ]
    return {
        "success": True,
        "data": {
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "vacationDays": vacation_days,
            "totalVacationDays": len(vacation_days),
        },
    }


def parse_calendar_range(query: Mapping[str, str], today: date) -> tuple[date, date]:
    """
    Resolve the requested range from query parameters.

    ``startDate``/``endDate`` take precedence over ``year``/``month``;
    with neither, the current month is used.

    Raises:
        InvalidRangeError: Unparseable values or end before start
    """
    start_raw = query.get("startDate")
    end_raw = query.get("endDate")

    if start_raw or end_raw:
        if not (start_raw and end_raw):
            raise InvalidRangeError("startDate and endDate must be given together")
        try:
            start = date.fromisoformat(start_raw)
            end = date.fromisoformat(end_raw)
        except ValueError as e:
            raise InvalidRangeError(f"Dates must be YYYY-MM-DD: {e}") from e
    else:
        try:
            year = int(query.get("year", today.year))
            month = int(query.get("month", today.month))
        except ValueError as e:
            raise InvalidRangeError("year and month must be integers") from e
        try:
            start, end = month_bounds(year, month)
        except (ValueError, OverflowError) as e:
            raise InvalidRangeError(f"Invalid month {year}-{month}") from e

    if end < start:
        raise InvalidRangeError("endDate is before startDate")
    if (end - start).days > 92:
        raise InvalidRangeError("Range is limited to 93 days")

    logger.debug(f"Vacation calendar range {start}..{end}")
    return start, end
