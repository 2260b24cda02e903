from datetime import date

import pytest
from pydantic import ValidationError

from attendance_bot.approvals import VacationApproval, process_vacation_approval
from attendance_bot.bot.dispatcher import NotificationDispatcher
from attendance_bot.exceptions import GraphAPIError
from attendance_bot.storage.identity_map import IdentityMap
from fakes import RecordingMailer, RecordingTransport, seed_employees


def approval(**overrides) -> VacationApproval:
    body = {
        "employeeNumber": "E001",
        "employeeName": "Alice",
        "vacationType": "Half day",
        "startDate": "2025-03-20",
        "endDate": "2025-03-21",
        "reason": "Family trip",
    }
    body.update(overrides)
    return VacationApproval.model_validate(body)


async def alice_only(table) -> IdentityMap:
    identity_map = IdentityMap(table)
    await seed_employees(identity_map, {"alice@example.com": "E001"})
    return identity_map


def test_approval_defaults_and_all_day_window() -> None:
    request = approval(vacationType=None, reason=None, employeeNumber=123)

    assert request.employee_number == "123"
    assert request.type_label == "Annual leave"
    assert request.start_date == date(2025, 3, 20)
    assert request.all_day_window() == ("2025-03-20T00:00:00", "2025-03-22T00:00:00")


def test_approval_requires_core_fields() -> None:
    with pytest.raises(ValidationError):
        VacationApproval.model_validate({"employeeNumber": "E001", "startDate": "2025-03-20"})
    with pytest.raises(ValidationError):
        approval(endDate="2025-03-01")


@pytest.mark.asyncio
async def test_events_and_confirmation(employee_table) -> None:
    identity_map = await alice_only(employee_table)
    transport = RecordingTransport(onboarded={"alice@example.com"})
    mailer = RecordingMailer()

    result = await process_vacation_approval(
        approval(),
        identity_map,
        dispatcher=NotificationDispatcher(transport),
        mailer=mailer,
        team_calendar_owner="team@example.com",
    )

    assert result.to_dict() == {
        "personalCalendar": True,
        "teamCalendar": True,
        "teamsNotification": True,
    }
    personal, team = mailer.events
    assert personal["user"] == "alice@example.com"
    assert personal["show_as"] == "oof"
    assert personal["is_all_day"] is True
    assert personal["start"] == "2025-03-20T00:00:00"
    assert personal["end"] == "2025-03-22T00:00:00"
    assert team["user"] == "team@example.com"
    assert team["show_as"] == "free"
    assert team["body_type"] == "HTML"
    assert "Family trip" in team["body"]
    assert "Alice" in team["categories"]
    _, text = transport.sent[0]
    assert "Vacation approved" in text
    assert "2025-03-20 ~ 2025-03-21" in text


@pytest.mark.asyncio
async def test_explicit_email_is_used_for_personal_calendar(employee_table) -> None:
    identity_map = await alice_only(employee_table)
    mailer = RecordingMailer()

    await process_vacation_approval(
        approval(employeeEmail="alice.kim@example.com"),
        identity_map,
        mailer=mailer,
    )

    assert [e["user"] for e in mailer.events] == ["alice.kim@example.com"]


@pytest.mark.asyncio
async def test_unmapped_employee_gets_no_teams_message(employee_table) -> None:
    identity_map = await alice_only(employee_table)
    transport = RecordingTransport(onboarded={"alice@example.com"})
    mailer = RecordingMailer()

    result = await process_vacation_approval(
        approval(employeeNumber="E999"),
        identity_map,
        dispatcher=NotificationDispatcher(transport),
        mailer=mailer,
        team_calendar_owner="team@example.com",
    )

    assert result.personal_calendar is False
    assert result.team_calendar is True
    assert result.teams_notification is False
    assert transport.sent == []


@pytest.mark.asyncio
async def test_calendar_failure_does_not_stop_other_steps(employee_table) -> None:
    identity_map = await alice_only(employee_table)
    class FailingFirstMailer(RecordingMailer):
        async def create_event(self, **kwargs) -> str:
            if not self.events and kwargs["user"] == "alice@example.com":
                self.events.append({"failed": kwargs["user"]})
                raise GraphAPIError("Mailbox not found", status_code=404)
            return await super().create_event(**kwargs)

    transport = RecordingTransport(onboarded={"alice@example.com"})
    mailer = FailingFirstMailer()

    result = await process_vacation_approval(
        approval(),
        identity_map,
        dispatcher=NotificationDispatcher(transport),
        mailer=mailer,
        team_calendar_owner="team@example.com",
    )

    assert result.personal_calendar is False
    assert result.team_calendar is True
    assert result.teams_notification is True
    assert mailer.events[-1]["user"] == "team@example.com"
