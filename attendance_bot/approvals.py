"""
Vacation approval webhook handling.

The HR system posts approved vacation requests; each one becomes an
all-day event on the employee's and the team's Outlook calendars plus a
Teams confirmation for the employee.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from attendance_bot.bot.dispatcher import Notification, NotificationDispatcher
from attendance_bot.exceptions import UpstreamError
from attendance_bot.graph.client import GraphClient
from attendance_bot.messages import reports
from attendance_bot.messages import teams as texts
from attendance_bot.storage.identity_map import IdentityMap

logger = logging.getLogger(__name__)

DEFAULT_VACATION_TYPE = "Annual leave"
PERSONAL_CATEGORY = "Vacation"
TEAM_CATEGORY = "Team vacation"


class VacationApproval(BaseModel):
    """Body of ``POST /api/vacation/approved``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    employee_number: str = Field(..., min_length=1, alias="employeeNumber")
    employee_name: str = Field(..., min_length=1, alias="employeeName")
    employee_email: Optional[str] = Field(None, alias="employeeEmail")
    vacation_type: Optional[str] = Field(None, alias="vacationType")
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    reason: Optional[str] = None

    @model_validator(mode="after")
    def check_period(self) -> "VacationApproval":
        if self.end_date < self.start_date:
            raise ValueError("endDate is before startDate")
        return self

    @property
    def type_label(self) -> str:
        return self.vacation_type or DEFAULT_VACATION_TYPE

    @property
    def period(self) -> str:
        return f"{self.start_date.isoformat()} ~ {self.end_date.isoformat()}"

    def all_day_window(self) -> tuple[str, str]:
        """Midnight-to-midnight bounds Graph expects for all-day events."""
        start = datetime.combine(self.start_date, time.min)
        end = datetime.combine(self.end_date + timedelta(days=1), time.min)
        return start.isoformat(), end.isoformat()


@dataclass
class ApprovalResult:
    personal_calendar: bool = False
    team_calendar: bool = False
    teams_notification: bool = False

    def to_dict(self) -> dict:
        return {
            "personalCalendar": self.personal_calendar,
            "teamCalendar": self.team_calendar,
            "teamsNotification": self.teams_notification,
        }


async def _create_event(mailer: GraphClient, owner: str, **event) -> bool:
    try:
        await mailer.create_event(user=owner, **event)
    except UpstreamError as e:
        logger.error(f"Vacation event for {owner} failed: {e}")
        return False
    return True


async def process_vacation_approval(
    approval: VacationApproval,
    identity_map: IdentityMap,
    dispatcher: Optional[NotificationDispatcher] = None,
    mailer: Optional[GraphClient] = None,
    team_calendar_owner: Optional[str] = None,
) -> ApprovalResult:
    """
    Record an approved vacation on calendars and confirm it in Teams.

    Each step is independent; a failed step is logged and reported as
    False in the result without stopping the others.

    Args:
        approval: Validated webhook body
        identity_map: Employee number to UPN mapping
        dispatcher: Teams delivery, if configured
        mailer: Graph client, if configured
        team_calendar_owner: Mailbox of the shared team calendar

    Returns:
        ApprovalResult: Which of the three steps succeeded
    """
    result = ApprovalResult()
    logger.info(
        f"Vacation approved: {approval.employee_name} ({approval.employee_number}) "
        f"{approval.type_label} {approval.period}"
    )

    upn = await identity_map.account_id_for(approval.employee_number)
    start, end = approval.all_day_window()
    subject = f"[Vacation] {approval.employee_name} - {approval.type_label}"

    if mailer is None:
        logger.warning("Outlook delivery is not configured, calendar events skipped")
    else:
        calendar_user = approval.employee_email or upn
        if calendar_user:
            result.personal_calendar = await _create_event(
                mailer,
                calendar_user,
                subject=subject,
                start=start,
                end=end,
                body=approval.reason or approval.type_label,
                show_as="oof",
                categories=[PERSONAL_CATEGORY, approval.type_label],
                is_all_day=True,
            )
        else:
            logger.warning(f"No mailbox known for {approval.employee_number}, personal event skipped")

        if team_calendar_owner:
            result.team_calendar = await _create_event(
                mailer,
                team_calendar_owner,
                subject=subject,
                start=start,
                end=end,
                body=reports.vacation_event_html(
                    approval.employee_name,
                    approval.type_label,
                    approval.start_date,
                    approval.end_date,
                    approval.reason,
                ),
                body_type="HTML",
                show_as="free",
                categories=[TEAM_CATEGORY, approval.type_label, approval.employee_name],
                is_all_day=True,
            )
        else:
            logger.warning("No team calendar mailbox configured, team event skipped")

    if upn is None:
        logger.warning(f"No account for {approval.employee_number}, Teams confirmation skipped")
    elif dispatcher is None:
        logger.warning("Teams delivery is not configured, confirmation skipped")
    else:
        sent = await dispatcher.send_many(
            [
                Notification(
                    account_id=upn,
                    body=texts.vacation_approved(
                        approval.employee_name,
                        approval.type_label,
                        approval.start_date,
                        approval.end_date,
                        approval.reason,
                    ),
                )
            ]
        )
        result.teams_notification = sent.success_count == 1

    return result
