"""
Vacation reminders and Outlook calendar sync.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

from attendance_bot.bot.dispatcher import DispatchResult, Notification
from attendance_bot.dates import is_weekend
from attendance_bot.exceptions import UpstreamError
from attendance_bot.flex.schema import TimeOffUse
from attendance_bot.messages import reports
from attendance_bot.messages import teams as texts
from attendance_bot.storage.identity_map import IdentityMap

from .attendance import accounts_by_subject, display_name
from .context import JobContext

logger = logging.getLogger(__name__)

WORKDAY_START = time(9, 0)
WORKDAY_END = time(18, 0)

EVENT_SUBJECTS = {
    "연차": "Annual leave",
    "반차": "Half day",
    "외근": "Field work",
    "재택": "Remote work",
}
EVENT_CATEGORY = "Time off"


@dataclass
class VacationReminderResult:
    starting: DispatchResult = field(default_factory=DispatchResult)
    returning: DispatchResult = field(default_factory=DispatchResult)
    hr_notices: int = 0


def _notifications(
    time_offs: list[TimeOffUse],
    accounts: dict[str, str],
    mapping: dict,
    render,
) -> list[Notification]:
    notifications = []
    for time_off in time_offs:
        account_id = accounts.get(time_off.employee_number)
        if account_id is None:
            logger.warning(
                f"Employee number {time_off.employee_number} is not mapped to an account"
            )
            continue
        body = render(display_name(mapping, account_id), time_off)
        notifications.append(Notification(account_id=account_id, body=body))
    return notifications


async def run_vacation_reminder(ctx: JobContext) -> VacationReminderResult:
    """
    Evening reminders for vacations starting or ending around tomorrow.

    Employees whose vacation starts tomorrow get a DM and HR gets one mail
    per vacation; employees whose vacation ends today get a "back tomorrow"
    DM. Nothing is sent on weekends or when tomorrow is a weekend day.
    """
    result = VacationReminderResult()
    today = ctx.today()
    tomorrow = today + timedelta(days=1)

    if is_weekend(today):
        logger.info(f"{today} is a weekend day, skipping vacation reminders")
        return result
    if is_weekend(tomorrow):
        logger.info(f"{tomorrow} is a weekend day, skipping vacation reminders")
        return result

    mapping = await ctx.identity_map.resolve_all()
    subject_ids = IdentityMap.subject_ids_of(mapping)
    if not subject_ids:
        logger.warning("Employee map is empty")
        return result

    accounts = accounts_by_subject(mapping)
    dispatcher = ctx.require_dispatcher()

    starting = await ctx.flex.get_vacations_starting(tomorrow, subject_ids)
    logger.info(f"Vacations starting {tomorrow}: {len(starting)}")
    if starting:
        result.starting = await dispatcher.send_many(
            _notifications(starting, accounts, mapping, texts.vacation_starting)
        )
        result.hr_notices = await _notify_hr(ctx, starting, accounts, mapping)

    returning = await ctx.flex.get_vacations_ending(today, subject_ids)
    logger.info(f"Vacations ending {today}: {len(returning)}")
    if returning:
        result.returning = await dispatcher.send_many(
            _notifications(returning, accounts, mapping, texts.vacation_returning)
        )

    return result


async def _notify_hr(
    ctx: JobContext,
    starting: list[TimeOffUse],
    accounts: dict[str, str],
    mapping: dict,
) -> int:
    recipients = ctx.settings.hr_recipients
    if not recipients:
        logger.warning("HR_EMAIL is not set, vacation notices not sent")
        return 0

    mailer = ctx.require_mailer()
    sent = 0
    for time_off in starting:
        account_id = accounts.get(time_off.employee_number)
        name = display_name(mapping, account_id) if account_id else time_off.employee_number
        try:
            await mailer.send_mail(
                recipients,
                reports.vacation_start_subject(name, time_off.start_date),
                reports.vacation_start_html(name, time_off),
                sender=ctx.settings.mail_sender,
            )
            sent += 1
        except UpstreamError as e:
            logger.error(f"Vacation notice for {name} failed: {e}")
    return sent


# =============================================================================
# Calendar sync
# =============================================================================

def _parse_clock(value: Optional[str], day: date) -> Optional[datetime]:
    """Interpret a Flex ``startAt``/``endAt`` value as a time on ``day``."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            return datetime.combine(day, time.fromisoformat(value))
        except ValueError:
            return None
    if parsed.date() != day:
        return None
    return parsed.replace(tzinfo=None)


def event_window(time_off: TimeOffUse, day: date) -> tuple[datetime, datetime]:
    """
    Local start/end for the event on ``day``.

    Uses the time-off's own times when they fall on ``day``, otherwise the
    regular working hours.
    """
    start = _parse_clock(time_off.start_at, day) or datetime.combine(day, WORKDAY_START)
    end = _parse_clock(time_off.end_at, day) or datetime.combine(day, WORKDAY_END)
    if end <= start:
        start = datetime.combine(day, WORKDAY_START)
        end = datetime.combine(day, WORKDAY_END)
    return start, end


def event_subject(time_off: TimeOffUse) -> str:
    for keyword, subject in EVENT_SUBJECTS.items():
        if keyword in time_off.time_off_type:
            return subject
    return EVENT_CATEGORY


async def run_vacation_calendar_sync(ctx: JobContext) -> int:
    """
    Put today's time-off uses on each employee's Outlook calendar.

    Returns:
        Number of events created
    """
    today = ctx.today()
    logger.info(f"Calendar sync for {today}")

    mapping = await ctx.identity_map.resolve_all()
    subject_ids = IdentityMap.subject_ids_of(mapping)
    if not subject_ids:
        logger.warning("Employee map is empty")
        return 0

    accounts = accounts_by_subject(mapping)
    mailer = ctx.require_mailer()
    time_offs = [t for t in await ctx.flex.get_time_off_uses(today, subject_ids) if t.covers(today)]

    created = 0
    for time_off in time_offs:
        account_id = accounts.get(time_off.employee_number)
        if account_id is None:
            logger.warning(
                f"Employee number {time_off.employee_number} is not mapped to an account"
            )
            continue

        start, end = event_window(time_off, today)
        try:
            await mailer.create_event(
                user=account_id,
                subject=event_subject(time_off),
                start=start.isoformat(),
                end=end.isoformat(),
                body=(
                    f"{time_off.time_off_type or 'Time off'}: "
                    f"{time_off.start_date.isoformat()} ~ {time_off.end_date.isoformat()}"
                ),
                categories=[EVENT_CATEGORY],
            )
            created += 1
        except UpstreamError as e:
            logger.error(f"Calendar sync failed for {account_id}: {e}")

    logger.info(f"Calendar events created: {created}/{len(time_offs)}")
    return created
