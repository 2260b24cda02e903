"""
HR e-mail reports: previous working day attendance and two-week vacations.
"""

import logging
from datetime import date, timedelta

from attendance_bot.dates import iso_week_number, monday_of
from attendance_bot.messages import reports
from attendance_bot.storage.identity_map import IdentityMap
from attendance_bot.vacations import group_by_date, names_by_employee_number

from .attendance import accounts_by_subject, display_name
from .context import JobContext

logger = logging.getLogger(__name__)


def previous_working_day(day: date) -> date:
    """The weekday before ``day`` (Friday for a Monday)."""
    previous = day - timedelta(days=1)
    while previous.weekday() >= 5:
        previous -= timedelta(days=1)
    return previous


async def run_attendance_report(ctx: JobContext) -> bool:
    """
    E-mail HR the missing check-ins/outs of the previous working day.

    Returns:
        True if a report was sent
    """
    report_day = previous_working_day(ctx.today())
    logger.info(f"Attendance report for {report_day}")

    mapping = await ctx.identity_map.resolve_all()
    subject_ids = IdentityMap.subject_ids_of(mapping)
    if not subject_ids:
        logger.warning("Employee map is empty")
        return False

    statuses = await ctx.flex.get_attendance_statuses(report_day, subject_ids)
    accounts = accounts_by_subject(mapping)

    def row(employee_number: str) -> reports.ReportRow:
        account_id = accounts.get(employee_number)
        if account_id is None:
            return reports.ReportRow(name=employee_number, email="")
        return reports.ReportRow(name=display_name(mapping, account_id), email=account_id)

    missing_check_ins = [row(s.employee_number) for s in statuses if s.missing_check_in]
    missing_check_outs = [row(s.employee_number) for s in statuses if s.missing_check_out]
    total = len(missing_check_ins) + len(missing_check_outs)

    logger.info(
        f"Missing on {report_day}: {len(missing_check_ins)} check-in, "
        f"{len(missing_check_outs)} check-out"
    )
    if total == 0:
        logger.info("Nothing missing, no report sent")
        return False

    recipients = ctx.settings.hr_recipients
    if not recipients:
        logger.warning("HR_EMAIL is not set, report not sent")
        return False

    await ctx.require_mailer().send_mail(
        recipients,
        reports.attendance_report_subject(report_day, total),
        reports.attendance_report_html(report_day, missing_check_ins, missing_check_outs),
        sender=ctx.settings.mail_sender,
    )
    logger.info(f"Attendance report sent to {', '.join(recipients)}")
    return True


async def run_weekly_vacation_report(ctx: JobContext) -> bool:
    """
    E-mail HR the vacations from this Monday through next Sunday.

    Returns:
        True if a report was sent
    """
    start = monday_of(ctx.today())
    end = start + timedelta(days=13)
    logger.info(f"Weekly vacation report {start}..{end}")

    mapping = await ctx.identity_map.resolve_all()
    subject_ids = IdentityMap.subject_ids_of(mapping)
    if not subject_ids:
        logger.warning("Employee map is empty")
        return False

    vacations = await ctx.flex.get_vacations_in_range(start, end, subject_ids)
    if not vacations:
        logger.info("No vacations in range, no report sent")
        return False

    recipients = ctx.settings.hr_recipients
    if not recipients:
        logger.warning("HR_EMAIL is not set, report not sent")
        return False

    year, week_number = start.isocalendar()[0], iso_week_number(start)
    grouped = group_by_date(vacations, start, end, names_by_employee_number(mapping))

    await ctx.require_mailer().send_mail(
        recipients,
        reports.vacation_report_subject(year, week_number, len(vacations)),
        reports.vacation_report_html(year, week_number, start, end, vacations, grouped),
        sender=ctx.settings.mail_sender,
    )
    logger.info(f"Vacation report ({len(vacations)} records) sent to {', '.join(recipients)}")
    return True
