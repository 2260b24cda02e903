"""Scheduled jobs run by the timer triggers."""

from .attendance import run_daily_summary, run_missing_check_in, run_missing_check_out
from .context import JobContext, build_job_context
from .reports import run_attendance_report, run_weekly_vacation_report
from .tokens import run_refresh_flex_token
from .vacation import VacationReminderResult, run_vacation_calendar_sync, run_vacation_reminder

__all__ = [
    "JobContext",
    "VacationReminderResult",
    "build_job_context",
    "run_attendance_report",
    "run_daily_summary",
    "run_missing_check_in",
    "run_missing_check_out",
    "run_refresh_flex_token",
    "run_vacation_calendar_sync",
    "run_vacation_reminder",
]
