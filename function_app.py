# Attendance Notification Bot - Function App
# Timer triggers for the scheduled reminders, reports and token rotation
# Python 3.11 / Azure Functions v2 programming model
#
# Cron expressions are local time: set WEBSITE_TIME_ZONE to the business
# timezone (e.g. "Korea Standard Time" on Windows, "Asia/Seoul" on Linux).

import logging
from typing import Awaitable, Callable

import azure.functions as func

from attendance_bot.auth import TokenCache
from attendance_bot.config import configure_logging, get_settings
from attendance_bot.jobs import (
    JobContext,
    build_job_context,
    run_attendance_report,
    run_daily_summary,
    run_missing_check_in,
    run_missing_check_out,
    run_refresh_flex_token,
    run_vacation_calendar_sync,
    run_vacation_reminder,
    run_weekly_vacation_report,
)
from attendance_bot.storage import NotificationKind

app = func.FunctionApp()

configure_logging(get_settings().log_level)
logger = logging.getLogger(__name__)

# Access tokens survive across invocations on a warm worker
TOKEN_CACHE = TokenCache(skew_seconds=get_settings().token_skew_seconds)


async def run_job(name: str, job: Callable[[JobContext], Awaitable[object]]) -> None:
    """Build a context, run ``job`` and close its clients. Failures are re-raised."""
    logger.info(f"{name} fired")
    ctx = build_job_context(token_cache=TOKEN_CACHE)
    try:
        result = await job(ctx)
        logger.info(f"{name} finished: {result}")
    except Exception as e:
        logger.error(f"{name} failed: {e}", exc_info=True)
        raise
    finally:
        await ctx.close()


# --- Check-in reminders (11:05, 11:30 weekdays) ---
@app.timer_trigger(schedule="0 5 11 * * 1-5", arg_name="timer", run_on_startup=False)
async def checkInFirst(timer: func.TimerRequest) -> None:
    await run_job(
        "checkInFirst",
        lambda ctx: run_missing_check_in(ctx, NotificationKind.CHECK_IN_FIRST),
    )


@app.timer_trigger(schedule="0 30 11 * * 1-5", arg_name="timer", run_on_startup=False)
async def checkInFinal(timer: func.TimerRequest) -> None:
    await run_job(
        "checkInFinal",
        lambda ctx: run_missing_check_in(ctx, NotificationKind.CHECK_IN_FINAL),
    )


# --- Check-out reminders (20:30, 22:00 weekdays) ---
@app.timer_trigger(schedule="0 30 20 * * 1-5", arg_name="timer", run_on_startup=False)
async def checkOutFirst(timer: func.TimerRequest) -> None:
    await run_job(
        "checkOutFirst",
        lambda ctx: run_missing_check_out(ctx, NotificationKind.CHECK_OUT_FIRST),
    )


@app.timer_trigger(schedule="0 0 22 * * 1-5", arg_name="timer", run_on_startup=False)
async def checkOutFinal(timer: func.TimerRequest) -> None:
    await run_job(
        "checkOutFinal",
        lambda ctx: run_missing_check_out(ctx, NotificationKind.CHECK_OUT_FINAL),
    )


# --- Daily summary (22:10 weekdays) ---
@app.timer_trigger(schedule="0 10 22 * * 1-5", arg_name="timer", run_on_startup=False)
async def dailySummary(timer: func.TimerRequest) -> None:
    await run_job("dailySummary", run_daily_summary)


# --- HR reports (09:00) ---
@app.timer_trigger(schedule="0 0 9 * * 1-5", arg_name="timer", run_on_startup=False)
async def attendanceReport(timer: func.TimerRequest) -> None:
    await run_job("attendanceReport", run_attendance_report)


@app.timer_trigger(schedule="0 0 9 * * 1", arg_name="timer", run_on_startup=False)
async def weeklyVacationReport(timer: func.TimerRequest) -> None:
    await run_job("weeklyVacationReport", run_weekly_vacation_report)


# --- Vacations ---
@app.timer_trigger(schedule="0 0 18 * * 1-5", arg_name="timer", run_on_startup=False)
async def vacationReminder(timer: func.TimerRequest) -> None:
    await run_job("vacationReminder", run_vacation_reminder)


@app.timer_trigger(schedule="0 0 8 * * *", arg_name="timer", run_on_startup=False)
async def vacationCalendarSync(timer: func.TimerRequest) -> None:
    await run_job("vacationCalendarSync", run_vacation_calendar_sync)


# --- Flex refresh token rotation (every 6 days) ---
@app.timer_trigger(schedule="0 0 0 */6 * *", arg_name="timer", run_on_startup=False)
async def refreshFlexToken(timer: func.TimerRequest) -> None:
    await run_job("refreshFlexToken", run_refresh_flex_token)
