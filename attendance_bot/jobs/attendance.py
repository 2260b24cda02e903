"""
Missing check-in/out reminders and the end-of-day summary.

Each run follows the same order: resolve recipients, query Flex, drop
employees already notified for this kind today, dispatch, then mark the
successful deliveries as sent.
"""

import logging
from datetime import date
from typing import Mapping

from attendance_bot.bot.dispatcher import DispatchResult, Notification
from attendance_bot.messages import teams as texts
from attendance_bot.storage.identity_map import IdentityMap, IdentityMapping
from attendance_bot.storage.notify_state import NotificationKind

from .context import JobContext

logger = logging.getLogger(__name__)

CHECK_IN_KINDS = (NotificationKind.CHECK_IN_FIRST, NotificationKind.CHECK_IN_FINAL)
CHECK_OUT_KINDS = (NotificationKind.CHECK_OUT_FIRST, NotificationKind.CHECK_OUT_FINAL)


def accounts_by_subject(mapping: Mapping[str, IdentityMapping]) -> dict[str, str]:
    """Employee number to UPN, first account seen wins."""
    accounts: dict[str, str] = {}
    for account_id, entry in mapping.items():
        accounts.setdefault(entry.subject_id, account_id)
    return accounts


def display_name(mapping: Mapping[str, IdentityMapping], account_id: str) -> str:
    entry = mapping.get(account_id)
    return (entry.display_name if entry else None) or account_id


async def notify_once(
    ctx: JobContext,
    kind: NotificationKind,
    day: date,
    mapping: Mapping[str, IdentityMapping],
    bodies: Mapping[str, str],
) -> DispatchResult:
    """
    Send ``bodies`` (keyed by employee number) unless already sent today.

    Only successful deliveries are recorded in the ledger, so failed and
    not-onboarded recipients stay eligible for the next pass.
    """
    dispatcher = ctx.require_dispatcher()
    unsent = await ctx.ledger.filter_unsent(day, bodies.keys(), kind)
    if not unsent:
        logger.info(f"All notifications already sent ({kind.value})")
        return DispatchResult()

    accounts = accounts_by_subject(mapping)
    notifications = []
    subject_by_account = {}
    for subject_id in unsent:
        account_id = accounts.get(subject_id)
        if account_id is None:
            logger.warning(f"Employee number {subject_id} is not mapped to an account")
            continue
        notifications.append(Notification(account_id=account_id, body=bodies[subject_id]))
        subject_by_account[account_id] = subject_id

    result = await dispatcher.send_many(notifications)

    delivered = [subject_by_account[a] for a in result.succeeded_account_ids]
    if delivered:
        await ctx.ledger.mark_many_sent(day, delivered, kind)

    if result.not_onboarded_account_ids:
        logger.warning(
            f"Not onboarded (must message the bot first): "
            f"{', '.join(result.not_onboarded_account_ids)}"
        )
    return result


async def _load_recipients(ctx: JobContext) -> tuple[dict[str, IdentityMapping], list[str]]:
    mapping = await ctx.identity_map.resolve_all()
    subject_ids = IdentityMap.subject_ids_of(mapping)
    if not subject_ids:
        logger.warning("Employee map is empty")
    return mapping, subject_ids


async def run_missing_check_in(ctx: JobContext, kind: NotificationKind) -> DispatchResult:
    """
    Remind employees who have not checked in today.

    Args:
        ctx: Job dependencies
        kind: CHECK_IN_FIRST (11:05) or CHECK_IN_FINAL (11:30)
    """
    if kind not in CHECK_IN_KINDS:
        raise ValueError(f"{kind.value} is not a check-in reminder")

    today = ctx.today()
    logger.info(f"Check-in reminder {kind.value} for {today}")

    mapping, subject_ids = await _load_recipients(ctx)
    if not subject_ids:
        return DispatchResult()

    missing = await ctx.flex.get_missing_check_ins(today, subject_ids)
    if not missing:
        logger.info("No missing check-ins")
        return DispatchResult()

    body = texts.attendance_reminder(kind)
    return await notify_once(ctx, kind, today, mapping, {s: body for s in missing})


async def run_missing_check_out(ctx: JobContext, kind: NotificationKind) -> DispatchResult:
    """
    Remind employees who checked in today but have not checked out.

    Args:
        ctx: Job dependencies
        kind: CHECK_OUT_FIRST (20:30) or CHECK_OUT_FINAL (22:00)
    """
    if kind not in CHECK_OUT_KINDS:
        raise ValueError(f"{kind.value} is not a check-out reminder")

    today = ctx.today()
    logger.info(f"Check-out reminder {kind.value} for {today}")

    mapping, subject_ids = await _load_recipients(ctx)
    if not subject_ids:
        return DispatchResult()

    missing = await ctx.flex.get_missing_check_outs(today, subject_ids)
    if not missing:
        logger.info("No missing check-outs")
        return DispatchResult()

    body = texts.attendance_reminder(kind)
    return await notify_once(ctx, kind, today, mapping, {s: body for s in missing})


async def run_daily_summary(ctx: JobContext) -> DispatchResult:
    """Send each employee with a missing punch today one summary message."""
    kind = NotificationKind.DAILY_SUMMARY
    today = ctx.today()
    logger.info(f"Daily summary for {today}")

    mapping, subject_ids = await _load_recipients(ctx)
    if not subject_ids:
        return DispatchResult()

    statuses = await ctx.flex.get_attendance_statuses(today, subject_ids)
    accounts = accounts_by_subject(mapping)

    bodies = {}
    for status in statuses:
        if not (status.missing_check_in or status.missing_check_out):
            continue
        account_id = accounts.get(status.employee_number, status.employee_number)
        bodies[status.employee_number] = texts.daily_summary(
            name=display_name(mapping, account_id),
            day=today,
            missing_check_in=status.missing_check_in,
            missing_check_out=status.missing_check_out,
        )

    logger.info(f"Employees with missing records today: {len(bodies)}")
    if not bodies:
        return DispatchResult()
    return await notify_once(ctx, kind, today, mapping, bodies)
