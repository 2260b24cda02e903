"""
Teams chat texts.

Teams renders bot messages as markdown, so these are plain strings with
markdown emphasis.
"""

from datetime import date
from typing import Optional

from attendance_bot.flex.schema import TimeOffUse
from attendance_bot.storage.notify_state import NotificationKind

AUTOMATED_HEADER = "**Attendance reminder (automated) / no reply needed**"

# =============================================================================
# Onboarding
# =============================================================================

ONBOARDING_TEXT = f"""{AUTOMATED_HEADER}

Hello! 👋

I'm the **attendance reminder bot**.

📌 I send you a message automatically when:
- your check-in is missing (11:05, 11:30)
- your check-out is missing (20:30, 22:00)
- something was missing today (summary at 22:10)

If you haven't linked your Flex employee number yet, send `register <employee number>`.

✅ You're all set to receive reminders!"""

MEMBER_WELCOME_TEXT = f"""{AUTOMATED_HEADER}

Hello! 👋

Welcome to the attendance reminder bot!

From now on you'll get a message whenever a check-in or check-out is missing."""


def registration_confirmed(employee_number: str) -> str:
    return f"✅ Linked employee number **{employee_number}** to your account."


REGISTRATION_USAGE = "Usage: `register <employee number>`"

# =============================================================================
# Check-in / check-out reminders
# =============================================================================

_REMINDERS = {
    NotificationKind.CHECK_IN_FIRST: (
        "📢 **Check-in reminder (first)**\n\n"
        "Your check-in for today is missing.\n"
        "Please check in when you get a chance."
    ),
    NotificationKind.CHECK_IN_FINAL: (
        "⚠️ **Check-in reminder (final)**\n\n"
        "Your check-in is still missing.\n"
        "Please check in right away!"
    ),
    NotificationKind.CHECK_OUT_FIRST: (
        "📢 **Check-out reminder (first)**\n\n"
        "Your check-out for today is missing.\n"
        "Please check out when you leave."
    ),
    NotificationKind.CHECK_OUT_FINAL: (
        "⚠️ **Check-out reminder (final)**\n\n"
        "Your check-out is still missing.\n"
        "Please check out right away!"
    ),
}


def attendance_reminder(kind: NotificationKind) -> str:
    """
    Reminder text for one pass of the check-in/out reminders.

    Raises:
        ValueError: ``kind`` is not a reminder pass
    """
    try:
        return _REMINDERS[kind]
    except KeyError:
        raise ValueError(f"{kind.value} is not a reminder kind") from None


def daily_summary(
    name: str,
    day: date,
    missing_check_in: bool,
    missing_check_out: bool,
) -> str:
    """End-of-day summary listing what is still missing."""
    issues = []
    if missing_check_in:
        issues.append("- 🔴 Check-in missing")
    if missing_check_out:
        issues.append("- 🟡 Check-out missing")

    return (
        f"📊 **Today's attendance summary**\n\n"
        f"Hello, {name}!\n\n"
        f"Missing records for **{day.isoformat()}**:\n\n"
        + "\n".join(issues)
        + "\n\nPlease remember to check in and out tomorrow! 🙏\n\n"
        "_The HR report for today is sent tomorrow at 09:00._"
    )


# =============================================================================
# Vacation reminders
# =============================================================================

def vacation_starting(name: str, time_off: TimeOffUse) -> str:
    """DM sent the evening before a vacation starts."""
    return (
        f"📅 **Vacation starts tomorrow**\n\n"
        f"Hello, {name}!\n\n"
        f"Your time off starts tomorrow. Enjoy your break! 🌴\n\n"
        f"**Details:**\n"
        f"- Type: {time_off.time_off_type or 'Annual leave'}\n"
        f"- Period: {time_off.start_date.isoformat()} ~ {time_off.end_date.isoformat()}\n"
        f"- Back on: {time_off.return_date.isoformat()}"
    )


def vacation_returning(name: str, time_off: TimeOffUse) -> str:
    """DM sent on the last day of a vacation."""
    return (
        f"🏢 **Back to work tomorrow**\n\n"
        f"Hello, {name}!\n\n"
        f"Your time off ends today and you're back on "
        f"{time_off.return_date.isoformat()}.\n\n"
        f"**Details:**\n"
        f"- Type: {time_off.time_off_type or 'Annual leave'}\n"
        f"- Period: {time_off.start_date.isoformat()} ~ {time_off.end_date.isoformat()}\n\n"
        f"Hope you had a good rest. See you tomorrow! 😊"
    )


def vacation_approved(
    name: str,
    vacation_type: str,
    start: date,
    end: date,
    reason: Optional[str] = None,
) -> str:
    """DM sent when a vacation request is approved."""
    lines = [
        "🎉 **Vacation approved**",
        "",
        f"Hello, {name}!",
        "",
        "Your vacation request has been approved.",
        "",
        "**Details:**",
        f"- Type: {vacation_type}",
        f"- Period: {start.isoformat()} ~ {end.isoformat()}",
    ]
    if reason:
        lines.append(f"- Reason: {reason}")
    lines += ["", "✅ It has been added to your Outlook calendar.", "", "Enjoy your time off! 🌴"]
    return "\n".join(lines)
