"""
HTML e-mail reports for HR.
"""

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import Mapping, Optional

from attendance_bot.flex.schema import TimeOffUse
from attendance_bot.vacations import Vacationer

WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

_BASE_STYLE = """
    body { font-family: 'Segoe UI', Tahoma, Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 800px; margin: 0 auto; padding: 20px; }
    .header { background-color: #0078d4; color: white; padding: 20px; border-radius: 8px 8px 0 0; }
    .header h1 { margin: 0; font-size: 24px; }
    .content { background-color: #f9f9f9; padding: 20px; border-radius: 0 0 8px 8px; }
    .summary { background-color: white; padding: 15px; border-left: 4px solid #0078d4; margin-bottom: 20px; }
    .section h2 { color: #0078d4; font-size: 18px; border-bottom: 2px solid #0078d4; padding-bottom: 5px; }
    table { width: 100%; border-collapse: collapse; background-color: white; }
    th, td { padding: 8px; text-align: left; border: 1px solid #ddd; vertical-align: top; }
    th { background-color: #0078d4; color: white; font-weight: 600; }
    .count { font-size: 28px; font-weight: bold; color: #d13438; }
    .footer { margin-top: 20px; padding-top: 20px; border-top: 1px solid #ddd; font-size: 12px; color: #666; text-align: center; }
"""

_FOOTER = """
      <div class="footer">
        <p>This e-mail was sent automatically by the attendance bot.</p>
      </div>"""


def _document(title: str, header: str, subtitle: str, content: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <title>{escape(title)}</title>
  <style>{_BASE_STYLE}</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>{header}</h1>
      <p style="margin: 5px 0 0 0;">{escape(subtitle)}</p>
    </div>
    <div class="content">
{content}
{_FOOTER}
    </div>
  </div>
</body>
</html>"""


# =============================================================================
# Previous-day attendance report
# =============================================================================

@dataclass
class ReportRow:
    """One employee line in the attendance report."""

    name: str
    email: str


def _missing_section(title: str, rows: list[ReportRow]) -> str:
    if not rows:
        return ""
    lines = "\n".join(
        f"            <tr><td>{idx}</td><td>{escape(row.name)}</td><td>{escape(row.email)}</td></tr>"
        for idx, row in enumerate(rows, start=1)
    )
    return f"""
      <div class="section">
        <h2>{title} ({len(rows)})</h2>
        <table>
          <thead><tr><th>No.</th><th>Name</th><th>E-mail</th></tr></thead>
          <tbody>
{lines}
          </tbody>
        </table>
      </div>"""


def attendance_report_subject(day: date, total_missing: int) -> str:
    return f"[Attendance report] {day.isoformat()} missing records ({total_missing})"


def attendance_report_html(
    day: date,
    missing_check_ins: list[ReportRow],
    missing_check_outs: list[ReportRow],
) -> str:
    """
    Previous-day missing check-in/out report.

    Args:
        day: Reported date
        missing_check_ins: Employees with no check-in
        missing_check_outs: Employees checked in without a check-out

    Returns:
        Complete HTML document
    """
    total = len(missing_check_ins) + len(missing_check_outs)
    content = f"""
      <div class="summary">
        <p style="margin: 0 0 10px 0; font-size: 14px; color: #666;">Total missing records</p>
        <p class="count">{total}</p>
      </div>"""
    content += _missing_section("🔴 Check-in missing", missing_check_ins)
    content += _missing_section("🟡 Check-out missing", missing_check_outs)

    if total == 0:
        content += """
      <div class="section" style="text-align: center; padding: 40px;">
        <p style="font-size: 18px; color: #28a745;">✅ Everyone checked in and out.</p>
      </div>"""

    return _document(
        title="Daily attendance report",
        header="📋 Daily attendance report",
        subtitle=f"Attendance on {day.isoformat()}",
        content=content,
    )


# =============================================================================
# Two-week vacation report
# =============================================================================

def vacation_report_subject(year: int, week_number: int, total: int) -> str:
    return f"[Vacation report] {year} week {week_number} ({total})"


def _vacation_cell(day: date, people: list[Vacationer]) -> str:
    weekend = day.weekday() >= 5
    background = "#f9f9f9" if weekend else "white"
    color = "#999" if weekend else "#333"

    if people:
        entries = "".join(
            '<div style="background-color: #fff3cd; border-left: 3px solid #ffc107; '
            'padding: 4px; margin: 2px 0; font-size: 12px;">'
            f"<strong>{escape(person.name)}</strong><br>"
            f'<span style="color: #856404;">{escape(person.time_off_type)}</span></div>'
            for person in people
        )
    else:
        entries = '<div style="color: #ccc; font-size: 12px; text-align: center;">-</div>'

    return (
        f'<td style="background-color: {background}; min-width: 100px;">'
        f'<div style="font-weight: bold; color: {color};">{day.day}</div>{entries}</td>'
    )


def vacation_report_html(
    year: int,
    week_number: int,
    start: date,
    end: date,
    vacations: list[TimeOffUse],
    grouped: Mapping[date, list[Vacationer]],
) -> str:
    """
    Calendar-style report of vacations over two weeks.

    ``grouped`` holds every date from ``start`` to ``end`` in order, as
    returned by ``group_by_date``.
    """
    days = sorted(grouped)
    weeks = [days[i:i + 7] for i in range(0, len(days), 7)]

    rows = []
    for index, week in enumerate(weeks):
        title = "This week" if index == 0 else "Next week" if index == 1 else f"Week {index + 1}"
        rows.append(
            '<tr style="background-color: #f0f0f0;">'
            f'<td colspan="7" style="text-align: center; font-weight: bold;">{title}</td></tr>'
        )
        rows.append(
            "<tr>" + "".join(f"<th>{WEEKDAY_NAMES[d.weekday()]}</th>" for d in week) + "</tr>"
        )
        rows.append("<tr>" + "".join(_vacation_cell(d, grouped[d]) for d in week) + "</tr>")

    unique_employees = len({v.employee_number for v in vacations})
    table_rows = "".join(rows)
    content = f"""
      <div class="summary">
        <p><strong>Vacation records:</strong> {len(vacations)}</p>
        <p><strong>Employees on vacation:</strong> {unique_employees}</p>
      </div>
      <table>
        {table_rows}
      </table>"""

    return _document(
        title="Weekly vacation report",
        header=f"📅 {year} week {week_number} vacations",
        subtitle=f"{start.isoformat()} ~ {end.isoformat()}",
        content=content,
    )


# =============================================================================
# Vacation start notice
# =============================================================================

def vacation_start_subject(name: str, start: date) -> str:
    return f"[Vacation notice] {name} starts vacation tomorrow ({start.isoformat()})"


def vacation_start_html(name: str, time_off: TimeOffUse) -> str:
    """HR notice that an employee starts a vacation tomorrow."""
    time_off_type = time_off.time_off_type or "Annual leave"
    content = f"""
      <div class="section">
        <p><strong>{escape(name)}</strong> starts a vacation tomorrow.</p>
        <ul>
          <li><strong>Type:</strong> {escape(time_off_type)}</li>
          <li><strong>Period:</strong> {time_off.start_date.isoformat()} ~ {time_off.end_date.isoformat()}</li>
          <li><strong>Back on:</strong> {time_off.return_date.isoformat()}</li>
        </ul>
      </div>"""
    return _document(
        title="Vacation notice",
        header="📅 Vacation starts tomorrow",
        subtitle=name,
        content=content,
    )


# =============================================================================
# Approved vacation (team calendar event body)
# =============================================================================

def vacation_event_html(
    name: str,
    vacation_type: str,
    start: date,
    end: date,
    reason: Optional[str] = None,
) -> str:
    """Body of the shared calendar entry for an approved vacation."""
    reason_line = f"\n  <p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
    return f"""<div>
  <p><strong>Employee:</strong> {escape(name)}</p>
  <p><strong>Type:</strong> {escape(vacation_type)}</p>
  <p><strong>Period:</strong> {start.isoformat()} ~ {end.isoformat()}</p>{reason_line}
</div>"""
