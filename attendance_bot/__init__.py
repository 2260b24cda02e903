"""
Attendance Notification Bot for Microsoft Teams

This package polls the Flex HR attendance API and reminds employees about
missing check-ins and check-outs:
- Proactive Teams messages on a fixed daily schedule
- Duplicate suppression through a per-day sent-flag ledger
- Outlook e-mail reports for the HR team
- Vacation reminders and calendar sync
"""

__version__ = "1.0.0"
