"""Flex attendance API integration."""

from .client import FlexClient
from .normalize import normalize_payload
from .schema import AttendanceStatus, TimeOffUse, WorkBlock, WorkSchedule

__all__ = [
    "AttendanceStatus",
    "FlexClient",
    "TimeOffUse",
    "WorkBlock",
    "WorkSchedule",
    "normalize_payload",
]
