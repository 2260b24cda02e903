"""Teams bot and proactive notification delivery."""

from .bot import AttendanceBot
from .dispatcher import DispatchResult, Notification, NotificationDispatcher
from .transport import BotTransport, create_adapter

__all__ = [
    "AttendanceBot",
    "BotTransport",
    "DispatchResult",
    "Notification",
    "NotificationDispatcher",
    "create_adapter",
]
