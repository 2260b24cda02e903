"""Microsoft Graph integration (Outlook mail and calendar)."""

from .client import GraphClient

__all__ = ["GraphClient"]
