"""Teams message texts and HTML e-mail reports."""

from . import reports, teams

__all__ = ["reports", "teams"]
