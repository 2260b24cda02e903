"""Exception hierarchy for the attendance bot."""

from typing import Any, Optional


class AttendanceBotError(Exception):
    """Base exception for all attendance bot errors."""


class ConfigurationError(AttendanceBotError):
    """A required setting (credential, connection string) is missing."""


class StorageError(AttendanceBotError):
    """Durable table store operation failed."""


class UpstreamError(AttendanceBotError):
    """An external API returned an error or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


# Tokens
class TokenRefreshError(UpstreamError):
    """The token endpoint rejected the request or returned no access token."""


# Flex
class FlexAPIError(UpstreamError):
    """Flex API call failed."""


class UnrecognizedResponseShape(FlexAPIError):
    """A Flex response did not match any known envelope."""


# Graph
class GraphAPIError(UpstreamError):
    """Microsoft Graph call failed."""


# Teams
class NotOnboardedError(AttendanceBotError):
    """No conversation reference exists for the account."""

    def __init__(self, account_id: str):
        super().__init__(f"No conversation reference for {account_id}")
        self.account_id = account_id
