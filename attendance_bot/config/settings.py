"""
Application settings management using Pydantic Settings.

Loads configuration from environment variables with type validation.
Credentials are optional at load time so that each entry point only needs
the values it actually uses; missing values raise ConfigurationError at the
call site through the ``require_*`` helpers.
"""

from functools import lru_cache
from typing import Literal, Optional
from zoneinfo import ZoneInfo

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from attendance_bot.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Azure Bot Service
    # =========================================================================
    microsoft_app_id: Optional[str] = Field(
        None, description="Microsoft Bot App ID from Azure Bot Service"
    )
    microsoft_app_password: Optional[SecretStr] = Field(
        None, description="Microsoft Bot App Password"
    )
    microsoft_app_tenant_id: Optional[str] = Field(
        None, description="Azure AD Tenant ID for single-tenant bots"
    )

    # =========================================================================
    # Microsoft Graph (Outlook mail and calendar)
    # =========================================================================
    graph_client_id: Optional[str] = Field(
        None, description="App registration Client ID for Graph API"
    )
    graph_client_secret: Optional[SecretStr] = Field(
        None, description="App registration Client Secret for Graph API"
    )
    graph_tenant_id: Optional[str] = Field(None, description="Tenant ID for Graph API")

    # =========================================================================
    # Flex HR API
    # =========================================================================
    flex_api_base: str = Field(
        default="https://openapi.flex.team/v2", description="Flex OpenAPI base URL"
    )
    flex_token_url: str = Field(
        default=(
            "https://openapi.flex.team/v2/auth/realms/open-api"
            "/protocol/openid-connect/token"
        ),
        description="Flex OAuth token endpoint",
    )
    flex_client_id: Optional[str] = Field(
        default="open-api", description="Client ID sent with Flex token requests"
    )
    flex_refresh_token: Optional[SecretStr] = Field(
        None,
        description="Static Flex refresh token, used when the token table is empty",
    )
    flex_batch_size: int = Field(
        default=50, description="Employee numbers per Flex request"
    )
    flex_work_block_name: str = Field(
        default="근무", description="Flex work block form name that carries punches"
    )

    # =========================================================================
    # Azure Table Storage
    # =========================================================================
    azure_storage_connection_string: Optional[SecretStr] = Field(
        None, description="Connection string for the Azure Table Storage account"
    )

    # =========================================================================
    # Notifications
    # =========================================================================
    hr_email: Optional[str] = Field(
        None, description="Comma-separated HR report recipients"
    )
    hr_from_email: Optional[str] = Field(
        None, description="Mailbox used as the sender of report e-mails"
    )
    team_calendar_email: Optional[str] = Field(
        None, description="Mailbox whose calendar shows approved vacations for the team"
    )
    timezone: str = Field(default="Asia/Seoul", description="Business timezone")
    token_skew_seconds: int = Field(
        default=60, description="Seconds before expiry at which tokens are refreshed"
    )

    # =========================================================================
    # Application Settings
    # =========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    webhook_api_key: Optional[SecretStr] = Field(
        None, description="Key required on the vacation approval webhook"
    )
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3978, description="Server port")

    @property
    def graph_api_base_url(self) -> str:
        """Microsoft Graph API base URL."""
        return "https://graph.microsoft.com/v1.0"

    @property
    def tz(self) -> ZoneInfo:
        """Business timezone as a tzinfo."""
        return ZoneInfo(self.timezone)

    @property
    def hr_recipients(self) -> list[str]:
        """HR report recipients parsed from ``hr_email``."""
        raw = self.hr_email or self.hr_from_email or ""
        return [addr.strip() for addr in raw.split(",") if addr.strip()]

    @property
    def team_calendar_owner(self) -> Optional[str]:
        """Mailbox for the shared vacation calendar, defaulting to HR."""
        if self.team_calendar_email:
            return self.team_calendar_email
        recipients = self.hr_recipients
        return recipients[0] if recipients else None

    @property
    def mail_sender(self) -> Optional[str]:
        """Mailbox that sends report e-mails."""
        if self.hr_from_email:
            return self.hr_from_email
        recipients = self.hr_recipients
        return recipients[0] if recipients else None

    def require_storage_connection_string(self) -> str:
        """Return the storage connection string or raise ConfigurationError."""
        if self.azure_storage_connection_string is None:
            raise ConfigurationError("AZURE_STORAGE_CONNECTION_STRING is not set")
        value = self.azure_storage_connection_string.get_secret_value()
        if not value:
            raise ConfigurationError("AZURE_STORAGE_CONNECTION_STRING is empty")
        return value

    def require_bot_credentials(self) -> tuple[str, str]:
        """Return (app_id, app_password) or raise ConfigurationError."""
        if not self.microsoft_app_id or self.microsoft_app_password is None:
            raise ConfigurationError(
                "MICROSOFT_APP_ID and MICROSOFT_APP_PASSWORD must be set"
            )
        return self.microsoft_app_id, self.microsoft_app_password.get_secret_value()

    def require_graph_credentials(self) -> tuple[str, str, str]:
        """Return (tenant_id, client_id, client_secret) or raise ConfigurationError."""
        if (
            not self.graph_tenant_id
            or not self.graph_client_id
            or self.graph_client_secret is None
        ):
            raise ConfigurationError(
                "GRAPH_TENANT_ID, GRAPH_CLIENT_ID and GRAPH_CLIENT_SECRET must be set"
            )
        return (
            self.graph_tenant_id,
            self.graph_client_id,
            self.graph_client_secret.get_secret_value(),
        )

    @property
    def static_flex_refresh_token(self) -> Optional[str]:
        """Configured Flex refresh token, if any."""
        if self.flex_refresh_token is None:
            return None
        return self.flex_refresh_token.get_secret_value() or None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
