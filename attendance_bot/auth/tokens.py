"""
Access token cache for the Flex and Microsoft Graph credential flows.

The cache is an explicit object handed to the clients that need tokens, so
tests can drive it with a fake clock and a fake token endpoint.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol

import httpx
from msal import ConfidentialClientApplication

from attendance_bot.dates import utcnow
from attendance_bot.exceptions import (
    AttendanceBotError,
    ConfigurationError,
    TokenRefreshError,
)
from attendance_bot.storage.refresh_tokens import RefreshTokenStore

logger = logging.getLogger(__name__)


@dataclass
class TokenResponse:
    """Parsed token endpoint response."""

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None


@dataclass
class TokenRecord:
    """A cached access token. Never persisted."""

    access_token: str
    expires_at: datetime

    def is_usable(self, now: datetime, skew: timedelta) -> bool:
        """Whether the token still has more than ``skew`` of lifetime left."""
        return now < self.expires_at - skew


class TokenEndpoint(Protocol):
    """Something that can mint a new access token."""

    uses_refresh_token: bool

    async def request_token(self, refresh_token: Optional[str]) -> TokenResponse:
        ...


class RefreshTokenEndpoint:
    """
    OAuth2 ``refresh_token`` grant over a form-encoded POST.

    Used for Flex, which rotates the refresh token on each call.
    """

    uses_refresh_token = True

    def __init__(
        self,
        token_url: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self._transport = transport

    async def request_token(self, refresh_token: Optional[str]) -> TokenResponse:
        """Exchange a refresh token for a new access token."""
        if not refresh_token:
            raise ConfigurationError("No refresh token available for the token request")

        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        if self.client_id:
            data["client_id"] = self.client_id
        if self.client_secret:
            data["client_secret"] = self.client_secret

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as e:
            raise TokenRefreshError(f"Token endpoint unreachable: {e!r}") from e

        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            raise TokenRefreshError(
                f"Token endpoint returned {response.status_code}",
                status_code=response.status_code,
                response_data=detail,
            )

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise TokenRefreshError("Token response has no access_token", response_data=payload)

        return TokenResponse(
            access_token=access_token,
            expires_in=int(payload.get("expires_in", 300)),
            refresh_token=payload.get("refresh_token"),
        )


class MsalClientCredentialsEndpoint:
    """Client credentials flow through MSAL, used for Microsoft Graph."""

    uses_refresh_token = False

    GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        scopes: Optional[list[str]] = None,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self._client_secret = client_secret
        self.scopes = scopes or self.GRAPH_SCOPE
        self._msal_app: Optional[ConfidentialClientApplication] = None

    @property
    def msal_app(self) -> ConfidentialClientApplication:
        """Get or create MSAL confidential client application."""
        if self._msal_app is None:
            authority = f"https://login.microsoftonline.com/{self.tenant_id}"
            self._msal_app = ConfidentialClientApplication(
                client_id=self.client_id,
                client_credential=self._client_secret,
                authority=authority,
            )
        return self._msal_app

    async def request_token(self, refresh_token: Optional[str] = None) -> TokenResponse:
        """Acquire an app-only token for the configured scopes."""
        result = self.msal_app.acquire_token_for_client(scopes=self.scopes)

        if "access_token" in result:
            return TokenResponse(
                access_token=result["access_token"],
                expires_in=int(result.get("expires_in", 3599)),
            )
        error = result.get("error_description", result.get("error", "Unknown error"))
        raise TokenRefreshError(f"Failed to acquire Graph token: {error}", response_data=result)


@dataclass
class CredentialSet:
    """
    A named credential flow.

    Attributes:
        name: Cache key, e.g. "flex" or "graph"
        endpoint: Token endpoint for this flow
        refresh_store: Durable home of the rotating refresh token, if any
        static_refresh_token: Configured fallback refresh token
    """

    name: str
    endpoint: TokenEndpoint
    refresh_store: Optional[RefreshTokenStore] = None
    static_refresh_token: Optional[str] = None


class TokenCache:
    """
    In-memory access token cache with expiry-based refresh.

    Refreshes for the same credential set are serialised with a lock, so
    callers that find an expired token at the same time share one refresh.
    """

    def __init__(
        self,
        skew_seconds: int = 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the cache.

        Args:
            skew_seconds: Remaining lifetime below which a token is refreshed
            clock: Returns the current aware datetime
        """
        self.skew = timedelta(seconds=skew_seconds)
        self._clock = clock
        self._records: dict[str, TokenRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._latest_refresh_tokens: dict[str, str] = {}
        self._unpersisted: set[str] = set()

    def cached(self, name: str) -> Optional[TokenRecord]:
        """Return the cached record for a credential set, if any."""
        return self._records.get(name)

    def invalidate(self, name: str) -> None:
        """Drop the cached access token for a credential set."""
        self._records.pop(name, None)

    async def get_access_token(
        self,
        credentials: CredentialSet,
        force_refresh: bool = False,
    ) -> str:
        """
        Return a usable access token, refreshing it when needed.

        Args:
            credentials: The credential set to use
            force_refresh: Ignore the cached token

        Returns:
            str: Valid access token

        Raises:
            TokenRefreshError: The token endpoint failed (not retried here)
        """
        record = self._records.get(credentials.name)
        if not force_refresh and record and record.is_usable(self._clock(), self.skew):
            return record.access_token

        lock = self._locks.setdefault(credentials.name, asyncio.Lock())
        async with lock:
            record = self._records.get(credentials.name)
            if not force_refresh and record and record.is_usable(self._clock(), self.skew):
                return record.access_token
            return await self._refresh(credentials)

    async def _current_refresh_token(self, credentials: CredentialSet) -> Optional[str]:
        """
        Pick the refresh token to send.

        A rotated token that could not be persisted wins, since the stored
        one has already been invalidated by the vendor. Otherwise storage
        comes first, then the last token seen in memory, then settings.
        """
        name = credentials.name
        if name in self._unpersisted:
            return self._latest_refresh_tokens[name]

        if credentials.refresh_store is not None:
            stored = await credentials.refresh_store.get()
            if stored:
                return stored

        return self._latest_refresh_tokens.get(name) or credentials.static_refresh_token

    async def _refresh(self, credentials: CredentialSet) -> str:
        name = credentials.name
        refresh_token = None
        if credentials.endpoint.uses_refresh_token:
            refresh_token = await self._current_refresh_token(credentials)
            if not refresh_token:
                raise ConfigurationError(f"No refresh token configured for {name}")

        logger.info(f"Refreshing access token for {name}")
        issued_at = self._clock()
        response = await credentials.endpoint.request_token(refresh_token)

        self._records[name] = TokenRecord(
            access_token=response.access_token,
            expires_at=issued_at + timedelta(seconds=response.expires_in),
        )

        rotated = response.refresh_token
        if rotated and rotated != refresh_token:
            self._latest_refresh_tokens[name] = rotated
            await self._persist_rotated(credentials, rotated)

        logger.info(f"Access token for {name} valid for {response.expires_in}s")
        return response.access_token

    async def _persist_rotated(self, credentials: CredentialSet, refresh_token: str) -> None:
        name = credentials.name
        if credentials.refresh_store is None:
            self._unpersisted.add(name)
            return
        try:
            await credentials.refresh_store.save(refresh_token, updated_by="auto")
        except AttendanceBotError as e:
            self._unpersisted.add(name)
            logger.error(f"Failed to persist rotated refresh token for {name}: {e}")
            return
        self._unpersisted.discard(name)
