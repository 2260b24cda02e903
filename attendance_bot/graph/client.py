"""
Microsoft Graph client for Outlook mail and calendar.

Uses the app-only (client credentials) token held by the TokenCache.
"""

import logging
from typing import Any, Optional, Union

import httpx

from attendance_bot.auth.tokens import CredentialSet, TokenCache
from attendance_bot.exceptions import ConfigurationError, GraphAPIError

logger = logging.getLogger(__name__)


class GraphClient:
    """
    Client for the Graph ``sendMail`` and calendar event endpoints.

    Writes are not retried; failures surface as GraphAPIError.
    """

    GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        token_cache: TokenCache,
        credentials: CredentialSet,
        default_sender: Optional[str] = None,
        time_zone: str = "Asia/Seoul",
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_cache = token_cache
        self.credentials = credentials
        self.default_sender = default_sender
        self.time_zone = time_zone
        self.base_url = base_url or self.GRAPH_BASE_URL
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=60.0,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        token = await self.token_cache.get_access_token(self.credentials)
        client = await self._get_http_client()

        try:
            response = await client.post(
                path,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise GraphAPIError(f"Graph POST {path} failed: {e!r}") from e

        if response.status_code >= 400:
            try:
                detail = response.json()
                message = detail.get("error", {}).get("message", response.text)
            except ValueError:
                detail = response.text
                message = response.text
            raise GraphAPIError(
                f"Graph POST {path} failed ({response.status_code}): {message}",
                status_code=response.status_code,
                response_data=detail,
            )
        return response

    async def send_mail(
        self,
        to: Union[str, list[str]],
        subject: str,
        html_body: str,
        sender: Optional[str] = None,
    ) -> None:
        """
        Send an HTML e-mail from a mailbox in the tenant.

        Args:
            to: Recipient address or addresses
            subject: Subject line
            html_body: HTML body
            sender: Sending mailbox; defaults to the configured sender

        Raises:
            ConfigurationError: No sender mailbox is known
            GraphAPIError: Graph rejected the request
        """
        recipients = [to] if isinstance(to, str) else list(to)
        from_address = sender or self.default_sender
        if not from_address:
            raise ConfigurationError("No sender mailbox configured for e-mail")

        message = {
            "message": {
                "subject": subject,
                "body": {"contentType": "HTML", "content": html_body},
                "toRecipients": [
                    {"emailAddress": {"address": address}} for address in recipients
                ],
            },
            "saveToSentItems": True,
        }

        logger.info(f"Sending mail '{subject}' to {', '.join(recipients)}")
        await self._post(f"/users/{from_address}/sendMail", message)
        logger.info(f"Mail sent to {', '.join(recipients)}")

    async def create_event(
        self,
        user: str,
        subject: str,
        start: str,
        end: str,
        body: str = "",
        show_as: str = "oof",
        categories: Optional[list[str]] = None,
        is_all_day: bool = False,
        body_type: str = "Text",
    ) -> str:
        """
        Create an event on a user's default calendar.

        Args:
            user: UPN of the calendar owner
            subject: Event subject
            start: Local start, ISO 8601 without offset
            end: Local end, ISO 8601 without offset
            body: Event body
            show_as: Free/busy status
            categories: Outlook categories
            is_all_day: All-day event; start and end must be midnights
            body_type: "Text" or "HTML"

        Returns:
            str: The created event id
        """
        event = {
            "subject": subject,
            "body": {"contentType": body_type, "content": body},
            "start": {"dateTime": start, "timeZone": self.time_zone},
            "end": {"dateTime": end, "timeZone": self.time_zone},
            "showAs": show_as,
            "isAllDay": is_all_day,
            "categories": categories or [],
        }

        response = await self._post(f"/users/{user}/calendar/events", event)
        event_id = response.json().get("id", "")
        logger.info(f"Created calendar event for {user}: {subject} ({event_id})")
        return event_id
