"""
Async Flex OpenAPI client.

Wraps the work schedule and time-off endpoints and derives attendance
state (missing check-in/out, vacations) from them. Access tokens come from
the injected TokenCache.
"""

import asyncio
import logging
from datetime import date
from typing import Any, Iterable, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from attendance_bot.auth.tokens import CredentialSet, TokenCache
from attendance_bot.dates import iter_dates
from attendance_bot.exceptions import FlexAPIError

from .normalize import normalize_payload
from .schema import AttendanceStatus, TimeOffUse, WorkSchedule

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

WORK_SCHEDULES_PATH = "/users/work-schedules-with-work-clock/dates/{date}"
TIME_OFF_USES_PATH = "/users/time-off-uses/dates/{date}"


def _chunks(items: list[str], size: int) -> list[list[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class FlexClient:
    """
    Client for the Flex attendance API.

    Employee number batches larger than ``batch_size`` are split across
    several requests and the results concatenated.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        credentials: CredentialSet,
        base_url: str,
        batch_size: int = 50,
        work_block_name: str = "근무",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Flex client.

        Args:
            token_cache: Shared access token cache
            credentials: Flex credential set
            base_url: API base, e.g. https://openapi.flex.team/v2
            batch_size: Employee numbers per request
            work_block_name: Form name of the block that carries punches
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.token_cache = token_cache
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.batch_size = batch_size
        self.work_block_name = work_block_name
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send_get(self, path: str, params: list[tuple[str, str]]) -> httpx.Response:
        token = await self.token_cache.get_access_token(self.credentials)
        client = await self._get_http_client()
        return await client.get(
            path,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def _get(self, path: str, employee_numbers: list[str]) -> Any:
        """
        Authenticated GET with ``employeeNumbers[]`` repeated per id.

        Transport errors are retried, then raised as FlexAPIError along with
        HTTP error responses.
        """
        params = [("employeeNumbers[]", number) for number in employee_numbers]
        logger.debug(f"Flex GET: {path} ({len(employee_numbers)} employees)")

        try:
            response = await self._send_get(path, params)
        except httpx.HTTPError as e:
            logger.error(f"Flex GET {path} failed: {e!r}")
            raise FlexAPIError(f"Flex GET {path} failed: {e!r}") from e

        if response.status_code == 401:
            self.token_cache.invalidate(self.credentials.name)

        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            logger.error(f"Flex GET {path} failed: {response.status_code} {detail}")
            raise FlexAPIError(
                f"Flex GET {path} returned {response.status_code}",
                status_code=response.status_code,
                response_data=detail,
            )

        if not response.content:
            return None
        return response.json()

    async def _get_records(
        self,
        path: str,
        employee_numbers: Iterable[str],
        model: type[ModelT],
    ) -> list[ModelT]:
        """Fetch, unwrap and validate records across id batches."""
        employee_numbers = list(dict.fromkeys(employee_numbers))
        if not employee_numbers:
            return []

        records: list[ModelT] = []
        for batch in _chunks(employee_numbers, self.batch_size):
            payload = await self._get(path, batch)
            for raw in normalize_payload(payload, source=path):
                try:
                    records.append(model.model_validate(raw))
                except ValidationError as e:
                    logger.warning(f"Skipping malformed {model.__name__} record: {e}")
        return records

    # =========================================================================
    # Raw endpoints
    # =========================================================================

    async def get_work_schedules(
        self, day: date, employee_numbers: Iterable[str]
    ) -> list[WorkSchedule]:
        """
        Get work schedules with clock records.

        Args:
            day: Date to query
            employee_numbers: Employee numbers to include

        Returns:
            One WorkSchedule per employee Flex knows about
        """
        schedules = await self._get_records(
            WORK_SCHEDULES_PATH.format(date=day.isoformat()),
            employee_numbers,
            WorkSchedule,
        )
        logger.info(f"Fetched {len(schedules)} work schedules for {day}")
        return schedules

    async def get_time_off_uses(
        self, day: date, employee_numbers: Iterable[str]
    ) -> list[TimeOffUse]:
        """
        Get time-off uses touching a date.

        Args:
            day: Date to query
            employee_numbers: Employee numbers to include

        Returns:
            TimeOffUse records as returned by Flex
        """
        time_offs = await self._get_records(
            TIME_OFF_USES_PATH.format(date=day.isoformat()),
            employee_numbers,
            TimeOffUse,
        )
        logger.info(f"Fetched {len(time_offs)} time-off uses for {day}")
        return time_offs

    # =========================================================================
    # Attendance
    # =========================================================================

    async def get_attendance_statuses(
        self, day: date, employee_numbers: Iterable[str]
    ) -> list[AttendanceStatus]:
        """
        Join work schedules with time-off uses into attendance statuses.

        The work block named ``work_block_name`` carries the check-in
        (``blockFrom``) and check-out (``blockTo``) times. Employees whose
        time-off covers ``day`` are flagged as on vacation.
        """
        employee_numbers = list(employee_numbers)
        schedules, time_offs = await asyncio.gather(
            self.get_work_schedules(day, employee_numbers),
            self.get_time_off_uses(day, employee_numbers),
        )

        vacationers = {t.employee_number for t in time_offs if t.covers(day)}

        statuses = []
        for schedule in schedules:
            block = schedule.find_block(self.work_block_name)
            statuses.append(
                AttendanceStatus(
                    employee_number=schedule.employee_number,
                    work_date=schedule.work_date,
                    has_check_in=bool(block and block.block_from),
                    has_check_out=bool(block and block.block_to),
                    check_in_time=block.block_from if block else None,
                    check_out_time=block.block_to if block else None,
                    is_on_vacation=schedule.employee_number in vacationers,
                )
            )

        logger.info(
            f"Attendance for {day}: {len(statuses)} employees, {len(vacationers)} on vacation"
        )
        return statuses

    async def get_missing_check_ins(
        self, day: date, employee_numbers: Iterable[str]
    ) -> list[str]:
        """Employee numbers not on vacation with no check-in."""
        statuses = await self.get_attendance_statuses(day, employee_numbers)
        missing = [s.employee_number for s in statuses if s.missing_check_in]
        logger.info(f"Missing check-in on {day}: {len(missing)}/{len(statuses)}")
        return missing

    async def get_missing_check_outs(
        self, day: date, employee_numbers: Iterable[str]
    ) -> list[str]:
        """Employee numbers not on vacation, checked in, not checked out."""
        statuses = await self.get_attendance_statuses(day, employee_numbers)
        missing = [s.employee_number for s in statuses if s.missing_check_out]
        logger.info(f"Missing check-out on {day}: {len(missing)}/{len(statuses)}")
        return missing

    # =========================================================================
    # Vacations
    # =========================================================================

    async def get_vacations_in_range(
        self,
        start: date,
        end: date,
        employee_numbers: Iterable[str],
    ) -> list[TimeOffUse]:
        """
        Collect time-off uses overlapping ``start``..``end``.

        Flex only answers per date, so every date in the range is queried
        and multi-day uses are de-duplicated by
        (employee, start, end, type).
        """
        employee_numbers = list(employee_numbers)
        seen: dict[tuple, TimeOffUse] = {}
        for day in iter_dates(start, end):
            for time_off in await self.get_time_off_uses(day, employee_numbers):
                if time_off.end_date < start or time_off.start_date > end:
                    continue
                seen.setdefault(time_off.dedup_key, time_off)

        vacations = sorted(seen.values(), key=lambda t: (t.start_date, t.employee_number))
        logger.info(f"Vacations {start}..{end}: {len(vacations)}")
        return vacations

    async def get_vacations_starting(
        self, day: date, employee_numbers: Iterable[str]
    ) -> list[TimeOffUse]:
        """Time-off uses whose first day is ``day``."""
        time_offs = await self.get_time_off_uses(day, employee_numbers)
        return [t for t in time_offs if t.start_date == day]

    async def get_vacations_ending(
        self, day: date, employee_numbers: Iterable[str]
    ) -> list[TimeOffUse]:
        """Time-off uses whose last day is ``day``."""
        time_offs = await self.get_time_off_uses(day, employee_numbers)
        return [t for t in time_offs if t.end_date == day]
