"""Shared fakes for the attendance bot test suite."""

from __future__ import annotations

import copy
from datetime import date, datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from attendance_bot.auth.tokens import CredentialSet, TokenCache, TokenResponse
from attendance_bot.config import Settings
from attendance_bot.exceptions import StorageError
from attendance_bot.flex.schema import AttendanceStatus, TimeOffUse
from attendance_bot.jobs.context import JobContext
from attendance_bot.storage.identity_map import IdentityMap
from attendance_bot.storage.notify_state import NotifyStateLedger


class InMemoryTableStore:
    """Dict-backed stand-in for TableStore."""

    def __init__(self, table_name: str = "test") -> None:
        self.table_name = table_name
        self.rows: dict[tuple[str, str], dict[str, Any]] = {}
        self.fail_writes = False
        self.failing_rows: set[str] = set()

    async def ensure_table(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get_entity(self, partition_key: str, row_key: str) -> Optional[dict]:
        entity = self.rows.get((partition_key, row_key))
        return copy.deepcopy(entity) if entity is not None else None

    async def upsert_entity(self, entity: dict, merge: bool = True) -> None:
        if self.fail_writes or entity["RowKey"] in self.failing_rows:
            raise StorageError("write failed")
        key = (entity["PartitionKey"], entity["RowKey"])
        if merge and key in self.rows:
            self.rows[key].update(copy.deepcopy(entity))
        else:
            self.rows[key] = copy.deepcopy(entity)

    async def delete_entity(self, partition_key: str, row_key: str) -> bool:
        return self.rows.pop((partition_key, row_key), None) is not None

    async def list_entities(self, partition_key: str) -> list[dict]:
        return [copy.deepcopy(e) for (pk, _), e in self.rows.items() if pk == partition_key]


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTokenEndpoint:
    """Token endpoint that rotates the refresh token on every call."""

    uses_refresh_token = True

    def __init__(self, expires_in: int = 300) -> None:
        self.expires_in = expires_in
        self.calls: list[Optional[str]] = []

    async def request_token(self, refresh_token: Optional[str]) -> TokenResponse:
        self.calls.append(refresh_token)
        n = len(self.calls)
        return TokenResponse(
            access_token=f"access-{n}",
            expires_in=self.expires_in,
            refresh_token=f"refresh-{n}",
        )


class FakeRefreshStore:
    def __init__(self, token: Optional[str] = None) -> None:
        self.token = token
        self.saved: list[tuple[str, str]] = []
        self.fail_saves = False

    async def get(self) -> Optional[str]:
        return self.token

    async def save(self, refresh_token: str, updated_by: str = "auto") -> None:
        if self.fail_saves:
            raise StorageError("table unavailable")
        self.token = refresh_token
        self.saved.append((refresh_token, updated_by))


class RecordingTransport:
    """Conversation transport that records sends and can fail on demand."""

    def __init__(self, onboarded: set[str], failing: Optional[set[str]] = None) -> None:
        self.onboarded = onboarded
        self.failing = failing or set()
        self.sent: list[tuple[str, str]] = []

    async def get_conversation_handle(self, account_id: str) -> Optional[str]:
        return account_id if account_id in self.onboarded else None

    async def send_message(self, handle: str, text: str) -> None:
        if handle in self.failing:
            raise RuntimeError("connector error")
        self.sent.append((handle, text))


class RecordingMailer:
    def __init__(self) -> None:
        self.mails: list[dict] = []
        self.events: list[dict] = []

    async def send_mail(self, to, subject, html_body, sender=None) -> None:
        self.mails.append({"to": to, "subject": subject, "html": html_body, "sender": sender})

    async def create_event(self, **kwargs) -> str:
        self.events.append(kwargs)
        return f"event-{len(self.events)}"

    async def close(self) -> None:
        return None


class FakeFlex:
    """Scriptable Flex client keyed by date."""

    def __init__(self) -> None:
        self.statuses: dict[date, list[AttendanceStatus]] = {}
        self.time_offs: dict[date, list[TimeOffUse]] = {}
        self.range_vacations: list[TimeOffUse] = []

    async def get_attendance_statuses(self, day, employee_numbers):
        wanted = set(employee_numbers)
        return [s for s in self.statuses.get(day, []) if s.employee_number in wanted]

    async def get_missing_check_ins(self, day, employee_numbers):
        statuses = await self.get_attendance_statuses(day, employee_numbers)
        return [s.employee_number for s in statuses if s.missing_check_in]

    async def get_missing_check_outs(self, day, employee_numbers):
        statuses = await self.get_attendance_statuses(day, employee_numbers)
        return [s.employee_number for s in statuses if s.missing_check_out]

    async def get_time_off_uses(self, day, employee_numbers):
        wanted = set(employee_numbers)
        return [t for t in self.time_offs.get(day, []) if t.employee_number in wanted]

    async def get_vacations_starting(self, day, employee_numbers):
        return [t for t in await self.get_time_off_uses(day, employee_numbers) if t.start_date == day]

    async def get_vacations_ending(self, day, employee_numbers):
        return [t for t in await self.get_time_off_uses(day, employee_numbers) if t.end_date == day]

    async def get_vacations_in_range(self, start, end, employee_numbers):
        return list(self.range_vacations)

    async def close(self) -> None:
        return None


def status(
    employee_number: str,
    day: date,
    check_in: Optional[str] = None,
    check_out: Optional[str] = None,
    on_vacation: bool = False,
) -> AttendanceStatus:
    return AttendanceStatus(
        employee_number=employee_number,
        work_date=day,
        has_check_in=check_in is not None,
        has_check_out=check_out is not None,
        check_in_time=check_in,
        check_out_time=check_out,
        is_on_vacation=on_vacation,
    )


def time_off(
    employee_number: str,
    start: date,
    end: date,
    kind: str = "연차",
    **extra,
) -> TimeOffUse:
    return TimeOffUse.model_validate(
        {
            "employeeNumber": employee_number,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "timeOffType": kind,
            **extra,
        }
    )


def make_settings(**overrides) -> Settings:
    values = {
        "hr_email": "hr@example.com",
        "hr_from_email": "noreply@example.com",
        "timezone": "Asia/Seoul",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def seed_employees(identity_map: IdentityMap, employees: dict[str, str]) -> None:
    for upn, employee_number in employees.items():
        await identity_map.upsert(upn, employee_number, display_name=upn.split("@")[0].title())


def make_context(
    settings: Settings,
    employee_table: InMemoryTableStore,
    ledger_table: InMemoryTableStore,
    flex: FakeFlex,
    now: datetime,
    dispatcher=None,
    mailer=None,
    token_cache: Optional[TokenCache] = None,
    flex_credentials: Optional[CredentialSet] = None,
) -> JobContext:
    clock = FakeClock(now)
    return JobContext(
        settings=settings,
        identity_map=IdentityMap(employee_table),
        ledger=NotifyStateLedger(ledger_table, clock=clock),
        flex=flex,
        token_cache=token_cache or TokenCache(clock=clock),
        flex_credentials=flex_credentials
        or CredentialSet(name="flex", endpoint=FakeTokenEndpoint()),
        dispatcher=dispatcher,
        mailer=mailer,
        clock=clock,
    )


def kst(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """An aware UTC datetime for a Korea Standard Time wall clock."""
    local = datetime(year, month, day, hour, minute, tzinfo=ZoneInfo("Asia/Seoul"))
    return local.astimezone(timezone.utc)
