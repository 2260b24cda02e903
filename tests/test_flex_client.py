from datetime import date

import httpx
import pytest
from tenacity import wait_none

from attendance_bot.auth.tokens import CredentialSet, TokenCache, TokenResponse
from attendance_bot.exceptions import FlexAPIError, UnrecognizedResponseShape
from attendance_bot.flex.client import FlexClient

DAY = date(2025, 3, 3)


class StaticEndpoint:
    uses_refresh_token = False

    def __init__(self) -> None:
        self.calls = 0

    async def request_token(self, refresh_token):
        self.calls += 1
        return TokenResponse(access_token=f"flex-{self.calls}", expires_in=300)


def make_client(handler, batch_size: int = 50) -> tuple[FlexClient, StaticEndpoint]:
    endpoint = StaticEndpoint()
    client = FlexClient(
        token_cache=TokenCache(),
        credentials=CredentialSet(name="flex", endpoint=endpoint),
        base_url="https://flex.example/v2",
        batch_size=batch_size,
        transport=httpx.MockTransport(handler),
    )
    return client, endpoint


def schedule(number: str, check_in=None, check_out=None) -> dict:
    return {
        "employeeNumber": number,
        "date": DAY.isoformat(),
        "workBlocks": [
            {"formName": "휴게", "blockFrom": "12:00", "blockTo": "13:00"},
            {"formName": "근무", "blockFrom": check_in, "blockTo": check_out},
        ],
    }


@pytest.mark.asyncio
async def test_work_schedules_request_shape_and_batching() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        numbers = request.url.params.get_list("employeeNumbers[]")
        return httpx.Response(200, json={"data": [schedule(n, "09:00") for n in numbers]})

    client, _ = make_client(handler, batch_size=2)

    schedules = await client.get_work_schedules(DAY, ["E1", "E2", "E3", "E1"])
    await client.close()

    assert [s.employee_number for s in schedules] == ["E1", "E2", "E3"]
    assert len(requests) == 2
    assert requests[0].url.path == "/v2/users/work-schedules-with-work-clock/dates/2025-03-03"
    assert requests[0].url.params.get_list("employeeNumbers[]") == ["E1", "E2"]
    assert requests[1].url.params.get_list("employeeNumbers[]") == ["E3"]
    assert requests[0].headers["Authorization"] == "Bearer flex-1"


@pytest.mark.asyncio
async def test_no_employees_means_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("unexpected request")

    client, endpoint = make_client(handler)

    assert await client.get_time_off_uses(DAY, []) == []
    assert endpoint.calls == 0


@pytest.mark.asyncio
async def test_attendance_statuses_and_missing_lists() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "work-schedules" in request.url.path:
            return httpx.Response(
                200,
                json=[
                    schedule("E1", "09:00", "18:00"),
                    schedule("E2"),
                    schedule("E3", "09:10"),
                    schedule("E4"),
                ],
            )
        return httpx.Response(
            200,
            json={"items": [
                {"employeeNumber": "E4", "startDate": "2025-03-03", "endDate": "2025-03-04",
                 "timeOffType": "연차"},
            ]},
        )

    client, _ = make_client(handler)
    ids = ["E1", "E2", "E3", "E4"]

    statuses = await client.get_attendance_statuses(DAY, ids)
    by_number = {s.employee_number: s for s in statuses}

    assert by_number["E1"].check_in_time == "09:00"
    assert by_number["E1"].check_out_time == "18:00"
    assert by_number["E4"].is_on_vacation
    assert await client.get_missing_check_ins(DAY, ids) == ["E2"]
    assert await client.get_missing_check_outs(DAY, ids) == ["E3"]


@pytest.mark.asyncio
async def test_malformed_records_are_skipped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"employeeNumber": "E1", "startDate": "2025-03-03", "endDate": "2025-03-03"},
                {"employeeNumber": "E2", "startDate": "not-a-date", "endDate": "2025-03-03"},
            ],
        )

    client, _ = make_client(handler)

    time_offs = await client.get_time_off_uses(DAY, ["E1", "E2"])

    assert [t.employee_number for t in time_offs] == ["E1"]


@pytest.mark.asyncio
async def test_unauthorized_invalidates_cached_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "expired"})

    client, _ = make_client(handler)

    with pytest.raises(FlexAPIError) as excinfo:
        await client.get_work_schedules(DAY, ["E1"])

    assert excinfo.value.status_code == 401
    assert client.token_cache.cached("flex") is None


@pytest.mark.asyncio
async def test_unknown_envelope_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"payload": []})

    client, _ = make_client(handler)

    with pytest.raises(UnrecognizedResponseShape):
        await client.get_work_schedules(DAY, ["E1"])


@pytest.mark.asyncio
async def test_vacations_in_range_are_deduplicated_and_filtered() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        day = request.url.path.rsplit("/", 1)[-1]
        records = [
            {"employeeNumber": "E1", "startDate": "2025-03-03", "endDate": "2025-03-05",
             "timeOffType": "연차"},
        ]
        if day == "2025-03-04":
            records.append(
                {"employeeNumber": "E2", "startDate": "2025-03-04", "endDate": "2025-03-04",
                 "timeOffType": "반차"}
            )
            # Outside the queried range
            records.append(
                {"employeeNumber": "E3", "startDate": "2025-02-01", "endDate": "2025-02-02"}
            )
        return httpx.Response(200, json={"data": records})

    client, _ = make_client(handler)

    vacations = await client.get_vacations_in_range(
        date(2025, 3, 3), date(2025, 3, 5), ["E1", "E2", "E3"]
    )

    assert [(v.employee_number, v.start_date) for v in vacations] == [
        ("E1", date(2025, 3, 3)),
        ("E2", date(2025, 3, 4)),
    ]


@pytest.mark.asyncio
async def test_vacations_starting_and_ending() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"employeeNumber": "E1", "startDate": "2025-03-03", "endDate": "2025-03-07"},
                {"employeeNumber": "E2", "startDate": "2025-02-28", "endDate": "2025-03-03"},
            ],
        )

    client, _ = make_client(handler)

    starting = await client.get_vacations_starting(DAY, ["E1", "E2"])
    ending = await client.get_vacations_ending(DAY, ["E1", "E2"])

    assert [t.employee_number for t in starting] == ["E1"]
    assert [t.employee_number for t in ending] == ["E2"]


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_wrapped(monkeypatch) -> None:
    monkeypatch.setattr(FlexClient._send_get.retry, "wait", wait_none())
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client, _ = make_client(handler)

    with pytest.raises(FlexAPIError) as excinfo:
        await client.get_work_schedules(DAY, ["E1"])

    assert len(calls) == 3
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_transient_transport_error_recovers(monkeypatch) -> None:
    monkeypatch.setattr(FlexClient._send_get.retry, "wait", wait_none())
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, json=[schedule("E1", "09:00")])

    client, _ = make_client(handler)

    schedules = await client.get_work_schedules(DAY, ["E1"])

    assert [s.employee_number for s in schedules] == ["E1"]
    assert len(calls) == 2
