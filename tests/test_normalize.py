import pytest

from attendance_bot.exceptions import UnrecognizedResponseShape
from attendance_bot.flex.normalize import normalize_payload

RECORD = {"employeeNumber": "E001"}


@pytest.mark.parametrize(
    "payload",
    [
        [RECORD],
        {"data": [RECORD]},
        {"data": {"items": [RECORD]}},
        {"data": {"list": [RECORD]}},
        {"data": {"content": [RECORD]}},
        {"items": [RECORD]},
        {"content": [RECORD]},
        {"list": [RECORD]},
        {"result": [RECORD]},
        {"results": [RECORD]},
    ],
)
def test_known_envelopes(payload) -> None:
    assert normalize_payload(payload) == [RECORD]


def test_first_matching_rule_wins() -> None:
    payload = {"data": [RECORD], "items": [{"employeeNumber": "E002"}]}

    assert normalize_payload(payload) == [RECORD]


def test_empty_body_is_empty_list() -> None:
    assert normalize_payload(None) == []
    assert normalize_payload("") == []
    assert normalize_payload([]) == []


def test_unknown_shape_raises_with_payload() -> None:
    payload = {"status": "ok", "records": [RECORD]}

    with pytest.raises(UnrecognizedResponseShape) as excinfo:
        normalize_payload(payload, source="/users/time-off-uses")

    assert excinfo.value.response_data == payload
    assert "records" in str(excinfo.value)


def test_non_list_data_falls_through() -> None:
    with pytest.raises(UnrecognizedResponseShape):
        normalize_payload({"data": {"employeeNumber": "E001"}})
