"""
Response envelope normalization for Flex.

Flex has returned record lists both bare and wrapped in several envelope
shapes. Rules are tried in order and the first one yielding a list wins.
"""

import logging
from typing import Any, Callable, Optional

from attendance_bot.exceptions import UnrecognizedResponseShape

logger = logging.getLogger(__name__)

Extractor = Callable[[Any], Optional[list]]


def _bare_list(payload: Any) -> Optional[list]:
    return payload if isinstance(payload, list) else None


def _at(*keys: str) -> Extractor:
    """Build an extractor for a list nested under ``keys``."""

    def extract(payload: Any) -> Optional[list]:
        value = payload
        for key in keys:
            if not isinstance(value, dict) or key not in value:
                return None
            value = value[key]
        return value if isinstance(value, list) else None

    return extract


EXTRACTION_RULES: list[tuple[str, Extractor]] = [
    ("bare list", _bare_list),
    ("data", _at("data")),
    ("data.items", _at("data", "items")),
    ("data.list", _at("data", "list")),
    ("data.content", _at("data", "content")),
    ("items", _at("items")),
    ("content", _at("content")),
    ("list", _at("list")),
    ("result", _at("result")),
    ("results", _at("results")),
]


def normalize_payload(payload: Any, source: str = "flex") -> list[dict]:
    """
    Extract the record list from a Flex response body.

    Args:
        payload: Decoded JSON body
        source: Label used in log lines

    Returns:
        The records; an empty body yields an empty list

    Raises:
        UnrecognizedResponseShape: No rule matched
    """
    if payload is None or payload == "":
        logger.debug(f"{source}: empty body")
        return []

    for rule_name, extract in EXTRACTION_RULES:
        records = extract(payload)
        if records is not None:
            logger.debug(f"{source}: matched envelope rule '{rule_name}' ({len(records)} records)")
            return records

    keys = sorted(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
    raise UnrecognizedResponseShape(
        f"{source}: unrecognized response shape ({keys})",
        response_data=payload,
    )
