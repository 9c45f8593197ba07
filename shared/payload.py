"""Helpers for turning events and raw stream payloads into table rows.

A payload is whatever travels on the stream: a single UTF-8 JSON document.
Nothing here validates field contents; only the JSON syntax is checked.
"""
import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, NamedTuple, Union

from shared.errors import ParseError

UNKNOWN_EVENT_TYPE = "Unknown"

Payload = Union[str, bytes, bytearray]


class Record(NamedTuple):
    event_type: str
    document: Any
    raw: str


def decode_payload(payload: Payload) -> str:
    if isinstance(payload, (bytes, bytearray)):
        try:
            return bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"Payload is not valid UTF-8: {exc}") from exc
    return payload


def _reject_constant(name: str) -> Any:
    raise ParseError(f"Payload is not valid JSON: {name} is not a JSON value")


def parse_payload(payload: Payload) -> Any:
    try:
        return json.loads(decode_payload(payload), parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Payload is not valid JSON: {exc}") from exc


def extract_event_type(document: Any) -> str:
    value = document.get("eventType") if isinstance(document, Mapping) else None
    if value is None:
        return UNKNOWN_EVENT_TYPE
    return value if isinstance(value, str) else str(value)


def extract_timestamp(document: Any) -> str:
    value = document.get("timestamp") if isinstance(document, Mapping) else None
    if value is None:
        return datetime.now(timezone.utc).isoformat()
    return value if isinstance(value, str) else str(value)


def to_record(event_or_blob: Any) -> Record:
    """Build the row content for an event model, a mapping or a raw JSON blob.

    Raw blobs are kept byte-for-byte in ``Record.raw``; models and mappings
    are serialized first.
    """
    if hasattr(event_or_blob, "model_dump_json"):
        raw = event_or_blob.model_dump_json(by_alias=True)
    elif isinstance(event_or_blob, (str, bytes, bytearray)):
        raw = decode_payload(event_or_blob)
    elif isinstance(event_or_blob, Mapping):
        raw = json.dumps(dict(event_or_blob), default=str)
    else:
        raise ParseError(f"Unsupported event payload type: {type(event_or_blob).__name__}")

    document = parse_payload(raw)
    return Record(extract_event_type(document), document, raw)
