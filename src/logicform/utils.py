from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any

import orjson
import ulid

from logicform.config import FIELD_ID_PATTERN


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """SQLite hands datetimes back without tzinfo; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    return ensure_aware(dt).isoformat()


def parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str) and value:
        try:
            return ensure_aware(datetime.fromisoformat(value))
        except ValueError:
            pass
    return now_utc()


def dumps_json(value: Any) -> str:
    return orjson.dumps(value).decode("utf-8")


def loads_json(value: str | bytes | None, default: Any = None) -> Any:
    return orjson.loads(value) if value else default


def new_ulid() -> str:
    value = ulid.new()
    return getattr(value, "str", str(value))


def new_short_id() -> str:
    return secrets.token_urlsafe(8)


def generate_field_id(existing: set[str]) -> str:
    candidate = ""
    while not candidate or candidate in existing or not FIELD_ID_PATTERN.match(candidate):
        candidate = f"f_{secrets.token_hex(6)}"
    return candidate


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return isinstance(value, (list, dict)) and not value


def clean_empty(data: Any) -> Any:
    """Drop unanswered values (None, blank strings, empty containers) recursively.

    Returns None when nothing is left. Zero and False are kept.
    """
    if isinstance(data, dict):
        cleaned: Any = {key: clean_empty(value) for key, value in data.items()}
        cleaned = {key: value for key, value in cleaned.items() if not _is_empty(value)}
    elif isinstance(data, list):
        cleaned = [item for item in (clean_empty(value) for value in data) if not _is_empty(item)]
    else:
        cleaned = data
    return None if _is_empty(cleaned) else cleaned
