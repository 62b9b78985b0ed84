from __future__ import annotations

import base64
import binascii
import csv
import io
from datetime import datetime
from typing import Any, Callable, Sequence

from logicform.fields import FormField, field_label
from logicform.utils import ensure_aware, to_iso

Predicate = Callable[[dict[str, Any]], bool]


def parse_query_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return ensure_aware(value)
    if not value or not isinstance(value, str):
        return None
    try:
        return ensure_aware(datetime.fromisoformat(value))
    except ValueError:
        return None


def value_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(value_to_text(item) for item in value if item is not None)
    return str(value)


def _predicates(query_params: dict[str, Any]) -> list[Predicate]:
    predicates: list[Predicate] = []

    start = parse_query_datetime(query_params.get("submitted_from"))
    if start is not None:
        predicates.append(lambda item: ensure_aware(item["created_at"]) >= start)
    end = parse_query_datetime(query_params.get("submitted_to"))
    if end is not None:
        predicates.append(lambda item: ensure_aware(item["created_at"]) <= end)

    text = str(query_params.get("q") or "").strip().lower()
    if text:
        predicates.append(
            lambda item: any(
                text in value_to_text(value).lower()
                for value in (item.get("data_json") or {}).values()
            )
        )

    # submissions for which a given logic rule fired
    rule_id = str(query_params.get("rule") or "").strip()
    if rule_id:
        predicates.append(lambda item: rule_id in (item.get("fired_rules") or []))
    return predicates


def apply_filters(
    submissions: list[dict[str, Any]], query_params: dict[str, Any]
) -> list[dict[str, Any]]:
    predicates = _predicates(query_params)
    return [item for item in submissions if all(check(item) for check in predicates)]


def encode_cursor(created_at: datetime, submission_id: str) -> str:
    raw = f"{to_iso(created_at)}|{submission_id}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, str] | None:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        created_raw, submission_id = raw.split("|", 1)
        return ensure_aware(datetime.fromisoformat(created_raw)), submission_id
    except (binascii.Error, UnicodeError, ValueError):
        return None


def _sort_key(item: dict[str, Any]) -> tuple[datetime, str]:
    return ensure_aware(item["created_at"]), item["id"]


def paginate(
    submissions: list[dict[str, Any]], cursor: tuple[datetime, str] | None, limit: int
) -> tuple[list[dict[str, Any]], str | None]:
    """Newest-first keyset pagination on (created_at, id)."""
    items = sorted(submissions, key=_sort_key, reverse=True)
    if cursor is not None:
        items = [item for item in items if _sort_key(item) < cursor]
    page = items[:limit]
    if len(items) <= limit:
        return page, None
    last = page[-1]
    return page, encode_cursor(last["created_at"], last["id"])


def csv_headers_and_rows(
    fields: Sequence[FormField], submissions: list[dict[str, Any]]
) -> tuple[list[str], list[list[str]]]:
    headers = ["submission_id", "created_at", *(field_label(field) for field in fields), "fired_rules"]
    rows = [
        [
            item.get("id", ""),
            to_iso(item["created_at"]) if isinstance(item.get("created_at"), datetime) else "",
            *(value_to_text((item.get("data_json") or {}).get(field.id)) for field in fields),
            value_to_text(item.get("fired_rules") or []),
        ]
        for item in submissions
    ]
    return headers, rows


def render_delimited(headers: list[str], rows: list[list[str]], delimiter: str = ",") -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()
