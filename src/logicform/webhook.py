from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from logicform.utils import to_iso

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT = 10.0


def is_valid_webhook_url(url: str) -> bool:
    if not url:
        return False
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def build_payload(
    event: str, form: dict[str, Any], submission: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Body posted to a form's webhook.

    Submission events carry the stored values and the ids of the logic rules
    that fired for them, so receivers can tell why a field is absent.
    """
    payload: dict[str, Any] = {
        "event": event,
        "form": {
            "id": form.get("id"),
            "public_id": form.get("public_id"),
            "name": form.get("name"),
        },
    }
    if submission is not None:
        created_at = submission.get("created_at")
        payload["submission"] = {
            "id": submission.get("id"),
            "data": submission.get("data_json", {}),
            "fired_rules": list(submission.get("fired_rules", [])),
            "created_at": to_iso(created_at) if created_at else None,
        }
    return payload


async def send_webhook(
    url: str,
    event: str,
    form: dict[str, Any],
    submission: dict[str, Any] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Post one event; delivery problems are logged and reported as False."""
    if not is_valid_webhook_url(url):
        logger.warning("Skipping webhook for form %s: invalid URL %r", form.get("id"), url)
        return False

    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT, transport=transport) as client:
            response = await client.post(url, json=build_payload(event, form, submission))
            response.raise_for_status()
    except httpx.HTTPError:
        logger.exception("Webhook %s for form %s failed: %s", event, form.get("id"), url)
        return False
    logger.info("Webhook %s for form %s delivered to %s", event, form.get("id"), url)
    return True
