from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from logicform.fields import fields_from_dicts
from logicform.logic import rules_from_dicts
from logicform.projection import run_logic
from logicform.schema import check_submission, evaluate_form, initial_values
from logicform.utils import new_ulid, now_utc, to_iso
from logicform.webhook import send_webhook

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_public_form(request: Request, public_id: str) -> dict[str, Any]:
    form = request.app.state.storage.forms.get_form_by_public_id(public_id)
    if not form:
        raise HTTPException(status_code=404, detail="form not found")
    return form


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="request body is not valid JSON")


@router.get("/api/public/forms/{public_id}", tags=["public"])
async def public_form(request: Request, public_id: str) -> JSONResponse:
    form = _get_public_form(request, public_id)
    fields = fields_from_dicts(form.get("fields", []))
    rules = rules_from_dicts(form.get("logic", []))
    defaults = initial_values(fields)
    projection = run_logic(fields, rules, defaults)
    return JSONResponse(
        {
            "public_id": form["public_id"],
            "name": form.get("name", ""),
            "description": form.get("description", ""),
            "inactive": form.get("status") != "active",
            "fields": form.get("fields", []),
            "logic": form.get("logic", []),
            "settings": form.get("settings", {}),
            "initial_values": defaults,
            "projection": projection.to_dict(),
        }
    )


@router.post("/api/public/forms/{public_id}/logic/evaluate", tags=["public"])
async def public_evaluate(request: Request, public_id: str) -> JSONResponse:
    form = _get_public_form(request, public_id)
    payload = await _read_json(request)
    values = payload.get("values", {}) if isinstance(payload, dict) else None
    if not isinstance(values, dict):
        raise HTTPException(status_code=400, detail="values must be an object")
    return JSONResponse(evaluate_form(form, values))


@router.post("/api/public/forms/{public_id}/submissions", tags=["public"])
async def submit_form(request: Request, public_id: str) -> JSONResponse:
    storage = request.app.state.storage
    form = _get_public_form(request, public_id)
    if form.get("status") != "active":
        raise HTTPException(status_code=400, detail="this form is not accepting responses")
    payload = await _read_json(request)
    data = payload.get("data_json", payload) if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="data_json must be an object")

    check = check_submission(
        fields_from_dicts(form.get("fields", [])),
        rules_from_dicts(form.get("logic", [])),
        data,
    )
    if check.errors:
        logger.info("Rejected submission for form %s: %d errors", form["id"], len(check.errors))
        raise HTTPException(status_code=400, detail=check.errors)

    submission = {
        "id": new_ulid(),
        "form_id": form["id"],
        "data_json": check.data,
        "fired_rules": check.fired_rules,
        "created_at": now_utc(),
    }
    storage.submissions.create_submission(submission)
    logger.info("Stored submission %s for form %s", submission["id"], form["id"])

    if form.get("webhook_url") and form.get("webhook_on_submit"):
        await send_webhook(form["webhook_url"], "submit", form, submission)

    return JSONResponse(
        {
            "submission_id": submission["id"],
            "created_at": to_iso(submission["created_at"]),
            "data_json": check.data,
            "fired_rules": check.fired_rules,
        },
        status_code=201,
    )
