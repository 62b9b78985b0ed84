from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from logicform.fields import fields_from_dicts, parse_fields
from logicform.filters import (
    apply_filters,
    csv_headers_and_rows,
    decode_cursor,
    paginate,
    render_delimited,
)
from logicform.logic import describe_rule, remove_rule, rules_from_dicts, rules_to_dicts, validate_rules
from logicform.schema import evaluate_form, form_document, sanitize_form_output
from logicform.utils import new_short_id, new_ulid, now_utc, to_iso
from logicform.webhook import is_valid_webhook_url

logger = logging.getLogger(__name__)

router = APIRouter()


def admin_guard(request: Request) -> None:
    request.app.state.auth_provider.require_admin(request)


def _get_form_or_404(storage: Any, form_id: str) -> dict[str, Any]:
    form = storage.forms.get_form(form_id)
    if not form:
        raise HTTPException(status_code=404, detail="form not found")
    return form


def _parse_definition(
    payload: dict[str, Any], current: dict[str, Any] | None = None
) -> tuple[dict[str, Any], list[str]]:
    """Validate the editable parts of a form payload.

    Only keys present in the payload end up in the returned updates. Logic is
    always checked against the field list the form will have after the
    update.
    """
    updates: dict[str, Any] = {}
    errors: list[str] = []
    warnings: list[str] = []

    if "name" in payload or current is None:
        name = str(payload.get("name", "")).strip()
        if not name:
            errors.append("name is required")
        updates["name"] = name
    if "description" in payload or current is None:
        updates["description"] = str(payload.get("description", "") or "").strip()

    fields = current.get("fields", []) if current else []
    if "fields" in payload or current is None:
        fields, field_errors = parse_fields(payload.get("fields", []))
        errors.extend(field_errors)
        updates["fields"] = fields

    if "logic" in payload or "fields" in payload or current is None:
        raw_logic = payload["logic"] if "logic" in payload else (current or {}).get("logic", [])
        logic, logic_errors, logic_warnings = validate_rules(
            raw_logic, [field["id"] for field in fields]
        )
        errors.extend(logic_errors)
        warnings.extend(logic_warnings)
        updates["logic"] = logic

    if "settings" in payload or current is None:
        settings = payload.get("settings") or {}
        if not isinstance(settings, dict):
            errors.append("settings must be an object")
        updates["settings"] = settings

    if "webhook_url" in payload:
        webhook_url = str(payload.get("webhook_url") or "").strip()
        if webhook_url and not is_valid_webhook_url(webhook_url):
            errors.append("webhook_url is not a valid http(s) URL")
        updates["webhook_url"] = webhook_url
    if "webhook_on_submit" in payload:
        updates["webhook_on_submit"] = bool(payload.get("webhook_on_submit"))

    if errors:
        raise HTTPException(status_code=400, detail=errors)
    return updates, warnings


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="request body is not valid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="request body must be a JSON object")
    return payload


def _create_form(storage: Any, payload: dict[str, Any]) -> JSONResponse:
    definition, warnings = _parse_definition(payload)
    form_id = new_ulid()
    now = now_utc()
    storage.forms.create_form(
        {
            "id": form_id,
            "public_id": new_short_id(),
            "status": "inactive",
            "webhook_url": "",
            "webhook_on_submit": False,
            **definition,
            "created_at": now,
            "updated_at": now,
        }
    )
    logger.info("Created form %s", form_id)
    form = storage.forms.get_form(form_id)
    return JSONResponse(
        {**sanitize_form_output(form or {}), "logic_warnings": warnings}, status_code=201
    )


@router.get("/healthz", tags=["system"])
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/forms", tags=["api/forms"])
async def api_list_forms(request: Request, _: Any = Depends(admin_guard)) -> JSONResponse:
    storage = request.app.state.storage
    forms = storage.forms.list_forms()
    return JSONResponse([sanitize_form_output(form) for form in forms])


@router.post("/api/forms", tags=["api/forms"])
async def api_create_form(request: Request, _: Any = Depends(admin_guard)) -> JSONResponse:
    payload = await _json_object(request)
    return _create_form(request.app.state.storage, payload)


@router.post("/api/forms/import", tags=["api/forms"])
async def api_import_form(request: Request, _: Any = Depends(admin_guard)) -> JSONResponse:
    payload = await _json_object(request)
    document = {key: payload[key] for key in ("name", "description", "fields", "logic", "settings") if key in payload}
    return _create_form(request.app.state.storage, document)


@router.get("/api/forms/{form_id}", tags=["api/forms"])
async def api_get_form(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    form = _get_form_or_404(request.app.state.storage, form_id)
    return JSONResponse(sanitize_form_output(form))


@router.put("/api/forms/{form_id}", tags=["api/forms"])
async def api_update_form(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    storage = request.app.state.storage
    form = _get_form_or_404(storage, form_id)
    payload = await _json_object(request)
    updates, warnings = _parse_definition(payload, current=form)
    if "status" in payload:
        status = str(payload.get("status") or "inactive")
        if status not in {"active", "inactive"}:
            raise HTTPException(status_code=400, detail=["status must be 'active' or 'inactive'"])
        updates["status"] = status
    updates["updated_at"] = now_utc()
    updated = storage.forms.update_form(form_id, updates)
    return JSONResponse({**sanitize_form_output(updated), "logic_warnings": warnings})


@router.delete("/api/forms/{form_id}", tags=["api/forms"])
async def api_delete_form(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    storage = request.app.state.storage
    _get_form_or_404(storage, form_id)
    storage.submissions.delete_for_form(form_id)
    storage.forms.delete_form(form_id)
    logger.info("Deleted form %s and its submissions", form_id)
    return JSONResponse({"deleted": form_id})


@router.post("/api/forms/{form_id}/publish", tags=["api/forms"])
async def api_publish_form(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    storage = request.app.state.storage
    _get_form_or_404(storage, form_id)
    storage.forms.set_status(form_id, "active")
    return JSONResponse(sanitize_form_output(_get_form_or_404(storage, form_id)))


@router.post("/api/forms/{form_id}/stop", tags=["api/forms"])
async def api_stop_form(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    storage = request.app.state.storage
    _get_form_or_404(storage, form_id)
    storage.forms.set_status(form_id, "inactive")
    return JSONResponse(sanitize_form_output(_get_form_or_404(storage, form_id)))


@router.get("/api/forms/{form_id}/export", tags=["api/forms"])
async def api_export_form(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    form = _get_form_or_404(request.app.state.storage, form_id)
    return JSONResponse(
        form_document(form),
        headers={"Content-Disposition": f"attachment; filename=form-{form_id}.json"},
    )


@router.get("/api/forms/{form_id}/logic", tags=["api/logic"])
async def api_get_logic(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    form = _get_form_or_404(request.app.state.storage, form_id)
    fields = fields_from_dicts(form.get("fields", []))
    rules = rules_from_dicts(form.get("logic", []))
    return JSONResponse(
        [
            {**rule_dict, "summary": describe_rule(rule, fields)}
            for rule, rule_dict in zip(rules, rules_to_dicts(rules))
        ]
    )


@router.put("/api/forms/{form_id}/logic", tags=["api/logic"])
async def api_replace_logic(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    storage = request.app.state.storage
    form = _get_form_or_404(storage, form_id)
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="request body is not valid JSON")
    if isinstance(payload, dict):
        if "logic" not in payload:
            raise HTTPException(status_code=400, detail="logic is required")
        raw_logic = payload["logic"]
    else:
        raw_logic = payload
    # an explicit empty list clears the rules; null does not
    if raw_logic is None:
        raise HTTPException(status_code=400, detail="logic is required")
    logic, errors, warnings = validate_rules(
        raw_logic, [field.get("id") for field in form.get("fields", [])]
    )
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    storage.forms.update_form(form_id, {"logic": logic, "updated_at": now_utc()})
    return JSONResponse({"logic": logic, "logic_warnings": warnings})


@router.delete("/api/forms/{form_id}/logic/{rule_id}", tags=["api/logic"])
async def api_delete_rule(
    request: Request, form_id: str, rule_id: str, _: Any = Depends(admin_guard)
) -> JSONResponse:
    storage = request.app.state.storage
    form = _get_form_or_404(storage, form_id)
    rules = rules_from_dicts(form.get("logic", []))
    remaining = remove_rule(rules, rule_id)
    if len(remaining) == len(rules):
        raise HTTPException(status_code=404, detail="rule not found")
    logic = rules_to_dicts(remaining)
    storage.forms.update_form(form_id, {"logic": logic, "updated_at": now_utc()})
    return JSONResponse({"logic": logic})


@router.post("/api/forms/{form_id}/logic/evaluate", tags=["api/logic"])
async def api_evaluate_logic(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    form = _get_form_or_404(request.app.state.storage, form_id)
    payload = await _json_object(request)
    values = payload.get("values", {})
    if not isinstance(values, dict):
        raise HTTPException(status_code=400, detail="values must be an object")
    return JSONResponse(evaluate_form(form, values))


def _submission_output(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": item["id"],
        "form_id": item["form_id"],
        "data_json": item.get("data_json", {}),
        "fired_rules": item.get("fired_rules", []),
        "created_at": to_iso(item["created_at"]),
    }


@router.get("/api/forms/{form_id}/submissions", tags=["api/submissions"])
async def api_list_submissions(request: Request, form_id: str, _: Any = Depends(admin_guard)) -> JSONResponse:
    """Newest first; ``q``, ``submitted_from``, ``submitted_to`` and ``rule`` narrow the list."""
    storage = request.app.state.storage
    _get_form_or_404(storage, form_id)
    params = request.query_params

    try:
        limit = max(1, int(params.get("limit", 50)))
    except ValueError:
        raise HTTPException(status_code=400, detail="limit must be an integer")
    cursor = decode_cursor(params["cursor"]) if params.get("cursor") else None
    if params.get("cursor") and cursor is None:
        raise HTTPException(status_code=400, detail="invalid cursor")

    filtered = apply_filters(storage.submissions.list_submissions(form_id), dict(params))
    page, next_cursor = paginate(filtered, cursor, limit)
    headers = {"X-Next-Cursor": next_cursor} if next_cursor else {}
    return JSONResponse([_submission_output(item) for item in page], headers=headers)


@router.get("/api/forms/{form_id}/submissions/export", tags=["api/submissions"])
async def api_export_submissions(
    request: Request, form_id: str, _: Any = Depends(admin_guard)
) -> PlainTextResponse:
    storage = request.app.state.storage
    form = _get_form_or_404(storage, form_id)
    fields = fields_from_dicts(form.get("fields", []))
    submissions = apply_filters(
        storage.submissions.list_submissions(form_id), dict(request.query_params)
    )
    headers, rows = csv_headers_and_rows(fields, submissions)

    fmt = request.query_params.get("format", "csv")
    if fmt not in {"csv", "tsv"}:
        raise HTTPException(status_code=400, detail="format must be csv or tsv")
    content = render_delimited(headers, rows, "," if fmt == "csv" else "\t")
    content_type = "text/csv" if fmt == "csv" else "text/tab-separated-values"
    return PlainTextResponse(
        content,
        media_type=content_type,
        headers={"Content-Disposition": f"attachment; filename=submissions.{fmt}"},
    )


@router.delete("/api/forms/{form_id}/submissions/{submission_id}", tags=["api/submissions"])
async def api_delete_submission(
    request: Request, form_id: str, submission_id: str, _: Any = Depends(admin_guard)
) -> JSONResponse:
    storage = request.app.state.storage
    _get_form_or_404(storage, form_id)
    submission = storage.submissions.get_submission(submission_id)
    if not submission or submission.get("form_id") != form_id:
        raise HTTPException(status_code=404, detail="submission not found")
    storage.submissions.delete_submission(submission_id)
    return JSONResponse({"deleted": submission_id})
