from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from jsonschema import Draft7Validator, FormatChecker

from logicform.evaluator import RuleResult, evaluate, fired
from logicform.fields import FieldKind, FormField, field_label, fields_from_dicts
from logicform.logic import LogicRule, rules_from_dicts
from logicform.projection import Projection, project, resolve_values
from logicform.utils import clean_empty, now_utc, to_iso


def build_property(field: FormField) -> dict[str, Any]:
    options = list(field.options)
    if field.type == FieldKind.NUMBER:
        prop: dict[str, Any] = {"type": "number"}
    elif field.type == FieldKind.EMAIL:
        prop = {"type": "string", "format": "email"}
    elif field.type == FieldKind.DATE:
        prop = {"type": "string", "format": "date"}
    elif field.type in (FieldKind.SELECT, FieldKind.RADIO):
        prop = {"type": "string", "enum": options}
    elif field.type == FieldKind.CHECKBOX:
        prop = {
            "type": "array",
            "items": {"type": "string", "enum": options},
            "uniqueItems": True,
        }
    else:
        prop = {"type": "string"}

    prop["title"] = field.label or field.id
    if field.placeholder:
        prop["x-placeholder"] = field.placeholder
    if field.type == FieldKind.TEXTAREA:
        prop["x-multiline"] = True
    if field.type == FieldKind.FILE:
        prop["x-field-type"] = "file"
    return prop


def schema_from_fields(
    fields: Sequence[FormField], projection: Projection | None = None
) -> dict[str, Any]:
    if projection is None:
        shown = list(fields)
        required = [field.id for field in fields if field.required]
    else:
        visible = set(projection.visible_ids())
        shown = [field for field in fields if field.id in visible]
        required = projection.required_ids()
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {field.id: build_property(field) for field in shown},
        "additionalProperties": False,
    }
    if required:
        schema["required"] = required
    return schema


def normalize_number(value: Any) -> Any:
    if value in (None, "") or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return value
    return int(number) if number.is_integer() else number


def coerce_values(fields: Sequence[FormField], data: Mapping[str, Any]) -> dict[str, Any]:
    kinds = {field.id: field.type for field in fields}
    coerced: dict[str, Any] = {}
    for key, value in data.items():
        kind = kinds.get(key)
        if kind == FieldKind.NUMBER:
            coerced[key] = normalize_number(value)
        elif kind == FieldKind.CHECKBOX and isinstance(value, str):
            coerced[key] = [value]
        else:
            coerced[key] = value
    return coerced


def _error_messages(
    errors: list[Any], field_map: dict[str, FormField]
) -> list[str]:
    messages: list[str] = []
    for error in errors:
        if error.validator == "required" and isinstance(error.instance, dict):
            for key in error.validator_value:
                if key not in error.instance:
                    messages.append(f"{field_label(field_map.get(key))}: this field is required")
            continue
        if error.path:
            key = str(error.path[0])
            messages.append(f"{field_label(field_map.get(key)) if key in field_map else key}: {error.message}")
        else:
            messages.append(error.message)
    # the required check reports every missing key once per error
    return list(dict.fromkeys(messages))


@dataclass(frozen=True)
class SubmissionCheck:
    data: dict[str, Any]
    errors: list[str]
    results: tuple[RuleResult, ...] = ()

    @property
    def fired_rules(self) -> list[str]:
        return [result.rule_id for result in fired(self.results)]


def check_submission(
    fields: Sequence[FormField],
    rules: Sequence[LogicRule],
    data: Mapping[str, Any],
) -> SubmissionCheck:
    """Validate submitted values with the form logic applied.

    Hidden fields are neither required nor kept, and ``setValue`` overrides
    fill fields left unanswered. The rule results are those the projection
    was built from: rules see the submitted values, including values of
    fields the projection then hides and drops.
    """
    if not isinstance(data, Mapping):
        raise TypeError(f"data must be a mapping, got {type(data).__name__}")
    cleaned = coerce_values(fields, clean_empty(dict(data)) or {})
    results = tuple(evaluate(rules, cleaned, fields))
    projection = project(fields, results)
    resolved = clean_empty(coerce_values(fields, resolve_values(cleaned, projection))) or {}

    validator = Draft7Validator(schema_from_fields(fields, projection), format_checker=FormatChecker())
    errors = sorted(validator.iter_errors(resolved), key=lambda err: list(err.path))
    field_map = {field.id: field for field in fields}
    return SubmissionCheck(data=resolved, errors=_error_messages(errors, field_map), results=results)


def validate_submission(
    fields: Sequence[FormField],
    rules: Sequence[LogicRule],
    data: Mapping[str, Any],
) -> tuple[dict[str, Any], list[str]]:
    check = check_submission(fields, rules, data)
    return check.data, check.errors


def form_document(form: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": form.get("name", ""),
        "description": form.get("description", ""),
        "fields": form.get("fields", []),
        "logic": form.get("logic", []),
        "settings": form.get("settings", {}),
    }


def sanitize_form_output(form: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": form["id"],
        "public_id": form["public_id"],
        "name": form.get("name", ""),
        "description": form.get("description", ""),
        "status": form.get("status", "inactive"),
        "fields": form.get("fields", []),
        "logic": form.get("logic", []),
        "settings": form.get("settings", {}),
        "webhook_url": form.get("webhook_url", ""),
        "webhook_on_submit": bool(form.get("webhook_on_submit")),
        "created_at": to_iso(form.get("created_at") or now_utc()),
        "updated_at": to_iso(form.get("updated_at") or now_utc()),
    }


def evaluate_form(form: dict[str, Any], values: Mapping[str, Any]) -> dict[str, Any]:
    fields = fields_from_dicts(form.get("fields", []))
    rules = rules_from_dicts(form.get("logic", []))
    coerced = coerce_values(fields, values)
    results = evaluate(rules, coerced, fields)
    projection = project(fields, results)
    return {
        "rules": [{"id": result.rule_id, "fired": result.satisfied} for result in results],
        **projection.to_dict(),
        "values": resolve_values(coerced, projection),
    }


def initial_values(fields: Sequence[FormField]) -> dict[str, Any]:
    return {field.id: field.default_value for field in fields if field.default_value is not None}
