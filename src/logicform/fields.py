from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from logicform.config import CHOICE_KINDS, FIELD_ID_PATTERN, FIELD_KINDS
from logicform.utils import generate_field_id


class FieldKind(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    NUMBER = "number"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    FILE = "file"

    @property
    def is_choice(self) -> bool:
        return self.value in CHOICE_KINDS


@dataclass(frozen=True)
class FormField:
    id: str
    type: FieldKind = FieldKind.TEXT
    label: str = ""
    required: bool = False
    options: tuple[str, ...] = ()
    default_value: Any = None
    placeholder: str = ""
    hidden: bool = False


def _clean_options(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    seen: set[str] = set()
    options: list[str] = []
    for item in raw:
        if item is None:
            continue
        text = str(item).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        options.append(text)
    return options


def parse_fields(raw_fields: Any) -> tuple[list[dict[str, Any]], list[str]]:
    """Normalize field definitions coming from the editor.

    Returns the normalized field dicts together with a list of error
    messages; the field list is only safe to persist when no errors are
    reported.
    """
    if not isinstance(raw_fields, list):
        return [], ["fields must be a list"]

    errors: list[str] = []
    seen_ids: set[str] = set()
    fields: list[dict[str, Any]] = []

    for index, raw in enumerate(raw_fields, start=1):
        loc = f"field {index}"
        if not isinstance(raw, dict):
            errors.append(f"{loc}: must be an object")
            continue

        field_id = str(raw.get("id") or "").strip()
        label = str(raw.get("label") or "").strip()

        if not label:
            errors.append(f"{loc}: label is required")
        if not field_id:
            field_id = generate_field_id(seen_ids)
        if not FIELD_ID_PATTERN.match(field_id):
            errors.append(
                f"{loc}: id must start with a letter and contain only letters, digits and underscores ({field_id})"
            )
        if field_id in seen_ids:
            errors.append(f"{loc}: duplicate id ({field_id})")
        else:
            seen_ids.add(field_id)

        field_type = str(raw.get("type") or "").strip().lower()
        if field_type not in FIELD_KINDS:
            errors.append(f"{loc}: unknown field type ({field_type})")

        options = _clean_options(raw.get("options")) if field_type in CHOICE_KINDS else []
        if field_type in CHOICE_KINDS and not options:
            errors.append(f"{loc}: {field_type} fields need at least one option")

        default_value = raw.get("defaultValue", raw.get("default_value"))
        if default_value in ("", []):
            default_value = None
        if default_value is not None and options:
            defaults = default_value if isinstance(default_value, list) else [default_value]
            unknown = [str(item) for item in defaults if str(item) not in options]
            if unknown:
                errors.append(f"{loc}: default value is not one of the options ({', '.join(unknown[:3])})")

        fields.append(
            {
                "id": field_id,
                "type": field_type,
                "label": label,
                "required": bool(raw.get("required")),
                "options": options,
                "defaultValue": default_value,
                "placeholder": str(raw.get("placeholder") or "").strip(),
                "hidden": bool(raw.get("hidden")),
            }
        )

    if not fields and not errors:
        errors.append("at least one field is required")

    return fields, errors


def field_from_dict(raw: dict[str, Any]) -> FormField:
    try:
        kind = FieldKind(str(raw.get("type") or "text").lower())
    except ValueError:
        kind = FieldKind.TEXT
    return FormField(
        id=str(raw.get("id") or ""),
        type=kind,
        label=str(raw.get("label") or ""),
        required=bool(raw.get("required")),
        options=tuple(_clean_options(raw.get("options"))),
        default_value=raw.get("defaultValue", raw.get("default_value")),
        placeholder=str(raw.get("placeholder") or ""),
        hidden=bool(raw.get("hidden")),
    )


def fields_from_dicts(raw_fields: Any) -> list[FormField]:
    if not isinstance(raw_fields, list):
        return []
    return [field_from_dict(raw) for raw in raw_fields if isinstance(raw, dict) and raw.get("id")]


def field_to_dict(field: FormField) -> dict[str, Any]:
    return {
        "id": field.id,
        "type": field.type.value,
        "label": field.label,
        "required": field.required,
        "options": list(field.options),
        "defaultValue": field.default_value,
        "placeholder": field.placeholder,
        "hidden": field.hidden,
    }


def field_label(field: FormField | None) -> str:
    if field is None:
        return "Unknown field"
    return field.label or field.id
