from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from logicform.evaluator import RuleResult, evaluate, is_answered
from logicform.fields import FormField
from logicform.logic import ActionType, LogicRule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldProjection:
    visible: bool = True
    required: bool = False
    value: Any = None
    has_value: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"visible": self.visible, "required": self.required}
        if self.has_value:
            payload["value"] = self.value
        return payload


@dataclass(frozen=True)
class Projection:
    fields: Mapping[str, FieldProjection]
    jump_to: str | None = None

    def __getitem__(self, field_id: str) -> FieldProjection:
        return self.fields[field_id]

    def visible_ids(self) -> list[str]:
        return [field_id for field_id, item in self.fields.items() if item.visible]

    def required_ids(self) -> list[str]:
        return [
            field_id for field_id, item in self.fields.items() if item.visible and item.required
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": {field_id: item.to_dict() for field_id, item in self.fields.items()},
            "jumpTo": self.jump_to,
        }


def project(fields: Sequence[FormField], results: Iterable[RuleResult]) -> Projection:
    """Fold the actions of fired rules into per-field state.

    Rules are applied in order and actions in order inside a rule, so the
    last action touching a field attribute decides it. Results that did not
    fire are ignored.
    """
    state: dict[str, dict[str, Any]] = {
        field.id: {
            "visible": not field.hidden,
            "required": field.required,
            "value": None,
            "has_value": False,
        }
        for field in fields
    }
    jump_to: str | None = None

    for result in results:
        if not result.satisfied:
            continue
        for action in result.actions:
            if action.type is None:
                logger.warning("Rule %s: ignoring action %s with unknown type", result.rule_id, action.id)
                continue
            target = state.get(action.target_field_id)
            if target is None:
                logger.warning(
                    "Rule %s: action %s targets unknown field %s",
                    result.rule_id,
                    action.id,
                    action.target_field_id,
                )
                continue
            if action.type == ActionType.SHOW:
                target["visible"] = True
            elif action.type == ActionType.HIDE:
                target["visible"] = False
            elif action.type == ActionType.REQUIRE:
                target["required"] = True
            elif action.type == ActionType.UNREQUIRE:
                target["required"] = False
            elif action.type == ActionType.SET_VALUE:
                target["value"] = action.value
                target["has_value"] = True
            elif action.type == ActionType.JUMP_TO:
                jump_to = action.target_field_id

    return Projection(
        fields=MappingProxyType({field_id: FieldProjection(**item) for field_id, item in state.items()}),
        jump_to=jump_to,
    )


def run_logic(
    fields: Sequence[FormField],
    rules: Sequence[LogicRule],
    values: Mapping[str, Any],
) -> Projection:
    return project(fields, evaluate(rules, values, fields))


def resolve_values(values: Mapping[str, Any], projection: Projection) -> dict[str, Any]:
    """Apply a projection to the values a user entered.

    Values of hidden fields are dropped. A ``setValue`` override only fills
    a field the user has not answered; it never replaces the user's input.
    """
    resolved: dict[str, Any] = {}
    for key, value in values.items():
        item = projection.fields.get(key)
        if item is not None and not item.visible:
            continue
        resolved[key] = value
    for field_id, item in projection.fields.items():
        if item.visible and item.has_value and not is_answered(resolved.get(field_id)):
            resolved[field_id] = item.value
    return resolved
