from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Sequence

from logicform.fields import FormField, field_label
from logicform.utils import new_ulid

logger = logging.getLogger(__name__)


class Operator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    IS_ANSWERED = "isAnswered"
    IS_NOT_ANSWERED = "isNotAnswered"

    @property
    def takes_value(self) -> bool:
        return self not in (Operator.IS_ANSWERED, Operator.IS_NOT_ANSWERED)


class ActionType(str, Enum):
    SHOW = "show"
    HIDE = "hide"
    REQUIRE = "require"
    UNREQUIRE = "unrequire"
    SET_VALUE = "setValue"
    JUMP_TO = "jumpTo"


class ConditionType(str, Enum):
    ALL = "all"
    ANY = "any"


@dataclass(frozen=True)
class LogicCondition:
    id: str
    field_id: str
    operator: Operator | None
    value: Any = None


@dataclass(frozen=True)
class LogicAction:
    id: str
    type: ActionType | None
    target_field_id: str
    value: Any = None


@dataclass(frozen=True)
class LogicRule:
    id: str
    name: str = ""
    enabled: bool = True
    condition_type: ConditionType = ConditionType.ALL
    conditions: tuple[LogicCondition, ...] = ()
    actions: tuple[LogicAction, ...] = ()
    # set when the stored rule lacks its conditions or actions array
    malformed: bool = False


def _as_id(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _enum_or_none(enum_cls: type[Enum], value: Any) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return None


def condition_from_dict(raw: Any) -> LogicCondition:
    if not isinstance(raw, dict):
        return LogicCondition(id=new_ulid(), field_id="", operator=None)
    operator = _enum_or_none(Operator, raw.get("operator"))
    if operator is None:
        logger.warning("Unknown condition operator %r", raw.get("operator"))
    return LogicCondition(
        id=_as_id(raw.get("id")) or new_ulid(),
        field_id=_as_id(raw.get("fieldId")),
        operator=operator,
        value=raw.get("value") if operator is None or operator.takes_value else None,
    )


def action_from_dict(raw: Any) -> LogicAction:
    if not isinstance(raw, dict):
        return LogicAction(id=new_ulid(), type=None, target_field_id="")
    action_type = _enum_or_none(ActionType, raw.get("type"))
    if action_type is None:
        logger.warning("Unknown action type %r", raw.get("type"))
    # older documents carry the target under "fieldId"
    target = raw.get("targetFieldId") or raw.get("fieldId")
    return LogicAction(
        id=_as_id(raw.get("id")) or new_ulid(),
        type=action_type,
        target_field_id=_as_id(target),
        value=raw.get("value") if action_type == ActionType.SET_VALUE else None,
    )


def rule_from_dict(raw: Any) -> LogicRule:
    """Build a rule from its JSON shape without ever raising.

    Anything that cannot be understood degrades to a rule, condition or
    action that has no effect.
    """
    if not isinstance(raw, dict):
        logger.warning("Logic rule is not an object: %r", raw)
        return LogicRule(id=new_ulid(), enabled=False, malformed=True)

    raw_conditions = raw.get("conditions")
    raw_actions = raw.get("actions")
    malformed = not isinstance(raw_conditions, list) or not isinstance(raw_actions, list)
    condition_type = _enum_or_none(ConditionType, raw.get("conditionType")) or ConditionType.ALL
    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        logger.warning("Rule %r has a non-boolean enabled flag %r, disabling it", raw.get("id"), enabled)
        enabled = False

    return LogicRule(
        id=_as_id(raw.get("id")) or new_ulid(),
        name=str(raw.get("name") or ""),
        enabled=enabled,
        condition_type=condition_type,
        conditions=tuple(condition_from_dict(item) for item in raw_conditions)
        if isinstance(raw_conditions, list)
        else (),
        actions=tuple(action_from_dict(item) for item in raw_actions)
        if isinstance(raw_actions, list)
        else (),
        malformed=malformed,
    )


def rules_from_dicts(raw_rules: Any) -> tuple[LogicRule, ...]:
    if not isinstance(raw_rules, list):
        return ()
    return tuple(rule_from_dict(raw) for raw in raw_rules)


def rule_to_dict(rule: LogicRule) -> dict[str, Any]:
    conditions: list[dict[str, Any]] = []
    for condition in rule.conditions:
        item: dict[str, Any] = {
            "id": condition.id,
            "fieldId": condition.field_id,
            "operator": condition.operator.value if condition.operator else None,
        }
        if condition.operator is None or condition.operator.takes_value:
            item["value"] = condition.value
        conditions.append(item)

    actions: list[dict[str, Any]] = []
    for action in rule.actions:
        item = {
            "id": action.id,
            "type": action.type.value if action.type else None,
            "targetFieldId": action.target_field_id,
        }
        if action.type == ActionType.SET_VALUE:
            item["value"] = action.value
        actions.append(item)

    return {
        "id": rule.id,
        "name": rule.name,
        "enabled": rule.enabled,
        "conditionType": rule.condition_type.value,
        "conditions": conditions,
        "actions": actions,
    }


def rules_to_dicts(rules: Iterable[LogicRule]) -> list[dict[str, Any]]:
    return [rule_to_dict(rule) for rule in rules]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_rules(
    raw_rules: Any, field_ids: Iterable[str]
) -> tuple[list[dict[str, Any]], list[str], list[str]]:
    """Check a rule list before it is saved.

    Returns the normalized rules, blocking errors and non-blocking warnings.
    References to fields that do not exist are only warnings: removing a
    field leaves its rules in place.
    """
    if raw_rules is None:
        return [], [], []
    if not isinstance(raw_rules, list):
        return [], ["logic must be a list"], []

    known = set(field_ids)
    errors: list[str] = []
    warnings: list[str] = []
    seen_ids: set[str] = set()

    for index, raw in enumerate(raw_rules, start=1):
        loc = f"rule {index}"
        if not isinstance(raw, dict):
            errors.append(f"{loc}: must be an object")
            continue
        name = str(raw.get("name") or "").strip()
        if name:
            loc = f"{loc} ({name})"

        rule_id = _as_id(raw.get("id"))
        if rule_id:
            if rule_id in seen_ids:
                errors.append(f"{loc}: duplicate id ({rule_id})")
            seen_ids.add(rule_id)

        if "enabled" in raw and not isinstance(raw["enabled"], bool):
            errors.append(f"{loc}: enabled must be a boolean")

        condition_type = raw.get("conditionType", "all")
        if _enum_or_none(ConditionType, condition_type) is None:
            errors.append(f"{loc}: conditionType must be 'all' or 'any' ({condition_type})")

        conditions = raw.get("conditions")
        if not isinstance(conditions, list):
            errors.append(f"{loc}: conditions must be a list")
            conditions = []
        elif not conditions:
            warnings.append(f"{loc}: has no conditions and will never fire")

        for c_index, condition in enumerate(conditions, start=1):
            c_loc = f"{loc} condition {c_index}"
            if not isinstance(condition, dict):
                errors.append(f"{c_loc}: must be an object")
                continue
            operator = _enum_or_none(Operator, condition.get("operator"))
            if operator is None:
                errors.append(f"{c_loc}: unknown operator ({condition.get('operator')})")
            elif operator.takes_value and _is_blank(condition.get("value")):
                errors.append(f"{c_loc}: {operator.value} needs a value")
            field_id = _as_id(condition.get("fieldId"))
            if not field_id:
                errors.append(f"{c_loc}: fieldId is required")
            elif field_id not in known:
                warnings.append(f"{c_loc}: references unknown field ({field_id})")

        actions = raw.get("actions")
        if not isinstance(actions, list):
            errors.append(f"{loc}: actions must be a list")
            actions = []
        elif not actions:
            warnings.append(f"{loc}: has no actions")

        for a_index, action in enumerate(actions, start=1):
            a_loc = f"{loc} action {a_index}"
            if not isinstance(action, dict):
                errors.append(f"{a_loc}: must be an object")
                continue
            action_type = _enum_or_none(ActionType, action.get("type"))
            if action_type is None:
                errors.append(f"{a_loc}: unknown action type ({action.get('type')})")
            elif action_type == ActionType.SET_VALUE and "value" not in action:
                errors.append(f"{a_loc}: setValue needs a value")
            target = _as_id(action.get("targetFieldId") or action.get("fieldId"))
            if not target:
                errors.append(f"{a_loc}: targetFieldId is required")
            elif target not in known:
                warnings.append(f"{a_loc}: references unknown field ({target})")

    if errors:
        return [], errors, warnings
    return rules_to_dicts(rules_from_dicts(raw_rules)), errors, warnings


def upsert_rule(rules: Sequence[LogicRule], rule: LogicRule) -> tuple[LogicRule, ...]:
    if any(item.id == rule.id for item in rules):
        return tuple(rule if item.id == rule.id else item for item in rules)
    return (*rules, rule)


def remove_rule(rules: Sequence[LogicRule], rule_id: str) -> tuple[LogicRule, ...]:
    return tuple(item for item in rules if item.id != rule_id)


def set_enabled(rules: Sequence[LogicRule], rule_id: str, enabled: bool) -> tuple[LogicRule, ...]:
    return tuple(replace(item, enabled=enabled) if item.id == rule_id else item for item in rules)


def _describe_condition(condition: LogicCondition, field_map: dict[str, FormField]) -> str:
    name = field_label(field_map.get(condition.field_id))
    if condition.operator == Operator.IS_ANSWERED:
        return f"{name} is answered"
    if condition.operator == Operator.IS_NOT_ANSWERED:
        return f"{name} is not answered"
    operator = condition.operator.value if condition.operator else "?"
    return f"{name} {operator} {condition.value}"


def _describe_action(action: LogicAction, field_map: dict[str, FormField]) -> str:
    name = field_label(field_map.get(action.target_field_id))
    if action.type == ActionType.SHOW:
        return f"Show {name}"
    if action.type == ActionType.HIDE:
        return f"Hide {name}"
    if action.type == ActionType.REQUIRE:
        return f"Make {name} required"
    if action.type == ActionType.UNREQUIRE:
        return f"Make {name} optional"
    if action.type == ActionType.SET_VALUE:
        return f'Set {name} to "{action.value}"'
    if action.type == ActionType.JUMP_TO:
        return f"Jump to {name}"
    return "Unknown action"


def describe_rule(rule: LogicRule, fields: Iterable[FormField]) -> str:
    field_map = {field.id: field for field in fields}
    joiner = " AND " if rule.condition_type == ConditionType.ALL else " OR "
    conditions = joiner.join(_describe_condition(item, field_map) for item in rule.conditions)
    actions = ", ".join(_describe_action(item, field_map) for item in rule.actions)
    return f"IF {conditions or '(no conditions)'} THEN {actions or '(no actions)'}"
