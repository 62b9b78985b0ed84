from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from logicform.fields import FormField
from logicform.logic import ConditionType, LogicAction, LogicCondition, LogicRule, Operator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleResult:
    rule_id: str
    satisfied: bool
    actions: tuple[LogicAction, ...]


def is_answered(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) > 0
    return True


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def _is_real_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _scalar_equals(left: Any, right: Any) -> bool:
    if not is_answered(left) or right is None:
        return False
    if isinstance(left, (dict, list, tuple)) or isinstance(right, (dict, list, tuple)):
        return False
    # two strings stay text: "007" is not "7"
    if _is_real_number(left) or _is_real_number(right):
        left_number = _to_number(left)
        right_number = _to_number(right)
        if left_number is not None and right_number is not None:
            return left_number == right_number
    return _as_text(left) == _as_text(right)


def _equals(value: Any, expected: Any) -> bool:
    if _is_sequence(value):
        # multi-select answers match exactly, never by membership
        if _is_sequence(expected):
            return len(value) == len(expected) and all(
                _scalar_equals(a, b) for a, b in zip(value, expected)
            )
        return len(value) == 1 and _scalar_equals(value[0], expected)
    if _is_sequence(expected):
        return False
    return _scalar_equals(value, expected)


def _contains(value: Any, expected: Any) -> bool:
    if not is_answered(value) or expected is None:
        return False
    if _is_sequence(value):
        return any(_scalar_equals(item, expected) for item in value)
    if isinstance(value, dict) or _is_sequence(expected):
        return False
    needle = _as_text(expected)
    if not needle:
        return False
    haystack = value if isinstance(value, str) else _as_text(value)
    return needle in haystack


def _compare(value: Any, expected: Any, op: Callable[[float, float], bool]) -> bool:
    left = _to_number(value)
    right = _to_number(expected)
    if left is None or right is None:
        return False
    return op(left, right)


_OPERATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQUALS: _equals,
    Operator.NOT_EQUALS: lambda value, expected: not _equals(value, expected),
    Operator.CONTAINS: _contains,
    Operator.NOT_CONTAINS: lambda value, expected: not _contains(value, expected),
    Operator.GREATER_THAN: lambda value, expected: _compare(value, expected, lambda a, b: a > b),
    Operator.LESS_THAN: lambda value, expected: _compare(value, expected, lambda a, b: a < b),
    Operator.IS_ANSWERED: lambda value, _: is_answered(value),
    Operator.IS_NOT_ANSWERED: lambda value, _: not is_answered(value),
}


def known_field_ids(fields: Iterable[FormField | str] | None) -> set[str] | None:
    if fields is None:
        return None
    return {field.id if isinstance(field, FormField) else str(field) for field in fields}


def evaluate_condition(
    condition: LogicCondition,
    values: Mapping[str, Any],
    known_ids: set[str] | None = None,
) -> bool:
    if condition.operator is None or not condition.field_id:
        return False
    if known_ids is not None and condition.field_id not in known_ids:
        logger.warning(
            "Condition %s references unknown field %s; treating it as unsatisfied",
            condition.id,
            condition.field_id,
        )
        return False
    return _OPERATORS[condition.operator](values.get(condition.field_id), condition.value)


def rule_holds(
    rule: LogicRule,
    values: Mapping[str, Any],
    known_ids: set[str] | None = None,
) -> bool:
    # rules without conditions never fire, whatever their condition type
    if rule.malformed or not rule.conditions:
        return False
    checks = (evaluate_condition(condition, values, known_ids) for condition in rule.conditions)
    if rule.condition_type == ConditionType.ANY:
        return any(checks)
    return all(checks)


def evaluate(
    rules: Sequence[LogicRule],
    values: Mapping[str, Any],
    fields: Iterable[FormField | str] | None = None,
) -> list[RuleResult]:
    """Decide which enabled rules fire for one snapshot of field values.

    Disabled rules are left out of the result. Enabled rules appear in their
    original order with ``satisfied`` telling whether they fire. When
    ``fields`` is given, conditions on fields that are not part of the form
    are unsatisfied.
    """
    if not isinstance(values, Mapping):
        raise TypeError(f"values must be a mapping, got {type(values).__name__}")

    known_ids = known_field_ids(fields)
    results: list[RuleResult] = []
    for rule in rules:
        if not isinstance(rule, LogicRule):
            raise TypeError(f"expected LogicRule, got {type(rule).__name__}")
        if not rule.enabled:
            logger.debug("Skipping disabled rule %s", rule.id)
            continue
        if rule.malformed:
            logger.warning("Rule %s is missing its conditions or actions and never fires", rule.id)
        results.append(
            RuleResult(
                rule_id=rule.id,
                satisfied=rule_holds(rule, values, known_ids),
                actions=rule.actions,
            )
        )
    return results


def fired(results: Iterable[RuleResult]) -> list[RuleResult]:
    return [result for result in results if result.satisfied]
