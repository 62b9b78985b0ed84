from __future__ import annotations

import pytest

from conftest import CONTACT_FIELDS, CONTACT_LOGIC, rule
from logicform.evaluator import evaluate
from logicform.fields import fields_from_dicts
from logicform.logic import (
    ActionType,
    ConditionType,
    LogicRule,
    Operator,
    describe_rule,
    remove_rule,
    rule_from_dict,
    rule_to_dict,
    rules_from_dicts,
    set_enabled,
    upsert_rule,
    validate_rules,
)

FIELD_IDS = [field["id"] for field in CONTACT_FIELDS]


class TestRuleFromDict:
    def test_reads_the_json_shape(self):
        parsed = rule_from_dict(CONTACT_LOGIC[0])
        assert parsed.id == "show-phone"
        assert parsed.enabled is True
        assert parsed.condition_type == ConditionType.ALL
        assert parsed.conditions[0].field_id == "contactMethod"
        assert parsed.conditions[0].operator == Operator.EQUALS
        assert parsed.conditions[0].value == "phone"
        assert [action.type for action in parsed.actions] == [ActionType.SHOW, ActionType.REQUIRE]
        assert parsed.malformed is False

    def test_defaults_for_missing_keys(self):
        parsed = rule_from_dict({"conditions": [], "actions": []})
        assert parsed.id
        assert parsed.enabled is True
        assert parsed.condition_type == ConditionType.ALL

    def test_unknown_condition_type_falls_back_to_all(self):
        parsed = rule_from_dict({"conditionType": "most", "conditions": [], "actions": []})
        assert parsed.condition_type == ConditionType.ALL

    @pytest.mark.parametrize(
        "raw",
        [
            {"id": "r"},
            {"id": "r", "conditions": []},
            {"id": "r", "actions": []},
            {"id": "r", "conditions": "a == 1", "actions": []},
        ],
    )
    def test_missing_arrays_mark_the_rule_malformed(self, raw):
        assert rule_from_dict(raw).malformed is True

    @pytest.mark.parametrize("raw", [None, "rule", 3, ["a"]])
    def test_non_object_rules_do_not_raise(self, raw):
        parsed = rule_from_dict(raw)
        assert parsed.malformed is True

    def test_odd_entries_degrade_to_noops(self):
        parsed = rule_from_dict({"conditions": ["x", {"operator": "nope"}], "actions": [None, {"type": "boom"}]})
        assert [condition.operator for condition in parsed.conditions] == [None, None]
        assert [action.type for action in parsed.actions] == [None, None]

    def test_value_is_dropped_for_answered_operators(self):
        parsed = rule_from_dict(
            {"conditions": [{"fieldId": "a", "operator": "isAnswered", "value": "ignored"}], "actions": []}
        )
        assert parsed.conditions[0].value is None

    def test_legacy_field_id_key_on_actions(self):
        parsed = rule_from_dict({"conditions": [], "actions": [{"type": "hide", "fieldId": "x"}]})
        assert parsed.actions[0].target_field_id == "x"

    @pytest.mark.parametrize("flag", ["false", "true", 1, 0, None])
    def test_non_boolean_enabled_disables_the_rule(self, flag):
        raw = rule("r", [{"fieldId": "name", "operator": "isAnswered"}], [{"type": "hide", "targetFieldId": "email"}])
        parsed = rule_from_dict({**raw, "enabled": flag})
        assert parsed.enabled is False
        assert evaluate([parsed], {"name": "Ada"}) == []

    def test_to_dict_restores_the_document(self):
        assert rule_to_dict(rule_from_dict(CONTACT_LOGIC[0])) == CONTACT_LOGIC[0]

    def test_rules_from_dicts_ignores_non_lists(self):
        assert rules_from_dicts(None) == ()
        assert rules_from_dicts({"id": "r"}) == ()


class TestValidateRules:
    def test_valid_rules_pass(self):
        logic, errors, warnings = validate_rules(CONTACT_LOGIC, FIELD_IDS)
        assert errors == []
        assert warnings == []
        assert logic == CONTACT_LOGIC

    def test_missing_ids_are_generated(self):
        raw = [{"conditions": [{"fieldId": "name", "operator": "isAnswered"}], "actions": [{"type": "show", "targetFieldId": "email"}]}]
        logic, errors, _ = validate_rules(raw, FIELD_IDS)
        assert errors == []
        assert logic[0]["id"]
        assert logic[0]["conditions"][0]["id"]
        assert logic[0]["actions"][0]["id"]

    def test_none_means_no_logic(self):
        assert validate_rules(None, FIELD_IDS) == ([], [], [])

    def test_reports_errors(self):
        raw = [
            "not a rule",
            {
                "id": "r1",
                "conditionType": "some",
                "conditions": [
                    {"fieldId": "name", "operator": "like", "value": "x"},
                    {"operator": "equals", "value": "x"},
                    {"fieldId": "rating", "operator": "greaterThan"},
                ],
                "actions": [
                    {"type": "teleport", "targetFieldId": "name"},
                    {"type": "show"},
                    {"type": "setValue", "targetFieldId": "name"},
                ],
            },
            {"id": "r1", "conditions": {}, "actions": None},
        ]
        logic, errors, _ = validate_rules(raw, FIELD_IDS)
        assert logic == []
        joined = "\n".join(errors)
        for fragment in [
            "rule 1: must be an object",
            "conditionType must be 'all' or 'any'",
            "unknown operator (like)",
            "fieldId is required",
            "greaterThan needs a value",
            "unknown action type (teleport)",
            "targetFieldId is required",
            "setValue needs a value",
            "duplicate id (r1)",
            "conditions must be a list",
            "actions must be a list",
        ]:
            assert fragment in joined

    def test_enabled_must_be_a_boolean(self):
        raw = rule("r", [{"fieldId": "name", "operator": "isAnswered"}], [{"type": "hide", "targetFieldId": "email"}])
        logic, errors, _ = validate_rules([{**raw, "enabled": "false"}], FIELD_IDS)
        assert logic == []
        assert errors == ["rule 1 (r): enabled must be a boolean"]

        logic, errors, _ = validate_rules([{**raw, "enabled": False}], FIELD_IDS)
        assert errors == []
        assert logic[0]["enabled"] is False

    def test_dangling_references_are_warnings(self):
        raw = [rule("r", [{"fieldId": "deleted", "operator": "isAnswered"}], [{"type": "show", "targetFieldId": "gone"}])]
        logic, errors, warnings = validate_rules(raw, FIELD_IDS)
        assert errors == []
        assert len(logic) == 1
        assert any("unknown field (deleted)" in message for message in warnings)
        assert any("unknown field (gone)" in message for message in warnings)

    def test_empty_rules_are_warnings(self):
        _, errors, warnings = validate_rules([rule("r", [], [])], FIELD_IDS)
        assert errors == []
        assert any("never fire" in message for message in warnings)
        assert any("no actions" in message for message in warnings)

    def test_set_value_may_clear_a_field(self):
        raw = [rule("r", [{"fieldId": "name", "operator": "isAnswered"}], [{"type": "setValue", "targetFieldId": "email", "value": ""}])]
        _, errors, _ = validate_rules(raw, FIELD_IDS)
        assert errors == []


class TestEditing:
    def setup_method(self):
        self.rules = rules_from_dicts(CONTACT_LOGIC)

    def test_upsert_replaces_in_place(self):
        changed = LogicRule(id="show-phone", name="renamed")
        updated = upsert_rule(self.rules, changed)
        assert [item.id for item in updated] == ["show-phone", "comments-on-low-rating"]
        assert updated[0].name == "renamed"

    def test_upsert_appends_new_rules(self):
        updated = upsert_rule(self.rules, LogicRule(id="new"))
        assert [item.id for item in updated][-1] == "new"
        assert len(self.rules) == 2

    def test_remove_and_toggle(self):
        assert [item.id for item in remove_rule(self.rules, "show-phone")] == ["comments-on-low-rating"]
        toggled = set_enabled(self.rules, "show-phone", False)
        assert toggled[0].enabled is False
        assert self.rules[0].enabled is True


class TestDescribe:
    def test_summary(self):
        fields = fields_from_dicts(CONTACT_FIELDS)
        summary = describe_rule(rule_from_dict(CONTACT_LOGIC[0]), fields)
        assert summary == "IF Contact method equals phone THEN Show Phone, Make Phone required"

    def test_any_rules_join_with_or_and_unknown_fields_are_named(self):
        parsed = rule_from_dict(
            rule(
                "r",
                [
                    {"fieldId": "ghost", "operator": "isAnswered"},
                    {"fieldId": "name", "operator": "isNotAnswered"},
                ],
                [{"type": "setValue", "targetFieldId": "email", "value": "n/a"}, {"type": "jumpTo", "targetFieldId": "rating"}],
                "any",
            )
        )
        summary = describe_rule(parsed, fields_from_dicts(CONTACT_FIELDS))
        assert summary == 'IF Unknown field is answered OR Name is not answered THEN Set Email to "n/a", Jump to Rating'

    def test_empty_rule(self):
        assert describe_rule(LogicRule(id="r"), []) == "IF (no conditions) THEN (no actions)"
