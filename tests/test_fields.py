from __future__ import annotations

from conftest import CONTACT_FIELDS
from logicform.fields import FieldKind, field_from_dict, field_to_dict, fields_from_dicts, parse_fields


class TestParseFields:
    def test_valid_fields(self):
        fields, errors = parse_fields(CONTACT_FIELDS)
        assert errors == []
        assert [field["id"] for field in fields] == [field["id"] for field in CONTACT_FIELDS]
        phone = next(field for field in fields if field["id"] == "phone")
        assert phone["hidden"] is True
        assert phone["required"] is False

    def test_missing_id_is_generated(self):
        fields, errors = parse_fields([{"type": "text", "label": "Anything"}])
        assert errors == []
        assert fields[0]["id"].startswith("f_")

    def test_reports_errors(self):
        fields, errors = parse_fields(
            [
                {"id": "1bad", "type": "text", "label": "Bad id"},
                {"id": "dup", "type": "text", "label": "First"},
                {"id": "dup", "type": "text", "label": "Second"},
                {"id": "kind", "type": "slider", "label": "Slider"},
                {"id": "choice", "type": "select", "label": "Choice", "options": ["", "  "]},
                {"id": "nolabel", "type": "text"},
                {"id": "pick", "type": "radio", "label": "Pick", "options": ["a"], "defaultValue": "b"},
                "oops",
            ]
        )
        joined = "\n".join(errors)
        assert "field 1: id must start with a letter" in joined
        assert "field 3: duplicate id (dup)" in joined
        assert "field 4: unknown field type (slider)" in joined
        assert "field 5: select fields need at least one option" in joined
        assert "field 6: label is required" in joined
        assert "field 7: default value is not one of the options (b)" in joined
        assert "field 8: must be an object" in joined

    def test_options_are_cleaned(self):
        fields, errors = parse_fields(
            [{"id": "c", "type": "checkbox", "label": "C", "options": [" a ", "a", "b", None, 3]}]
        )
        assert errors == []
        assert fields[0]["options"] == ["a", "b", "3"]

    def test_options_are_dropped_for_non_choice_fields(self):
        fields, _ = parse_fields([{"id": "t", "type": "text", "label": "T", "options": ["a"]}])
        assert fields[0]["options"] == []

    def test_empty_and_invalid_input(self):
        assert parse_fields([]) == ([], ["at least one field is required"])
        assert parse_fields({"id": "x"}) == ([], ["fields must be a list"])


class TestFieldFromDict:
    def test_typed_field(self):
        field = field_from_dict(CONTACT_FIELDS[1])
        assert field.type == FieldKind.RADIO
        assert field.type.is_choice
        assert field.options == ("email", "phone")
        assert field.required is True

    def test_unknown_kind_falls_back_to_text(self):
        assert field_from_dict({"id": "x", "type": "hologram"}).type == FieldKind.TEXT

    def test_round_trip_keeps_default_value(self):
        raw = {"id": "n", "type": "number", "label": "N", "defaultValue": 4}
        assert field_to_dict(field_from_dict(raw))["defaultValue"] == 4

    def test_fields_without_id_are_skipped(self):
        assert [field.id for field in fields_from_dicts([{"type": "text"}, {"id": "a"}, "x"])] == ["a"]
