from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import CONTACT_FIELDS, CONTACT_LOGIC
from logicform.storage import init_storage
from logicform.utils import new_short_id, new_ulid, now_utc


@pytest.fixture(params=["sqlite", "json"])
def storage(request, settings):
    settings.storage_backend = request.param
    return init_storage(settings)


def make_form(**overrides):
    now = now_utc()
    form = {
        "id": new_ulid(),
        "public_id": new_short_id(),
        "name": "Contact",
        "description": "",
        "status": "inactive",
        "fields": CONTACT_FIELDS,
        "logic": CONTACT_LOGIC,
        "settings": {},
        "webhook_url": "",
        "webhook_on_submit": False,
        "created_at": now,
        "updated_at": now,
    }
    form.update(overrides)
    return form


class TestForms:
    def test_create_and_get(self, storage):
        form = make_form()
        storage.forms.create_form(form)

        loaded = storage.forms.get_form(form["id"])
        assert loaded["name"] == "Contact"
        assert loaded["fields"] == CONTACT_FIELDS
        assert loaded["logic"] == CONTACT_LOGIC
        assert loaded["status"] == "inactive"
        assert storage.forms.get_form_by_public_id(form["public_id"])["id"] == form["id"]

    def test_missing_form(self, storage):
        assert storage.forms.get_form("nope") is None
        assert storage.forms.get_form_by_public_id("nope") is None
        with pytest.raises(KeyError):
            storage.forms.update_form("nope", {"name": "x"})
        with pytest.raises(KeyError):
            storage.forms.set_status("nope", "active")

    def test_update_logic(self, storage):
        form = make_form()
        storage.forms.create_form(form)
        updated = storage.forms.update_form(form["id"], {"logic": CONTACT_LOGIC[:1], "webhook_on_submit": True})
        assert updated["logic"] == CONTACT_LOGIC[:1]
        assert updated["webhook_on_submit"] is True
        assert storage.forms.get_form(form["id"])["logic"] == CONTACT_LOGIC[:1]

    def test_list_is_newest_first(self, storage):
        older = make_form(name="older", updated_at=now_utc() - timedelta(days=1))
        newer = make_form(name="newer")
        storage.forms.create_form(older)
        storage.forms.create_form(newer)
        assert [form["name"] for form in storage.forms.list_forms()] == ["newer", "older"]

    def test_status_and_delete(self, storage):
        form = make_form()
        storage.forms.create_form(form)
        storage.forms.set_status(form["id"], "active")
        assert storage.forms.get_form(form["id"])["status"] == "active"
        storage.forms.delete_form(form["id"])
        assert storage.forms.get_form(form["id"]) is None


class TestSubmissions:
    def test_crud(self, storage):
        form = make_form()
        storage.forms.create_form(form)
        now = now_utc()
        first = {
            "id": new_ulid(),
            "form_id": form["id"],
            "data_json": {"name": "Ada"},
            "fired_rules": ["show-phone"],
            "created_at": now - timedelta(minutes=1),
        }
        second = {"id": new_ulid(), "form_id": form["id"], "data_json": {"name": "Grace"}, "created_at": now}
        storage.submissions.create_submission(first)
        storage.submissions.create_submission(second)

        listed = storage.submissions.list_submissions(form["id"])
        assert [item["data_json"]["name"] for item in listed] == ["Grace", "Ada"]
        loaded = storage.submissions.get_submission(first["id"])
        assert loaded["data_json"] == {"name": "Ada"}
        assert loaded["fired_rules"] == ["show-phone"]
        assert listed[0]["fired_rules"] == []

        storage.submissions.delete_submission(first["id"])
        assert storage.submissions.get_submission(first["id"]) is None

        storage.submissions.delete_for_form(form["id"])
        assert storage.submissions.list_submissions(form["id"]) == []

    def test_submissions_are_scoped_to_their_form(self, storage):
        storage.submissions.create_submission(
            {"id": new_ulid(), "form_id": "a", "data_json": {"x": 1}, "created_at": now_utc()}
        )
        assert storage.submissions.list_submissions("b") == []
