from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from logicform.app import create_app
from logicform.config import Settings


def rule(
    rule_id: str,
    conditions: list[dict[str, Any]],
    actions: list[dict[str, Any]],
    condition_type: str = "all",
    enabled: bool = True,
) -> dict[str, Any]:
    return {
        "id": rule_id,
        "name": rule_id,
        "enabled": enabled,
        "conditionType": condition_type,
        "conditions": [
            {"id": f"{rule_id}-c{index}", **condition}
            for index, condition in enumerate(conditions, start=1)
        ],
        "actions": [
            {"id": f"{rule_id}-a{index}", **action}
            for index, action in enumerate(actions, start=1)
        ],
    }


CONTACT_FIELDS: list[dict[str, Any]] = [
    {"id": "name", "type": "text", "label": "Name", "required": True},
    {
        "id": "contactMethod",
        "type": "radio",
        "label": "Contact method",
        "options": ["email", "phone"],
        "required": True,
    },
    {"id": "email", "type": "email", "label": "Email"},
    {"id": "phone", "type": "text", "label": "Phone", "hidden": True},
    {"id": "rating", "type": "number", "label": "Rating"},
    {"id": "comments", "type": "textarea", "label": "Comments"},
    {
        "id": "topics",
        "type": "checkbox",
        "label": "Topics",
        "options": ["billing", "support", "sales"],
    },
]

CONTACT_LOGIC: list[dict[str, Any]] = [
    rule(
        "show-phone",
        [{"fieldId": "contactMethod", "operator": "equals", "value": "phone"}],
        [
            {"type": "show", "targetFieldId": "phone"},
            {"type": "require", "targetFieldId": "phone"},
        ],
    ),
    rule(
        "comments-on-low-rating",
        [{"fieldId": "rating", "operator": "lessThan", "value": 3}],
        [{"type": "require", "targetFieldId": "comments"}],
    ),
]


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "app.db"))
    monkeypatch.setenv("JSON_PATH", str(tmp_path / "store.json"))
    monkeypatch.delenv("AUTH_MODE", raising=False)
    monkeypatch.delenv("STORAGE_BACKEND", raising=False)
    return Settings()


@pytest.fixture(params=["sqlite", "json"])
def client(request, settings) -> TestClient:
    settings.storage_backend = request.param
    return TestClient(create_app(settings))


@pytest.fixture
def contact_form(client) -> dict[str, Any]:
    response = client.post(
        "/api/forms",
        json={
            "name": "Contact",
            "description": "Get in touch",
            "fields": CONTACT_FIELDS,
            "logic": CONTACT_LOGIC,
            "settings": {"submit_button_text": "Send"},
        },
    )
    assert response.status_code == 201, response.text
    form = response.json()
    assert client.post(f"/api/forms/{form['id']}/publish").status_code == 200
    return form
