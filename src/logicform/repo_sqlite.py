from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import sessionmaker

from logicform.models import Base, FormModel, SubmissionModel
from logicform.utils import dumps_json, ensure_aware, loads_json, now_utc

# form keys stored as JSON text, with the value used when a column is empty
_FORM_JSON = {
    "fields": ("fields_json", []),
    "logic": ("logic_json", []),
    "settings": ("settings_json", {}),
}
_FORM_PLAIN = (
    "public_id",
    "name",
    "description",
    "status",
    "webhook_url",
    "webhook_on_submit",
    "created_at",
    "updated_at",
)


def _assign_form(row: FormModel, values: dict[str, Any]) -> None:
    for key, value in values.items():
        if key in _FORM_JSON:
            setattr(row, _FORM_JSON[key][0], dumps_json(value))
        elif key == "webhook_on_submit":
            row.webhook_on_submit = bool(value)
        elif key in _FORM_PLAIN:
            setattr(row, key, value)


def _form_to_dict(row: FormModel) -> dict[str, Any]:
    form = {
        "id": row.id,
        "public_id": row.public_id,
        "name": row.name,
        "description": row.description or "",
        "status": row.status or "inactive",
        "webhook_url": row.webhook_url or "",
        "webhook_on_submit": bool(row.webhook_on_submit),
        "created_at": ensure_aware(row.created_at) if row.created_at else None,
        "updated_at": ensure_aware(row.updated_at) if row.updated_at else None,
    }
    for key, (column, default) in _FORM_JSON.items():
        form[key] = loads_json(getattr(row, column), default)
    return form


def _submission_to_dict(row: SubmissionModel) -> dict[str, Any]:
    return {
        "id": row.id,
        "form_id": row.form_id,
        "data_json": loads_json(row.data_json, {}),
        "fired_rules": loads_json(row.fired_rules_json, []),
        "created_at": ensure_aware(row.created_at),
    }


class SQLiteFormRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_forms(self) -> list[dict[str, Any]]:
        with self._Session() as session:
            rows = session.scalars(select(FormModel).order_by(FormModel.updated_at.desc()))
            return [_form_to_dict(row) for row in rows]

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(FormModel, form_id)
            return _form_to_dict(row) if row else None

    def get_form_by_public_id(self, public_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.scalars(select(FormModel).where(FormModel.public_id == public_id)).first()
            return _form_to_dict(row) if row else None

    def create_form(self, form: dict[str, Any]) -> None:
        row = FormModel(id=form["id"])
        _assign_form(row, form)
        with self._Session.begin() as session:
            session.add(row)

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._Session.begin() as session:
            row = session.get(FormModel, form_id)
            if row is None:
                raise KeyError(form_id)
            _assign_form(row, updates)
            session.flush()
            return _form_to_dict(row)

    def set_status(self, form_id: str, status: str) -> None:
        self.update_form(form_id, {"status": status, "updated_at": now_utc()})

    def delete_form(self, form_id: str) -> None:
        with self._Session.begin() as session:
            session.execute(delete(FormModel).where(FormModel.id == form_id))


class SQLiteSubmissionRepo:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]:
        query = (
            select(SubmissionModel)
            .where(SubmissionModel.form_id == form_id)
            .order_by(SubmissionModel.created_at.desc(), SubmissionModel.id.desc())
        )
        with self._Session() as session:
            return [_submission_to_dict(row) for row in session.scalars(query)]

    def get_submission(self, submission_id: str) -> dict[str, Any] | None:
        with self._Session() as session:
            row = session.get(SubmissionModel, submission_id)
            return _submission_to_dict(row) if row else None

    def create_submission(self, submission: dict[str, Any]) -> None:
        row = SubmissionModel(
            id=submission["id"],
            form_id=submission["form_id"],
            data_json=dumps_json(submission.get("data_json", {})),
            fired_rules_json=dumps_json(submission.get("fired_rules", [])),
            created_at=submission["created_at"],
        )
        with self._Session.begin() as session:
            session.add(row)

    def delete_submission(self, submission_id: str) -> None:
        with self._Session.begin() as session:
            session.execute(delete(SubmissionModel).where(SubmissionModel.id == submission_id))

    def delete_for_form(self, form_id: str) -> None:
        with self._Session.begin() as session:
            session.execute(delete(SubmissionModel).where(SubmissionModel.form_id == form_id))


class SQLiteStorage:
    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine(f"sqlite:///{db_path}")
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.forms = SQLiteFormRepo(self._Session)
        self.submissions = SQLiteSubmissionRepo(self._Session)
