from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from filelock import FileLock
from tinydb import Query, TinyDB
from tinydb.table import Table

from logicform.utils import now_utc, parse_dt, to_iso

_FORM_DEFAULTS: dict[str, Any] = {
    "description": "",
    "status": "inactive",
    "fields": [],
    "logic": [],
    "settings": {},
    "webhook_url": "",
    "webhook_on_submit": False,
}

Record = Query()


def _encode(values: dict[str, Any]) -> dict[str, Any]:
    """TinyDB stores plain JSON, so datetimes travel as ISO strings."""
    return {
        key: to_iso(value) if isinstance(value, datetime) else value
        for key, value in values.items()
    }


def _form_from_record(record: dict[str, Any]) -> dict[str, Any]:
    form = {**_FORM_DEFAULTS, **record}
    form["webhook_on_submit"] = bool(form["webhook_on_submit"])
    form["created_at"] = parse_dt(record.get("created_at"))
    form["updated_at"] = parse_dt(record.get("updated_at"))
    return form


def _submission_from_record(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": record["id"],
        "form_id": record["form_id"],
        "data_json": record.get("data_json") or {},
        "fired_rules": record.get("fired_rules") or [],
        "created_at": parse_dt(record.get("created_at")),
    }


class JSONRepoBase:
    table_name = ""

    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _table(self) -> Iterator[Table]:
        # every access reopens the file under the lock so several workers
        # can share one document
        with self._lock:
            db = TinyDB(self._path)
            try:
                yield db.table(self.table_name)
            finally:
                db.close()


class JSONFormRepo(JSONRepoBase):
    table_name = "forms"

    def list_forms(self) -> list[dict[str, Any]]:
        with self._table() as table:
            forms = [_form_from_record(item) for item in table.all()]
        return sorted(forms, key=lambda form: form["updated_at"], reverse=True)

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._table() as table:
            item = table.get(Record.id == form_id)
        return _form_from_record(item) if item else None

    def get_form_by_public_id(self, public_id: str) -> dict[str, Any] | None:
        with self._table() as table:
            item = table.get(Record.public_id == public_id)
        return _form_from_record(item) if item else None

    def create_form(self, form: dict[str, Any]) -> None:
        now = now_utc()
        record = _encode({"created_at": now, "updated_at": now, **form})
        with self._table() as table:
            table.insert(record)

    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        with self._table() as table:
            if not table.update(_encode(updates), Record.id == form_id):
                raise KeyError(form_id)
            item = table.get(Record.id == form_id)
        return _form_from_record(item)

    def set_status(self, form_id: str, status: str) -> None:
        self.update_form(form_id, {"status": status, "updated_at": now_utc()})

    def delete_form(self, form_id: str) -> None:
        with self._table() as table:
            table.remove(Record.id == form_id)


class JSONSubmissionRepo(JSONRepoBase):
    table_name = "submissions"

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]:
        with self._table() as table:
            items = table.search(Record.form_id == form_id)
        submissions = [_submission_from_record(item) for item in items]
        return sorted(submissions, key=lambda item: (item["created_at"], item["id"]), reverse=True)

    def get_submission(self, submission_id: str) -> dict[str, Any] | None:
        with self._table() as table:
            item = table.get(Record.id == submission_id)
        return _submission_from_record(item) if item else None

    def create_submission(self, submission: dict[str, Any]) -> None:
        record = _encode(
            {
                "id": submission["id"],
                "form_id": submission["form_id"],
                "data_json": submission.get("data_json", {}),
                "fired_rules": list(submission.get("fired_rules", [])),
                "created_at": submission["created_at"],
            }
        )
        with self._table() as table:
            table.insert(record)

    def delete_submission(self, submission_id: str) -> None:
        with self._table() as table:
            table.remove(Record.id == submission_id)

    def delete_for_form(self, form_id: str) -> None:
        with self._table() as table:
            table.remove(Record.form_id == form_id)


class JSONStorage:
    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock")
        self.forms = JSONFormRepo(path, self._lock)
        self.submissions = JSONSubmissionRepo(path, self._lock)
