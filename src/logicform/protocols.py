from __future__ import annotations

from typing import Any, Protocol


class FormRepository(Protocol):
    """Form records.

    A record carries ``id``, ``public_id``, ``name``, ``description``,
    ``status``, the ``fields`` and ``logic`` documents in order, ``settings``,
    the webhook options and UTC ``created_at`` / ``updated_at``.
    """

    def list_forms(self) -> list[dict[str, Any]]: ...

    def get_form(self, form_id: str) -> dict[str, Any] | None: ...

    def get_form_by_public_id(self, public_id: str) -> dict[str, Any] | None: ...

    def create_form(self, form: dict[str, Any]) -> None: ...

    # both raise KeyError for an unknown id
    def update_form(self, form_id: str, updates: dict[str, Any]) -> dict[str, Any]: ...

    def set_status(self, form_id: str, status: str) -> None: ...

    def delete_form(self, form_id: str) -> None: ...


class SubmissionRepository(Protocol):
    """Accepted submissions: the stored values plus the ids of the rules that fired."""

    def list_submissions(self, form_id: str) -> list[dict[str, Any]]: ...

    def get_submission(self, submission_id: str) -> dict[str, Any] | None: ...

    def create_submission(self, submission: dict[str, Any]) -> None: ...

    def delete_submission(self, submission_id: str) -> None: ...

    def delete_for_form(self, form_id: str) -> None: ...


class Storage(Protocol):
    forms: FormRepository
    submissions: SubmissionRepository
