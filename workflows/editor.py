"""Add/edit form for substitutions.

The editor is closed, creating a new record, or editing an existing one.
``submit`` validates the draft, checks it against the loaded catalog for
duplicates, then writes it through the backend and reloads the catalog.

Copyright (c) Bryn Gwalad 2025
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from sqlmodel import SQLModel

from api.models import SubstitutionPayload, SubstitutionRecord
from workflows import errors
from workflows.errors import ActionError, ErrorKind

logger = logging.getLogger("substitutions_editor")

REQUIRED_FIELDS = ("product_name", "old_code", "new_code")


class EditorMode(str, Enum):
    CLOSED = "closed"
    CREATING = "creating"
    EDITING = "editing"


class Draft(SQLModel):
    """Unsaved contents of the editor form.

    Attributes:
        product_name: product name as typed
        old_code: superseded code as typed
        new_code: replacement code as typed
        notes: notes as typed (empty string when none)
    """

    product_name: str = ""
    old_code: str = ""
    new_code: str = ""
    notes: str = ""

    @classmethod
    def from_record(cls, record: SubstitutionRecord) -> "Draft":
        return cls(
            product_name=record.product_name or "",
            old_code=record.old_code or "",
            new_code=record.new_code or "",
            notes=record.notes or "",
        )

    def to_payload(self) -> SubstitutionPayload:
        """Trimmed payload; blank notes become null."""
        notes = (self.notes or "").strip()
        return SubstitutionPayload(
            product_name=(self.product_name or "").strip(),
            old_code=(self.old_code or "").strip(),
            new_code=(self.new_code or "").strip(),
            notes=notes or None,
        )


def find_duplicate(
    records: Iterable[SubstitutionRecord], payload: SubstitutionPayload, exclude_id=None
) -> Optional[str]:
    """Return the name of the first field that clashes with another record.

    Only ``product_name`` and ``new_code`` must be unique (case-insensitive).
    The record with ``exclude_id`` is the one being edited and may keep its
    own values. Only sees what is loaded, so a concurrent writer can still
    slip a duplicate in between load and save.
    """
    others = [r for r in records if exclude_id is None or str(r.id) != str(exclude_id)]
    name = payload.product_name.lower()
    if any((r.product_name or "").lower() == name for r in others):
        return "product_name"
    new_code = payload.new_code.lower()
    if any((r.new_code or "").lower() == new_code for r in others):
        return "new_code"
    return None


class EditorWorkflow:
    def __init__(self, backend, catalog, session):
        self._backend = backend
        self._catalog = catalog
        self._session = session
        self.mode = EditorMode.CLOSED
        self.draft: Optional[Draft] = None
        self.target: Optional[SubstitutionRecord] = None

    @property
    def is_open(self) -> bool:
        return self.mode is not EditorMode.CLOSED

    def open(self, record: Optional[SubstitutionRecord] = None) -> None:
        """Start creating (no record) or editing ``record``."""
        self.target = record
        if record is None:
            self.mode = EditorMode.CREATING
            self.draft = Draft()
        else:
            self.mode = EditorMode.EDITING
            self.draft = Draft.from_record(record)

    def close(self) -> None:
        self.mode = EditorMode.CLOSED
        self.draft = None
        self.target = None

    def update_draft(self, **fields) -> None:
        if self.draft is None:
            raise RuntimeError("editor is closed")
        self.draft = Draft(**{**self.draft.model_dump(), **fields})

    def submit(self) -> Optional[ActionError]:
        """Validate and save the draft. Returns the error that stopped it, if any.

        On success the catalog is reloaded and the editor closes; on any
        error the editor stays open with the draft as entered.
        """
        if self.draft is None:
            raise RuntimeError("editor is closed")
        payload = self.draft.to_payload()

        for name in REQUIRED_FIELDS:
            if not getattr(payload, name):
                return ActionError(kind=ErrorKind.VALIDATION, message=errors.MISSING_FIELDS, field=name)

        target_id = self.target.id if self.target is not None else None
        clash = find_duplicate(self._catalog.records, payload, exclude_id=target_id)
        if clash is not None:
            message = errors.DUPLICATE_NAME if clash == "product_name" else errors.DUPLICATE_NEW_CODE
            return ActionError(kind=ErrorKind.DUPLICATE, message=message, field=clash)

        if not self._session.is_authorized:
            return ActionError(kind=ErrorKind.AUTHORIZATION, message=errors.LOGIN_REQUIRED_EDIT)

        if target_id is None:
            _, failure = self._backend.create(payload)
        else:
            _, failure = self._backend.update(target_id, payload)
        if failure is not None:
            return ActionError(kind=ErrorKind.BACKEND, message=failure.message)

        logger.info("Saved substitution %s", payload.product_name)
        self._catalog.reload()
        self.close()
        return None
