"""Deleting a substitution.

A delete is a two-step affair: ``request`` checks the session and parks the
record until the user answers the confirmation prompt with ``resolve``.

Copyright (c) Bryn Gwalad 2025
"""

from typing import Callable, Optional

from api.models import SubstitutionRecord
from workflows import errors
from workflows.errors import ActionError, ErrorKind


def confirmation_prompt(record: SubstitutionRecord) -> str:
    return f'Delete "{record.product_name}" (Old {record.old_code})?'


class DeleteAction:
    def __init__(self, backend, catalog, session):
        self._backend = backend
        self._catalog = catalog
        self._session = session
        self.pending: Optional[SubstitutionRecord] = None

    @property
    def prompt(self) -> Optional[str]:
        return confirmation_prompt(self.pending) if self.pending is not None else None

    def request(self, record: SubstitutionRecord) -> Optional[ActionError]:
        if not self._session.is_authorized:
            return ActionError(kind=ErrorKind.AUTHORIZATION, message=errors.LOGIN_REQUIRED_DELETE)
        self.pending = record
        return None

    def cancel(self) -> None:
        self.pending = None

    def resolve(self, confirmed: bool) -> Optional[ActionError]:
        """Answer the pending prompt. Nothing is sent unless ``confirmed``."""
        record, self.pending = self.pending, None
        if record is None or not confirmed:
            return None
        if not self._session.is_authorized:
            return ActionError(kind=ErrorKind.AUTHORIZATION, message=errors.LOGIN_REQUIRED_DELETE)
        _, failure = self._backend.delete(record.id)
        if failure is not None:
            return ActionError(kind=ErrorKind.BACKEND, message=failure.message)
        self._catalog.reload()
        return None

    def run(self, record: SubstitutionRecord, confirm: Callable[[str], bool]) -> Optional[ActionError]:
        """Request and resolve in one go, asking ``confirm(prompt)`` in between."""
        error = self.request(record)
        if error is not None:
            return error
        return self.resolve(confirm(self.prompt))
