"""Manager login form.

Managers may type a short username instead of their email; the mapping is
configuration (``LOGIN_SHORTCUTS``), not code.

Copyright (c) Bryn Gwalad 2025
"""

from typing import Mapping, Optional, Tuple

from workflows import errors
from workflows.errors import ActionError, ErrorKind


class LoginWorkflow:
    def __init__(self, backend, shortcuts: Mapping[str, str]):
        self._backend = backend
        self.shortcuts = {name.lower(): email for name, email in shortcuts.items()}
        self.is_open = False
        self.identifier = ""

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False
        self.identifier = ""

    def resolve_identifier(self, raw: Optional[str]) -> Tuple[Optional[str], Optional[ActionError]]:
        """Turn what was typed into an email.

        Anything containing ``@`` is used as-is; otherwise it must be a known
        username shortcut (case-insensitive).
        """
        value = (raw or "").strip()
        if not value:
            return None, ActionError(kind=ErrorKind.VALIDATION, message=errors.MISSING_IDENTIFIER, field="identifier")
        if "@" in value:
            return value, None
        email = self.shortcuts.get(value.lower())
        if email is None:
            return None, ActionError(kind=ErrorKind.VALIDATION, message=errors.UNKNOWN_IDENTIFIER, field="identifier")
        return email, None

    def sign_in(self, identifier: str, password: str) -> Optional[ActionError]:
        # The password is only held for the duration of this call.
        self.identifier = identifier or ""
        email, error = self.resolve_identifier(identifier)
        if error is not None:
            return error
        _, failure = self._backend.sign_in(email, password)
        if failure is not None:
            return ActionError(kind=ErrorKind.BACKEND, message=failure.message)
        self.close()
        return None
