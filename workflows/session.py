"""Session tracking for one client view.

The tracker owns the view's copy of the current session. It is the only
writer: every change arrives from the backend client's session stream (or
from an explicit ``sync``), and listeners are told after each replacement.

Copyright (c) Bryn Gwalad 2025
"""

import logging
from typing import Callable, List, Optional

from api.models import Session

logger = logging.getLogger("substitutions_session")

Listener = Callable[[Optional[Session]], None]


class SessionTracker:
    def __init__(self, backend):
        self._backend = backend
        self._session: Optional[Session] = None
        self._listeners: List[Listener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authorized(self) -> bool:
        """True when a session with a user identity is present.

        Only decides which controls are offered; the backend makes the real
        access decision on every write.
        """
        return self._session is not None and self._session.user is not None

    def start(self) -> None:
        """Subscribe to session changes and read the current session once."""
        if self._unsubscribe is None:
            self._unsubscribe = self._backend.on_session_change(self._on_change)
        self._replace(self._backend.current_session())

    def sync(self) -> None:
        """Re-read the backend's current session, picking up expiry."""
        self._replace(self._backend.current_session())

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _on_change(self, event: str, session: Optional[Session]) -> None:
        logger.info("Session event %s", event)
        self._replace(session)

    def _replace(self, session: Optional[Session]) -> None:
        changed = session != self._session
        self._session = session
        if changed:
            for listener in list(self._listeners):
                listener(session)
