"""Per-browser client views.

A browser gets its own view the first time it posts an action: a backend
client (and so its own session), a session tracker, a catalog and the form
workflows. Views live in memory, keyed by a random cookie value. They are
dropped after sitting idle, and the least recently used one is dropped when
the registry is full. Browsers without a view are served read-only from one
shared public catalog.

Copyright (c) Bryn Gwalad 2025
"""

import logging
import secrets
import threading
import time
from collections import OrderedDict
from typing import Callable, Mapping, Optional, Tuple

from workflows.catalog import CatalogStore
from workflows.deletion import DeleteAction
from workflows.editor import EditorWorkflow
from workflows.errors import ActionError
from workflows.login import LoginWorkflow
from workflows.session import SessionTracker

logger = logging.getLogger("substitutions_web")


class PublicView:
    """Catalog shown to browsers that have not signed in or acted yet."""

    def __init__(self, backend):
        self.backend = backend
        self.catalog = CatalogStore(backend)
        self.lock = threading.Lock()

    def close(self) -> None:
        self.backend.close()


class ClientView:
    def __init__(self, backend, login_shortcuts: Mapping[str, str]):
        self.backend = backend
        self.session = SessionTracker(backend)
        self.catalog = CatalogStore(backend)
        self.editor = EditorWorkflow(backend, self.catalog, self.session)
        self.login = LoginWorkflow(backend, login_shortcuts)
        self.deleter = DeleteAction(backend, self.catalog, self.session)
        self.alert: Optional[str] = None
        # Set when the catalog finished a reload that the next page render has not shown yet.
        self.fresh = False
        self.catalog.subscribe(self._on_catalog)
        self.lock = threading.Lock()
        self.last_seen = time.monotonic()

    def _on_catalog(self, catalog: CatalogStore) -> None:
        if not catalog.loading:
            self.fresh = True

    def start(self) -> None:
        self.session.start()
        self.catalog.reload()

    def load_page(self) -> None:
        """Reload the catalog for a page load, unless an action just did."""
        if not self.fresh:
            self.catalog.reload()
        self.fresh = False

    def report(self, error: Optional[ActionError]) -> None:
        if error is not None:
            logger.info("Action blocked (%s): %s", error.kind.value, error.message)
            self.alert = error.message

    def take_alert(self) -> Optional[str]:
        alert, self.alert = self.alert, None
        return alert

    def sign_out(self) -> None:
        self.backend.sign_out()
        self.editor.close()
        self.deleter.cancel()

    def close(self) -> None:
        self.session.stop()
        self.backend.close()


class ClientRegistry:
    """Holds the live views, creating one for each browser that acts."""

    def __init__(
        self,
        backend_factory: Callable[[], object],
        login_shortcuts: Mapping[str, str],
        idle_seconds: float,
        max_views: int = 500,
    ):
        self._backend_factory = backend_factory
        self._login_shortcuts = dict(login_shortcuts)
        self._idle_seconds = idle_seconds
        self._max_views = max(1, max_views)
        self._views: "OrderedDict[str, ClientView]" = OrderedDict()
        self._public: Optional[PublicView] = None
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._views)

    def __contains__(self, client_id: str) -> bool:
        return client_id in self._views

    def public(self) -> PublicView:
        with self._lock:
            if self._public is None:
                self._public = PublicView(self._backend_factory())
            return self._public

    def get(self, client_id: Optional[str]) -> Optional[ClientView]:
        """Return the view for ``client_id`` if it is still live."""
        now = time.monotonic()
        with self._lock:
            self._evict_idle(now)
            view = self._views.get(client_id) if client_id else None
            if view is not None:
                view.last_seen = now
                self._views.move_to_end(client_id)
            return view

    def get_or_create(self, client_id: Optional[str]) -> Tuple[str, ClientView]:
        view = self.get(client_id)
        if view is not None:
            return client_id, view
        client_id = secrets.token_urlsafe(24)
        view = ClientView(self._backend_factory(), self._login_shortcuts)
        with self._lock:
            self._views[client_id] = view
            while len(self._views) > self._max_views:
                _, oldest = self._views.popitem(last=False)
                oldest.close()
                logger.info("Dropped least recently used client view")
            live = len(self._views)
        logger.info("New client view (%d live)", live)
        with view.lock:
            view.start()
        return client_id, view

    def _evict_idle(self, now: float) -> None:
        stale = [key for key, view in self._views.items() if now - view.last_seen > self._idle_seconds]
        for key in stale:
            self._views.pop(key).close()
        if stale:
            logger.info("Dropped %d idle client views", len(stale))

    def close(self) -> None:
        with self._lock:
            for view in self._views.values():
                view.close()
            self._views.clear()
            if self._public is not None:
                self._public.close()
                self._public = None
