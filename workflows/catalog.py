"""In-memory catalog of substitutions for one client view.

Copyright (c) Bryn Gwalad 2025
"""

import logging
from typing import Callable, List, Optional, Tuple

from api.models import SubstitutionRecord
from utils.backend import LoadFailure

logger = logging.getLogger("substitutions_catalog")


class CatalogStore:
    """Ordered list of substitutions, replaced wholesale on every reload.

    A failed reload keeps the previous records and sets ``error`` until the
    next successful one.
    """

    def __init__(self, backend):
        self._backend = backend
        self._records: Tuple[SubstitutionRecord, ...] = ()
        self.loading = False
        self.error: Optional[LoadFailure] = None
        self._listeners: List[Callable[["CatalogStore"], None]] = []

    @property
    def records(self) -> Tuple[SubstitutionRecord, ...]:
        return self._records

    def find(self, record_id: str) -> Optional[SubstitutionRecord]:
        """Look a record up by id as it appears in a URL or form."""
        for record in self._records:
            if str(record.id) == str(record_id):
                return record
        return None

    def subscribe(self, listener: Callable[["CatalogStore"], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def reload(self) -> Optional[LoadFailure]:
        self.loading = True
        self._notify()
        try:
            records, failure = self._backend.list()
        finally:
            self.loading = False
        if failure is not None:
            self.error = failure
        else:
            self._records = tuple(records)
            self.error = None
            logger.debug("Loaded %d substitutions", len(self._records))
        self._notify()
        return failure

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
