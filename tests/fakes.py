"""In-memory stand-in for BackendClient used by the workflow and page tests.

Copyright (c) Bryn Gwalad 2025
"""

from api.models import AuthUser, Session, SubstitutionRecord
from utils.backend import DeleteFailure, LoadFailure, LoginFailure, SaveFailure


class FakeBackend:
    """Keeps rows in a list and records every call made to it.

    Set ``fail_list``, ``fail_save``, ``fail_delete`` or ``fail_login`` to
    make the matching operation return its failure.
    """

    def __init__(self, rows=None, accounts=None):
        self.rows = [SubstitutionRecord.model_validate(r) for r in (rows or [])]
        self.accounts = dict(accounts or {})
        self.calls = []
        self.session = None
        self.listeners = []
        self.fail_list = self.fail_save = self.fail_delete = self.fail_login = False
        self._next_id = 1000
        self.closed = False

    def call_names(self):
        return [call[0] for call in self.calls]

    def list(self):
        self.calls.append(("list",))
        if self.fail_list:
            return None, LoadFailure(detail="boom")
        return sorted(self.rows, key=lambda r: r.product_name), None

    def create(self, payload):
        self.calls.append(("create", payload))
        if self.fail_save:
            return None, SaveFailure(detail="denied")
        self._next_id += 1
        record = SubstitutionRecord(id=self._next_id, **payload.model_dump())
        self.rows.append(record)
        return record, None

    def update(self, record_id, payload):
        self.calls.append(("update", record_id, payload))
        if self.fail_save:
            return None, SaveFailure(detail="denied")
        for index, row in enumerate(self.rows):
            if row.id == record_id:
                self.rows[index] = SubstitutionRecord(id=record_id, **payload.model_dump())
                return self.rows[index], None
        return None, SaveFailure(detail="no rows affected")

    def delete(self, record_id):
        self.calls.append(("delete", record_id))
        if self.fail_delete:
            return False, DeleteFailure(detail="denied")
        self.rows = [row for row in self.rows if row.id != record_id]
        return True, None

    def sign_in(self, email, password):
        self.calls.append(("sign_in", email))
        if self.fail_login or self.accounts.get(email) != password:
            return None, LoginFailure(detail="invalid credentials")
        self.emit("SIGNED_IN", make_session(email))
        return self.session, None

    def sign_out(self):
        self.calls.append(("sign_out",))
        self.emit("SIGNED_OUT", None)

    def current_session(self):
        return self.session

    def on_session_change(self, callback):
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)

    def emit(self, event, session):
        self.session = session
        for listener in list(self.listeners):
            listener(event, session)

    def close(self):
        self.closed = True


def make_session(email="manager@example.com"):
    return Session(access_token="token", refresh_token="refresh", user=AuthUser(id="user-1", email=email))


BANANA = {"id": 1, "product_name": "Banana", "old_code": "0", "new_code": "17", "notes": None}
