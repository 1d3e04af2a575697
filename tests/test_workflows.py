"""Tests for the session, catalog, editor, login and delete workflows.

All of them run against the in-memory FakeBackend, so no network is used.

Copyright (c) Bryn Gwalad 2025
"""

import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

import unittest

from api.models import Session, SubstitutionRecord
from fakes import BANANA, FakeBackend, make_session
from workflows import errors
from workflows.catalog import CatalogStore
from workflows.deletion import DeleteAction, confirmation_prompt
from workflows.editor import Draft, EditorMode, EditorWorkflow, find_duplicate
from workflows.errors import ErrorKind
from workflows.login import LoginWorkflow
from workflows.session import SessionTracker


def _build(rows=(BANANA,), signed_in=True):
    backend = FakeBackend(rows=list(rows), accounts={"manager@example.com": "secret"})
    if signed_in:
        backend.session = make_session()
    session = SessionTracker(backend)
    session.start()
    catalog = CatalogStore(backend)
    catalog.reload()
    backend.calls.clear()
    return backend, session, catalog


class SessionTrackerTest(unittest.TestCase):
    def test_start_reads_current_session(self):
        backend, session, _ = _build()
        self.assertTrue(session.is_authorized)
        self.assertEqual(session.session.user.email, "manager@example.com")

    def test_changes_replace_session(self):
        backend, session, _ = _build(signed_in=False)
        seen = []
        session.subscribe(seen.append)
        self.assertFalse(session.is_authorized)

        backend.emit("SIGNED_IN", make_session())
        self.assertTrue(session.is_authorized)
        backend.emit("SIGNED_OUT", None)
        self.assertFalse(session.is_authorized)
        self.assertEqual(len(seen), 2)

    def test_session_without_user_is_not_authorized(self):
        backend, session, _ = _build(signed_in=False)
        backend.emit("TOKEN_REFRESHED", Session(access_token="t"))
        self.assertFalse(session.is_authorized)

    def test_stop_unsubscribes(self):
        backend, session, _ = _build(signed_in=False)
        session.stop()
        backend.emit("SIGNED_IN", make_session())
        self.assertFalse(session.is_authorized)

    def test_sync_picks_up_dropped_session(self):
        backend, session, _ = _build()
        backend.session = None
        session.sync()
        self.assertFalse(session.is_authorized)


class CatalogStoreTest(unittest.TestCase):
    def test_reload_replaces_records(self):
        backend, _, catalog = _build()
        backend.rows.append(SubstitutionRecord(id=2, product_name="Apple", old_code="5", new_code="99"))
        self.assertIsNone(catalog.reload())
        self.assertEqual([r.product_name for r in catalog.records], ["Apple", "Banana"])
        self.assertFalse(catalog.loading)
        self.assertIsNone(catalog.error)

    def test_failed_reload_keeps_previous_records(self):
        backend, _, catalog = _build()
        backend.fail_list = True
        failure = catalog.reload()
        self.assertEqual(failure.message, "Failed to load data.")
        self.assertEqual(catalog.error, failure)
        self.assertEqual([r.product_name for r in catalog.records], ["Banana"])
        self.assertFalse(catalog.loading)

        backend.fail_list = False
        catalog.reload()
        self.assertIsNone(catalog.error)

    def test_loading_flag_is_set_during_reload(self):
        backend, _, catalog = _build()
        states = []
        catalog.subscribe(lambda store: states.append(store.loading))
        catalog.reload()
        self.assertEqual(states, [True, False])


class EditorWorkflowTest(unittest.TestCase):
    def setUp(self):
        self.backend, self.session, self.catalog = _build()
        self.editor = EditorWorkflow(self.backend, self.catalog, self.session)

    def test_open_seeds_draft(self):
        self.editor.open()
        self.assertEqual(self.editor.mode, EditorMode.CREATING)
        self.assertEqual(self.editor.draft, Draft())

        record = self.catalog.records[0]
        self.editor.open(record)
        self.assertEqual(self.editor.mode, EditorMode.EDITING)
        self.assertEqual(self.editor.draft.product_name, "Banana")
        self.assertEqual(self.editor.draft.notes, "")

        self.editor.close()
        self.assertEqual(self.editor.mode, EditorMode.CLOSED)
        self.assertIsNone(self.editor.draft)

    def test_blank_required_field_never_calls_backend(self):
        for blank in ("product_name", "old_code", "new_code"):
            fields = {"product_name": "Kiwi", "old_code": "4030", "new_code": "4301"}
            fields[blank] = "   "
            self.editor.open()
            self.editor.update_draft(**fields)
            error = self.editor.submit()
            self.assertEqual(error.kind, ErrorKind.VALIDATION)
            self.assertEqual(error.message, errors.MISSING_FIELDS)
            self.assertTrue(self.editor.is_open)
        self.assertEqual(self.backend.calls, [])

    def test_update_draft_keeps_other_fields(self):
        self.editor.open(self.catalog.records[0])
        self.editor.update_draft(notes="Loose")
        self.assertEqual(
            self.editor.draft,
            Draft(product_name="Banana", old_code="0", new_code="17", notes="Loose"),
        )

    def test_blocked_submit_error_is_a_model(self):
        self.editor.open()
        error = self.editor.submit()
        self.assertEqual(
            error.model_dump(),
            {"kind": ErrorKind.VALIDATION, "message": errors.MISSING_FIELDS, "field": "product_name"},
        )

    def test_duplicate_new_code_never_calls_backend(self):
        self.editor.open()
        self.editor.update_draft(product_name="Apple", old_code="1", new_code="17", notes="")
        error = self.editor.submit()
        self.assertEqual(error.kind, ErrorKind.DUPLICATE)
        self.assertEqual(error.field, "new_code")
        self.assertEqual(self.backend.calls, [])

    def test_duplicate_name_is_case_insensitive(self):
        self.editor.open()
        self.editor.update_draft(product_name=" BANANA ", old_code="1", new_code="500")
        error = self.editor.submit()
        self.assertEqual(error.kind, ErrorKind.DUPLICATE)
        self.assertEqual(error.field, "product_name")
        self.assertEqual(self.backend.calls, [])

    def test_editing_keeps_own_values(self):
        record = self.catalog.records[0]
        self.editor.open(record)
        self.editor.update_draft(notes="Loose only")
        self.assertIsNone(self.editor.submit())
        self.assertEqual(self.backend.call_names(), ["update", "list"])
        self.assertEqual(self.backend.calls[0][1], record.id)
        self.assertEqual(self.catalog.records[0].notes, "Loose only")
        self.assertFalse(self.editor.is_open)

    def test_create_trims_and_reloads_once(self):
        self.editor.open()
        self.editor.update_draft(product_name=" Kiwi ", old_code="4030 ", new_code=" 4301", notes="  ")
        self.assertIsNone(self.editor.submit())
        self.assertEqual(self.backend.call_names(), ["create", "list"])
        payload = self.backend.calls[0][1]
        self.assertEqual((payload.product_name, payload.old_code, payload.new_code), ("Kiwi", "4030", "4301"))
        self.assertIsNone(payload.notes)
        self.assertEqual([r.product_name for r in self.catalog.records], ["Banana", "Kiwi"])
        self.assertEqual(self.editor.mode, EditorMode.CLOSED)

    def test_not_authorized_never_calls_backend(self):
        self.backend.emit("SIGNED_OUT", None)
        self.editor.open()
        self.editor.update_draft(product_name="Kiwi", old_code="4030", new_code="4301")
        error = self.editor.submit()
        self.assertEqual(error.kind, ErrorKind.AUTHORIZATION)
        self.assertEqual(error.message, errors.LOGIN_REQUIRED_EDIT)
        self.assertEqual(self.backend.calls, [])

    def test_backend_failure_keeps_draft_open(self):
        self.backend.fail_save = True
        self.editor.open()
        self.editor.update_draft(product_name="Kiwi", old_code="4030", new_code="4301")
        error = self.editor.submit()
        self.assertEqual(error.kind, ErrorKind.BACKEND)
        self.assertEqual(error.message, "Save failed. Check your login and try again.")
        self.assertEqual(self.backend.call_names(), ["create"])
        self.assertEqual(self.editor.mode, EditorMode.CREATING)
        self.assertEqual(self.editor.draft.product_name, "Kiwi")

    def test_find_duplicate_excludes_target(self):
        record = self.catalog.records[0]
        payload = Draft.from_record(record).to_payload()
        self.assertEqual(find_duplicate(self.catalog.records, payload), "product_name")
        self.assertIsNone(find_duplicate(self.catalog.records, payload, exclude_id=record.id))

    def test_submit_on_closed_editor_raises(self):
        with self.assertRaises(RuntimeError):
            self.editor.submit()


class LoginWorkflowTest(unittest.TestCase):
    def setUp(self):
        self.backend, self.session, _ = _build(signed_in=False)
        self.login = LoginWorkflow(self.backend, {"Substitutions": "manager@example.com"})

    def test_resolve_identifier(self):
        self.assertEqual(self.login.resolve_identifier(" someone@example.com "), ("someone@example.com", None))
        self.assertEqual(self.login.resolve_identifier("SUBSTITUTIONS"), ("manager@example.com", None))

        email, error = self.login.resolve_identifier("stranger")
        self.assertIsNone(email)
        self.assertEqual(error.message, errors.UNKNOWN_IDENTIFIER)

        email, error = self.login.resolve_identifier("   ")
        self.assertEqual(error.message, errors.MISSING_IDENTIFIER)

    def test_unknown_username_never_calls_backend(self):
        self.login.open()
        error = self.login.sign_in("stranger", "secret")
        self.assertEqual(error.message, errors.UNKNOWN_IDENTIFIER)
        self.assertEqual(self.backend.calls, [])
        self.assertTrue(self.login.is_open)

    def test_failed_login_is_generic(self):
        self.login.open()
        error = self.login.sign_in("substitutions", "wrong")
        self.assertEqual(error.kind, ErrorKind.BACKEND)
        self.assertEqual(error.message, "Login failed. Check email or username and password.")
        self.assertTrue(self.login.is_open)
        self.assertFalse(self.session.is_authorized)

    def test_successful_login_closes_and_clears(self):
        self.login.open()
        self.assertIsNone(self.login.sign_in("substitutions", "secret"))
        self.assertEqual(self.backend.calls, [("sign_in", "manager@example.com")])
        self.assertFalse(self.login.is_open)
        self.assertEqual(self.login.identifier, "")
        self.assertTrue(self.session.is_authorized)


class DeleteActionTest(unittest.TestCase):
    def setUp(self):
        self.backend, self.session, self.catalog = _build()
        self.deleter = DeleteAction(self.backend, self.catalog, self.session)
        self.record = self.catalog.records[0]

    def test_prompt_names_record(self):
        self.assertEqual(confirmation_prompt(self.record), 'Delete "Banana" (Old 0)?')

    def test_not_authorized_never_calls_backend(self):
        self.backend.emit("SIGNED_OUT", None)
        asked = []
        error = self.deleter.run(self.record, confirm=lambda prompt: asked.append(prompt) or True)
        self.assertEqual(error.kind, ErrorKind.AUTHORIZATION)
        self.assertEqual(error.message, errors.LOGIN_REQUIRED_DELETE)
        self.assertEqual(asked, [])
        self.assertEqual(self.backend.calls, [])

    def test_declined_confirmation_never_calls_backend(self):
        self.assertIsNone(self.deleter.run(self.record, confirm=lambda prompt: False))
        self.assertEqual(self.backend.calls, [])
        self.assertIsNone(self.deleter.pending)
        self.assertEqual(len(self.catalog.records), 1)

    def test_confirmed_delete_reloads_once(self):
        asked = []
        error = self.deleter.run(self.record, confirm=lambda prompt: asked.append(prompt) or True)
        self.assertIsNone(error)
        self.assertEqual(asked, ['Delete "Banana" (Old 0)?'])
        self.assertEqual(self.backend.call_names(), ["delete", "list"])
        self.assertEqual(self.catalog.records, ())

    def test_backend_failure_leaves_catalog(self):
        self.backend.fail_delete = True
        error = self.deleter.run(self.record, confirm=lambda prompt: True)
        self.assertEqual(error.kind, ErrorKind.BACKEND)
        self.assertEqual(error.message, "Delete failed. Check your login and try again.")
        self.assertEqual(self.backend.call_names(), ["delete"])
        self.assertEqual(len(self.catalog.records), 1)

    def test_two_step_request_and_resolve(self):
        self.assertIsNone(self.deleter.request(self.record))
        self.assertEqual(self.deleter.prompt, 'Delete "Banana" (Old 0)?')
        self.assertEqual(self.backend.calls, [])
        self.assertIsNone(self.deleter.resolve(True))
        self.assertEqual(self.backend.call_names(), ["delete", "list"])


if __name__ == "__main__":
    unittest.main()
