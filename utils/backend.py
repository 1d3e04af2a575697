"""Client for the hosted substitutions backend.

Wraps the backend's REST data endpoint and its auth endpoint. Operations do
not raise past this module: network errors and rejected requests are logged
and returned as one of the tagged failures below, next to a ``None`` value.
Each failure carries a generic message that is safe to show and a ``detail``
with the backend's own text for the logs.

Access control is entirely the backend's business. The client only forwards
the current session token (or the anon key when signed out).

Copyright (c) Bryn Gwalad 2025
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
from sqlmodel import SQLModel

from api.models import AuthUser, Session, SubstitutionPayload, SubstitutionRecord
from utils import config

logger = logging.getLogger("substitutions_backend")

RECORD_COLUMNS = "id,product_name,old_code,new_code,notes"

# Access tokens are treated as expired this many seconds early.
EXPIRY_MARGIN = 10

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

SessionListener = Callable[[str, Optional[Session]], None]
RecordId = Union[int, str]


class Failure(SQLModel):
    """A backend call that did not succeed.

    Attributes:
        message: generic text that is safe to show the user
        detail: the backend's own description, for the logs only
    """

    message: str = "Request failed."
    detail: Optional[str] = None


class LoadFailure(Failure):
    """Reading the substitutions list failed."""

    message: str = "Failed to load data."


class SaveFailure(Failure):
    """An insert or update was refused or did not reach the backend."""

    message: str = "Save failed. Check your login and try again."


class DeleteFailure(Failure):
    """A delete was refused or did not reach the backend."""

    message: str = "Delete failed. Check your login and try again."


class LoginFailure(Failure):
    """Sign-in failed. Bad password and unknown account look the same."""

    message: str = "Login failed. Check email or username and password."


def describe_error(exc: Exception) -> str:
    """Return a short description of a failed request for the logs."""
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("message", "error_description", "msg", "error"):
                if body.get(key):
                    return f"{response.status_code}: {body[key]}"
        return f"{response.status_code}: {response.text[:200]}"
    return str(exc) or exc.__class__.__name__


def session_from_token(body: Any, now: float) -> Session:
    """Build a Session from an auth token response.

    Raises ValueError or KeyError when the response is not a token grant.
    """
    if not isinstance(body, dict):
        raise ValueError("token response is not an object")
    expires_at = body.get("expires_at")
    if expires_at is None and body.get("expires_in") is not None:
        expires_at = int(now) + int(body["expires_in"])
    user = body.get("user") or {}
    return Session(
        access_token=body["access_token"],
        refresh_token=body.get("refresh_token"),
        expires_at=expires_at,
        user=AuthUser(id=str(user["id"]), email=user.get("email")) if user.get("id") else None,
    )


class BackendClient:
    """Adapter over the hosted data collection and auth provider.

    One instance holds at most one session, so each browser view gets its
    own client. ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        anon_key: Optional[str] = None,
        table: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.url = (config.BACKEND_URL if url is None else url).rstrip("/")
        self.anon_key = config.BACKEND_ANON_KEY if anon_key is None else anon_key
        self.table = table or config.SUBSTITUTIONS_TABLE
        self._clock = clock
        self._http = httpx.Client(
            base_url=self.url,
            timeout=config.BACKEND_TIMEOUT if timeout is None else timeout,
            transport=transport,
            headers={"apikey": self.anon_key},
        )
        self._session: Optional[Session] = None
        self._listeners: List[SessionListener] = []

    @property
    def _table_path(self) -> str:
        return f"/rest/v1/{self.table}"

    def _bearer(self, token: Optional[str] = None) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token or self.anon_key}"}

    def _data_request(self, method: str, **kwargs) -> httpx.Response:
        session = self.current_session()
        headers = kwargs.pop("headers", {})
        headers.update(self._bearer(session.access_token if session else None))
        response = self._http.request(method, self._table_path, headers=headers, **kwargs)
        response.raise_for_status()
        return response

    # -- data ----------------------------------------------------------------

    def list(self) -> Tuple[Optional[List[SubstitutionRecord]], Optional[LoadFailure]]:
        """Return all substitutions ordered by product name."""
        try:
            response = self._data_request(
                "GET", params={"select": RECORD_COLUMNS, "order": "product_name.asc"}
            )
            records = [SubstitutionRecord.model_validate(row) for row in response.json()]
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            detail = describe_error(exc)
            logger.warning("Loading %s failed: %s", self.table, detail)
            return None, LoadFailure(detail=detail)
        return records, None

    def _write(self, method: str, failure_type, **kwargs):
        headers = {"Prefer": "return=representation"}
        try:
            response = self._data_request(method, headers=headers, **kwargs)
            rows = [SubstitutionRecord.model_validate(row) for row in response.json()]
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            detail = describe_error(exc)
            logger.warning("%s on %s failed: %s", method, self.table, detail)
            return None, failure_type(detail=detail)
        if not rows:
            # Row-level policies hide rows from writers they reject, so a
            # refused update or delete comes back as an empty result.
            logger.warning("%s on %s affected no rows", method, self.table)
            return None, failure_type(detail="no rows affected")
        return rows, None

    def create(self, payload: SubstitutionPayload) -> Tuple[Optional[SubstitutionRecord], Optional[SaveFailure]]:
        rows, failure = self._write("POST", SaveFailure, json=[payload.model_dump()])
        if failure is not None:
            return None, failure
        logger.info("Created substitution id=%s", rows[0].id)
        return rows[0], None

    def update(
        self, record_id: RecordId, payload: SubstitutionPayload
    ) -> Tuple[Optional[SubstitutionRecord], Optional[SaveFailure]]:
        rows, failure = self._write(
            "PATCH", SaveFailure, params={"id": f"eq.{record_id}"}, json=payload.model_dump()
        )
        if failure is not None:
            return None, failure
        logger.info("Updated substitution id=%s", record_id)
        return rows[0], None

    def delete(self, record_id: RecordId) -> Tuple[bool, Optional[DeleteFailure]]:
        rows, failure = self._write("DELETE", DeleteFailure, params={"id": f"eq.{record_id}"})
        if failure is not None:
            return False, failure
        logger.info("Deleted substitution id=%s", record_id)
        return True, None

    # -- auth ----------------------------------------------------------------

    def _token_grant(self, grant_type: str, body: Dict[str, str]) -> Session:
        response = self._http.post(
            "/auth/v1/token",
            params={"grant_type": grant_type},
            json=body,
            headers=self._bearer(),
        )
        response.raise_for_status()
        return session_from_token(response.json(), self._clock())

    def sign_in(self, email: str, password: str) -> Tuple[Optional[Session], Optional[LoginFailure]]:
        try:
            session = self._token_grant("password", {"email": email, "password": password})
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            # Keep the reason in the logs only; the caller gets a generic message.
            logger.warning("Sign-in for %s failed: %s", email, describe_error(exc))
            return None, LoginFailure(detail=describe_error(exc))
        logger.info("Signed in as %s", email)
        self._set_session(SIGNED_IN, session)
        return session, None

    def sign_out(self) -> None:
        """End the session. The local session is dropped even if the backend call fails."""
        session = self._session
        if session is None:
            return
        try:
            response = self._http.post("/auth/v1/logout", headers=self._bearer(session.access_token))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Sign-out request failed: %s", describe_error(exc))
        self._set_session(SIGNED_OUT, None)

    def _refresh(self, refresh_token: str) -> Optional[Session]:
        try:
            return self._token_grant("refresh_token", {"refresh_token": refresh_token})
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            logger.warning("Session refresh failed: %s", describe_error(exc))
            return None

    def current_session(self) -> Optional[Session]:
        """Return the live session, refreshing an expired access token first.

        A session that has expired and cannot be refreshed is dropped and
        listeners are told about the sign-out.
        """
        session = self._session
        if session is None or not session.is_expired(self._clock(), EXPIRY_MARGIN):
            return session
        if session.refresh_token:
            refreshed = self._refresh(session.refresh_token)
            if refreshed is not None:
                self._set_session(TOKEN_REFRESHED, refreshed)
                return refreshed
        logger.info("Session expired")
        self._set_session(SIGNED_OUT, None)
        return None

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """Register ``callback(event, session)``; returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_session(self, event: str, session: Optional[Session]) -> None:
        self._session = session
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Session listener failed for event %s", event)

    def close(self) -> None:
        self._http.close()
