"""Data models for the substitutions client.

This module defines the SQLModel models used by the client:
SubstitutionPayload, SubstitutionRecord, AuthUser and Session. None of them
are tables; rows live in the hosted backend and these models only describe
what it sends and accepts.

Copyright (c) Bryn Gwalad 2025
"""

from typing import Optional, Union

from sqlmodel import SQLModel


class SubstitutionPayload(SQLModel):
    """The editable fields of a substitution.

    Attributes:
        product_name: product the change applies to
        old_code: the superseded code
        new_code: the replacement code
        notes: optional free-text notes (null when empty)
    """

    product_name: str
    old_code: str
    new_code: str
    notes: Optional[str] = None


class SubstitutionRecord(SubstitutionPayload):
    """A substitution as stored by the backend.

    ``id`` is assigned by the backend on insert and is opaque to the client.
    """

    id: Union[int, str]


class AuthUser(SQLModel):
    id: str
    email: Optional[str] = None


class Session(SQLModel):
    """An authenticated session issued by the backend's auth provider.

    Attributes:
        access_token: bearer token sent with data requests
        refresh_token: token used to obtain a new access token
        expires_at: unix time (seconds) at which the access token expires
        user: identity the session belongs to
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    user: Optional[AuthUser] = None

    def is_expired(self, now: float, margin: float = 0) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at - margin <= now
