"""Errors surfaced to the user by the workflows.

Copyright (c) Bryn Gwalad 2025
"""

from enum import Enum
from typing import Optional

from sqlmodel import SQLModel


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    AUTHORIZATION = "authorization"
    BACKEND = "backend"


class ActionError(SQLModel):
    """A failed user action.

    Attributes:
        kind: which class of problem blocked the action
        message: text shown to the user
        field: the form field at fault, when there is one
    """

    kind: ErrorKind
    message: str
    field: Optional[str] = None


MISSING_FIELDS = "Please fill Product Name, Old Code, and New Code."
DUPLICATE_NAME = "Duplicate: a substitution for this Product Name already exists."
DUPLICATE_NEW_CODE = "Duplicate: this New Code is already used by another substitution."
LOGIN_REQUIRED_EDIT = "You must be logged in to edit."
LOGIN_REQUIRED_DELETE = "You must be logged in to delete."
MISSING_IDENTIFIER = "Please enter your email or username."
UNKNOWN_IDENTIFIER = "Unknown username. Use your email address, or ask the admin to add your username."
