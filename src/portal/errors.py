# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Application error taxonomy.

Every error carries a `public_message`: the only text that may reach the
browser. Internal details stay in the exception chain and the logs.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional


class AuthFailure(str, Enum):
    USER_NOT_FOUND = "user_not_found"
    INVALID_PASSWORD = "invalid_password"


class PortalError(Exception):
    public_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class ValidationError(PortalError):
    """One or more user-input problems, shown to the user as-is."""

    def __init__(self, messages: Iterable[str]):
        self.messages: List[str] = [m for m in messages if m]
        super().__init__(". ".join(self.messages))

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return ". ".join(self.messages)


class AuthenticationError(PortalError):
    # Both reasons share one message so usernames cannot be enumerated.
    public_message = "Invalid username or password"

    def __init__(self, reason: AuthFailure):
        self.reason = reason
        super().__init__(f"authentication failed: {reason.value}")


class AuthorizationError(PortalError):
    pass


class NotAuthenticatedError(AuthorizationError):
    public_message = "Authentication required"


class ForbiddenError(AuthorizationError):
    public_message = "You do not have permission to access this page"

    def __init__(self, required_role: str = "", actual_role: str = ""):
        self.required_role = required_role
        self.actual_role = actual_role
        super().__init__(f"role '{actual_role}' does not satisfy '{required_role}'")


class StoreError(PortalError):
    public_message = "Something went wrong. Please try again."


class StoreTimeoutError(StoreError):
    """Raised when no pooled connection became available in time."""


class DuplicateEntryError(PortalError):
    _MESSAGES = {
        "username": "This username is already taken.",
        "email": "This email address is already registered.",
    }

    def __init__(self, field: Optional[str] = None):
        self.field = field
        super().__init__(self.public_message)

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self._MESSAGES.get(self.field or "", "This entry already exists.")
