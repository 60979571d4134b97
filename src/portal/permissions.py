# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from portal.auth.session import SCOPE_KEY, Identity, SessionContext
from portal.config import Settings
from portal.errors import ForbiddenError, NotAuthenticatedError

ALREADY_LOGGED_IN = "/?info=You+are+already+logged+in"


def session_context(request: Request) -> SessionContext:
    ctx = request.scope.get(SCOPE_KEY)
    if ctx is None:
        ctx = SessionContext()
        request.scope[SCOPE_KEY] = ctx
    return ctx


def current_identity(request: Request) -> Optional[Identity]:
    return session_context(request).identity


def require_user(request: Request) -> Identity:
    identity = current_identity(request)
    if identity is None:
        raise NotAuthenticatedError()
    return identity


def require_role(role: str):
    wanted = (role or "").strip().lower()

    def _dep(request: Request) -> Identity:
        identity = require_user(request)
        if identity.role.strip().lower() != wanted:
            raise ForbiddenError(required_role=wanted, actual_role=identity.role)
        return identity

    return _dep


def redirect_if_authenticated(request: Request) -> None:
    """For pages meant only for anonymous visitors (login, register)."""
    if current_identity(request) is not None:
        raise HTTPException(status_code=303, headers={"Location": ALREADY_LOGGED_IN})


def cookie_settings(settings: Settings) -> dict:
    return {"httponly": True, "samesite": "lax", "secure": bool(settings.cookie_secure)}
