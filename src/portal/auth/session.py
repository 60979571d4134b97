# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Session lifecycle: ANONYMOUS -> AUTHENTICATED -> (EXPIRED | LOGGED_OUT).

The cookie carries only a signed, opaque session id. The session payload
lives in a `SessionStore`.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from itsdangerous import BadSignature, URLSafeSerializer

from portal.auth.session_store import SessionRecord, SessionStore, utcnow
from portal.auth.users import AuthenticatedUser
from portal.errors import StoreError

logger = logging.getLogger(__name__)

SESSION_SALT = "portal.session.v1"
SCOPE_KEY = "portal.session"


@dataclass(frozen=True)
class Identity:
    """Resolved identity of the current request."""

    id: Optional[int]
    username: str
    name: str
    role: str
    login_time: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "login_time": self.login_time,
        }


def _identity_from(data: Dict[str, Any]) -> Optional[Identity]:
    # Either fully authenticated (flag + snapshot) or anonymous.
    if data.get("is_authenticated") is not True:
        return None
    user = data.get("user")
    if not isinstance(user, dict):
        return None
    username = str(user.get("username") or "").strip()
    if not username:
        return None
    return Identity(
        id=user.get("id"),
        username=username,
        name=str(user.get("name") or username),
        role=str(user.get("role") or "user"),
        login_time=str(user.get("login_time") or ""),
    )


@dataclass
class SessionContext:
    session_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    expires: Optional[datetime] = None
    issued: bool = False
    destroyed: bool = False

    @property
    def identity(self) -> Optional[Identity]:
        if self.destroyed or not self.session_id:
            return None
        return _identity_from(self.data)

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        *,
        secret: str,
        max_age: int = 24 * 60 * 60,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret:
            raise RuntimeError("Session secret is required")
        self.store = store
        self.max_age = int(max_age)
        self.clock = clock or utcnow
        self._serializer = URLSafeSerializer(secret_key=secret, salt=SESSION_SALT)

    # Cookie value -------------------------------------------------------

    def sign(self, session_id: str) -> str:
        return self._serializer.dumps({"sid": session_id})

    def unsign(self, token: str) -> Optional[str]:
        if not token:
            return None
        try:
            data = self._serializer.loads(token)
        except BadSignature:
            return None
        sid = str((data or {}).get("sid") or "").strip() if isinstance(data, dict) else ""
        return sid or None

    # Lifecycle ----------------------------------------------------------

    def _expiry(self) -> datetime:
        return self.clock() + timedelta(seconds=self.max_age)

    def load(self, token: str) -> SessionContext:
        """Restore the session referenced by a cookie; unknown or expired ids load as anonymous."""
        sid = self.unsign(token)
        if not sid:
            return SessionContext()
        try:
            record = self.store.get(sid, self.clock())
        except StoreError as exc:
            logger.warning("Session lookup failed, continuing as anonymous: %s", exc)
            return SessionContext()
        if record is None:
            return SessionContext()
        ctx = SessionContext(session_id=record.session_id, data=dict(record.data), expires=record.expires)
        if ctx.identity is None:
            return SessionContext()
        return ctx

    def login(self, ctx: SessionContext, user: AuthenticatedUser) -> None:
        """ANONYMOUS -> AUTHENTICATED. Issues a fresh session id and persists the snapshot."""
        if ctx.session_id:
            self.store.destroy(ctx.session_id)

        now = self.clock()
        sid = secrets.token_urlsafe(32)
        data = {
            "is_authenticated": True,
            "user": {
                "id": user.id,
                "username": user.username,
                "name": user.name,
                "role": user.role,
                "login_time": now.isoformat(),
            },
        }
        expires = now + timedelta(seconds=self.max_age)
        self.store.save(SessionRecord(sid, data, expires))

        ctx.session_id = sid
        ctx.data = data
        ctx.expires = expires
        ctx.issued = True
        ctx.destroyed = False

    def commit(self, ctx: SessionContext) -> Optional[str]:
        """Rolling refresh at the end of a request.

        Returns the cookie value to send, or None when no cookie should be
        (re)issued. Anonymous sessions are never persisted.
        """
        if ctx.destroyed or not ctx.is_authenticated or not ctx.session_id:
            return None
        if not ctx.issued:
            ctx.expires = self._expiry()
            self.store.touch(ctx.session_id, ctx.expires)
        return self.sign(ctx.session_id)

    def logout(self, ctx: SessionContext) -> None:
        """AUTHENTICATED -> LOGGED_OUT.

        Store failures propagate as `StoreError` and leave the context intact,
        so the caller keeps the client cookie.
        """
        if ctx.session_id:
            self.store.destroy(ctx.session_id)
        ctx.session_id = None
        ctx.data = {}
        ctx.expires = None
        ctx.destroyed = True
