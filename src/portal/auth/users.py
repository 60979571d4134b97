# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

from portal.auth.passwords import hash_password, needs_rehash, verify_password
from portal.database import Database
from portal.errors import AuthenticationError, AuthFailure, StoreError
from portal.infra import accounts_repo

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "user"


def normalize_username(username: Optional[str]) -> str:
    """Usernames are stored and looked up trimmed and lowercased."""
    return (username or "").strip().lower()


@dataclass(frozen=True)
class AuthenticatedUser:
    id: int
    username: str
    name: str
    role: str = DEFAULT_ROLE


@dataclass(frozen=True)
class AuthOutcome:
    user: Optional[AuthenticatedUser] = None
    reason: Optional[AuthFailure] = None
    stale_hash: bool = False

    @property
    def ok(self) -> bool:
        return self.user is not None


# ------------------ Roles file ------------------

# path -> (mtime, {username: role})
_ROLES_CACHE: Dict[str, Tuple[float, Dict[str, str]]] = {}


def _load_roles_file(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    roles = (raw.get("roles") or {}) if isinstance(raw, dict) else {}
    out: Dict[str, str] = {}
    if not isinstance(roles, dict):
        return out
    for uname, role in roles.items():
        username = normalize_username(str(uname))
        if not username or role is None:
            continue
        out[username] = str(role).strip().lower() or DEFAULT_ROLE
    return out


def get_roles(path: Path) -> Dict[str, str]:
    key = str(path)
    try:
        mtime = path.stat().st_mtime if path.exists() else 0.0
    except OSError:
        mtime = 0.0

    cached = _ROLES_CACHE.get(key)
    if cached and mtime and cached[0] == mtime:
        return cached[1]

    roles = _load_roles_file(path)
    _ROLES_CACHE[key] = (mtime, roles)
    return roles


def role_for(username: str, roles_path: Optional[Path] = None) -> str:
    if roles_path is None:
        return DEFAULT_ROLE
    return get_roles(roles_path).get(username, DEFAULT_ROLE)


# ------------------ Credential verification ------------------

_DUMMY_HASH: Optional[str] = None


def _dummy_verify(password: str) -> None:
    # Unknown usernames still pay for one hash verification.
    global _DUMMY_HASH
    if _DUMMY_HASH is None:
        _DUMMY_HASH = hash_password("portal-dummy-password")
    verify_password(_DUMMY_HASH, password or "x")


def verify_credentials(
    db: Database,
    username: str,
    password: str,
    *,
    roles_path: Optional[Path] = None,
) -> AuthOutcome:
    """Resolve a username/password pair to a user view or a typed failure.

    Read-only: no session is created here.
    """
    record = accounts_repo.find_credential(db, normalize_username(username))
    if record is None:
        _dummy_verify(password)
        return AuthOutcome(reason=AuthFailure.USER_NOT_FOUND)

    if not verify_password(record.password_hash, password):
        return AuthOutcome(reason=AuthFailure.INVALID_PASSWORD)

    return AuthOutcome(
        user=AuthenticatedUser(
            id=record.id,
            username=record.username,
            name=record.display_name,
            role=role_for(record.username, roles_path),
        ),
        stale_hash=needs_rehash(record.password_hash),
    )


def authenticate(
    db: Database,
    username: str,
    password: str,
    *,
    roles_path: Optional[Path] = None,
) -> AuthenticatedUser:
    outcome = verify_credentials(db, username, password, roles_path=roles_path)
    if outcome.user is None:
        raise AuthenticationError(outcome.reason or AuthFailure.INVALID_PASSWORD)
    if outcome.stale_hash:
        try:
            accounts_repo.update_password(db, outcome.user.username, hash_password(password))
        except StoreError as exc:
            logger.warning("Could not upgrade password hash for %s: %s", outcome.user.username, exc)
    return outcome.user
