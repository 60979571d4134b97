# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import func, select, update

from portal.database import Database
from portal.models import Credential, UserProfile


@dataclass(frozen=True)
class AccountRecord:
    id: int
    username: str
    password_hash: str
    user_id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username


def _to_record(cred: Credential, profile: Optional[UserProfile]) -> AccountRecord:
    return AccountRecord(
        id=cred.id,
        username=cred.username,
        password_hash=cred.password_hash,
        user_id=cred.user_id,
        first_name=(profile.first_name if profile else "") or "",
        last_name=(profile.last_name if profile else "") or "",
        email=(profile.email if profile else "") or "",
    )


def find_credential(db: Database, username: str) -> Optional[AccountRecord]:
    """Exact-match lookup of a credential row, joined with its profile when present."""
    if not username:
        return None
    stmt = (
        select(Credential, UserProfile)
        .outerjoin(UserProfile, Credential.user_id == UserProfile.id)
        .where(Credential.username == username)
        .limit(1)
    )
    with db.session() as s:
        row = s.execute(stmt).first()
    if row is None:
        return None
    return _to_record(row[0], row[1])


def find_by_email(db: Database, email: str) -> Optional[AccountRecord]:
    stmt = (
        select(Credential, UserProfile)
        .join(UserProfile, Credential.user_id == UserProfile.id)
        .where(UserProfile.email == email)
        .limit(1)
    )
    with db.session() as s:
        row = s.execute(stmt).first()
    if row is None:
        return None
    return _to_record(row[0], row[1])


def username_exists(db: Database, username: str) -> bool:
    with db.session() as s:
        return s.execute(select(Credential.id).where(Credential.username == username).limit(1)).first() is not None


def email_exists(db: Database, email: str) -> bool:
    with db.session() as s:
        return s.execute(select(UserProfile.id).where(UserProfile.email == email).limit(1)).first() is not None


def create_account(
    db: Database,
    *,
    first_name: str,
    last_name: str,
    email: str,
    username: str,
    password_hash: str,
    created_by: Optional[int] = None,
) -> AccountRecord:
    """Insert a profile and its credential as one transaction.

    A failure on either insert rolls both back (see `Database.session`).
    """
    with db.session() as s:
        profile = UserProfile(
            first_name=first_name,
            last_name=last_name,
            email=email,
            created_by=created_by,
            updated_by=created_by,
        )
        s.add(profile)
        s.flush()

        cred = Credential(
            user_id=profile.id,
            username=username,
            password_hash=password_hash,
            created_by=created_by,
            updated_by=created_by,
        )
        s.add(cred)
        s.flush()
        record = _to_record(cred, profile)
    return record


def update_password(db: Database, username: str, password_hash: str) -> bool:
    stmt = (
        update(Credential)
        .where(Credential.username == username)
        .values(password_hash=password_hash, updated_at=datetime.now(timezone.utc))
    )
    with db.session() as s:
        result = s.execute(stmt)
        return (result.rowcount or 0) > 0


def count_accounts(db: Database) -> Dict[str, int]:
    with db.session() as s:
        users = s.execute(select(func.count()).select_from(UserProfile)).scalar_one()
        credentials = s.execute(select(func.count()).select_from(Credential)).scalar_one()
    return {"users": int(users), "credentials": int(credentials)}
