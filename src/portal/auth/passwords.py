# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_PH = PasswordHasher()


def hash_password(plain: str) -> str:
    if not plain:
        raise ValueError("Password must not be empty")
    return _PH.hash(plain)


def verify_password(hash_value: str, plain: str) -> bool:
    """True only when `plain` matches `hash_value`; malformed hashes count as a mismatch."""
    if not hash_value or not plain:
        return False
    try:
        return _PH.verify(hash_value, plain)
    except (VerificationError, InvalidHashError):
        return False


def needs_rehash(hash_value: str) -> bool:
    try:
        return _PH.check_needs_rehash(hash_value)
    except InvalidHashError:
        return True
