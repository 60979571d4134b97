# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List

from portal.auth.passwords import hash_password
from portal.auth.users import normalize_username
from portal.database import Database
from portal.errors import DuplicateEntryError, ValidationError
from portal.infra import accounts_repo
from portal.infra.accounts_repo import AccountRecord

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")
LETTER_AND_DIGIT_RE = re.compile(r"(?=.*[a-zA-Z])(?=.*\d)")
MAX_LEN = 255


@dataclass(frozen=True)
class RegistrationForm:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    username: str = ""
    password: str = ""
    confirm_password: str = ""
    agree_terms: str = ""


def validate_login(username: str, password: str) -> List[str]:
    if not username or not password:
        return ["Please fill in all fields"]
    errors: List[str] = []
    if len(username.strip()) < 3:
        errors.append("Username must be at least 3 characters")
    if len(password) < 6:
        errors.append("Password must be at least 6 characters")
    return errors


def validate_registration(form: RegistrationForm) -> List[str]:
    """Field-level checks only; uniqueness is enforced by `register`."""
    errors: List[str] = []

    first = (form.first_name or "").strip()
    if not first:
        errors.append("First name is required")
    elif len(first) > MAX_LEN:
        errors.append("First name must be less than 255 characters")

    last = (form.last_name or "").strip()
    if not last:
        errors.append("Last name is required")
    elif len(last) > MAX_LEN:
        errors.append("Last name must be less than 255 characters")

    email = (form.email or "").strip()
    if not email:
        errors.append("Email is required")
    elif not EMAIL_RE.match(email):
        errors.append("Please enter a valid email address")
    elif len(email) > MAX_LEN:
        errors.append("Email must be less than 255 characters")

    username = normalize_username(form.username)
    if not username:
        errors.append("Username is required")
    elif len(username) < 3:
        errors.append("Username must be at least 3 characters long")
    elif len(username) > MAX_LEN:
        errors.append("Username must be less than 255 characters")
    elif not USERNAME_RE.match(username):
        errors.append("Username can only contain letters, numbers, dots, hyphens, and underscores")

    password = form.password or ""
    if not password:
        errors.append("Password is required")
    else:
        if len(password) < 8:
            errors.append("Password must be at least 8 characters long")
        if len(password) > MAX_LEN:
            errors.append("Password must be less than 255 characters")
        if not LETTER_AND_DIGIT_RE.match(password):
            errors.append("Password must contain at least one letter and one number")

    if not form.confirm_password:
        errors.append("Password confirmation is required")
    elif password != form.confirm_password:
        errors.append("Passwords do not match")

    if form.agree_terms != "on":
        errors.append("You must agree to the terms and conditions")

    return errors


def register(db: Database, form: RegistrationForm) -> AccountRecord:
    """Validate, check uniqueness, hash and create profile + credential atomically.

    Raises ValidationError, DuplicateEntryError or StoreError.
    """
    errors = validate_registration(form)
    if errors:
        raise ValidationError(errors)

    email = form.email.strip().lower()
    username = normalize_username(form.username)

    if accounts_repo.username_exists(db, username):
        raise DuplicateEntryError("username")
    if accounts_repo.email_exists(db, email):
        raise DuplicateEntryError("email")

    account = accounts_repo.create_account(
        db,
        first_name=form.first_name.strip(),
        last_name=form.last_name.strip(),
        email=email,
        username=username,
        password_hash=hash_password(form.password),
    )
    logger.info("Registered account %s (user id %s)", account.username, account.user_id)
    return account
