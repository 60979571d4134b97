#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass
from pathlib import Path

import yaml

from portal.config import Settings
from portal.database import Database
from portal.errors import DuplicateEntryError, ValidationError
from portal.services.registration import RegistrationForm, register


def _grant_role(path: Path, username: str, role: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    else:
        raw = {"version": 1, "roles": {}}

    if "roles" not in raw or not isinstance(raw["roles"], dict):
        raw["roles"] = {}
    raw["roles"][username] = role

    path.write_text(yaml.safe_dump(raw, sort_keys=False, allow_unicode=True), encoding="utf-8")


def main() -> None:
    settings = Settings.from_env()
    db = Database.from_settings(settings)
    db.create_all()

    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()
    email = input("Email: ").strip()
    username = input("Username: ").strip()
    role = (input("Role [user/admin]: ").strip().lower() or "user")

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")

    form = RegistrationForm(
        first_name=first_name,
        last_name=last_name,
        email=email,
        username=username,
        password=pw1,
        confirm_password=pw2,
        agree_terms="on",
    )
    try:
        account = register(db, form)
    except (ValidationError, DuplicateEntryError) as exc:
        raise SystemExit(exc.public_message)

    if role != "user":
        _grant_role(settings.roles_path, account.username, role)

    print(f"OK -> {account.username} ({role})")


if __name__ == "__main__":
    main()
