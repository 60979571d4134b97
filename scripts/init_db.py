#!/usr/bin/env python3
from __future__ import annotations

import logging
import sys

from portal.config import Settings
from portal.database import Database
from portal.errors import StoreError
from portal.infra.accounts_repo import count_accounts


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    settings = Settings.from_env()
    db = Database.from_settings(settings)
    try:
        db.create_all()
        counts = count_accounts(db)
    except StoreError as exc:
        print(f"Database setup failed: {exc}", file=sys.stderr)
        return 1
    finally:
        db.dispose()
    print(f"Database ready ({settings.database_url}): {counts['credentials']} accounts, {counts['users']} profiles")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
