# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication helpers.

This package provides:
- Password hashing/verification (argon2)
- Credential verification and role lookup (data/roles.yml)
- Server-side sessions behind a signed cookie (itsdangerous)
"""
