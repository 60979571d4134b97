# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from urllib.parse import urlencode

from fastapi.responses import RedirectResponse


def redirect_with(url: str, **messages: str) -> RedirectResponse:
    """303 redirect carrying flash-style messages in the query string."""
    query = urlencode({k: v for k, v in messages.items() if v})
    if query:
        url = f"{url}{'&' if '?' in url else '?'}{query}"
    return RedirectResponse(url=url, status_code=303)
