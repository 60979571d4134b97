# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse

from portal.config import Settings
from portal.core.utils import redirect_with
from portal.database import Database
from portal.dependencies import get_database, get_renderer, get_settings
from portal.errors import StoreError
from portal.infra import accounts_repo
from portal.rendering import Renderer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/forgot-password", response_class=HTMLResponse)
def forgot_password_get(
    request: Request,
    renderer: Renderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
):
    return renderer.render(
        request,
        "forgot-password",
        {
            "title": f"Forgot Password - {settings.instance_name}",
            "description": "Reset your password",
            "active_page": None,
        },
    )


@router.post("/forgot-password")
def forgot_password_post(email: str = Form(""), db: Database = Depends(get_database)):
    """Accept a reset request.

    The account lookup only feeds the server log. Known and unknown addresses
    get the same redirect so the form does not reveal which emails are
    registered. No mail is sent.
    """
    email = (email or "").strip()
    if not email:
        return redirect_with("/forgot-password", error="Please enter your email address")
    try:
        account = accounts_repo.find_by_email(db, email.lower())
    except StoreError as exc:
        logger.error("Password reset lookup failed: %s", exc)
        account = None
    logger.info("Password reset requested (known account: %s)", account is not None)
    return redirect_with(
        "/forgot-password",
        success="Password reset instructions have been sent to your email",
    )
