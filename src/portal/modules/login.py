# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse

from portal.auth.session import SessionContext, SessionManager
from portal.auth.users import authenticate, normalize_username
from portal.config import Settings
from portal.core.utils import redirect_with
from portal.database import Database
from portal.dependencies import get_database, get_renderer, get_session, get_session_manager, get_settings
from portal.errors import AuthenticationError, StoreError
from portal.permissions import cookie_settings, redirect_if_authenticated
from portal.rendering import Renderer
from portal.services.registration import validate_login

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/login", response_class=HTMLResponse, dependencies=[Depends(redirect_if_authenticated)])
def login_get(
    request: Request,
    renderer: Renderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
):
    return renderer.render(
        request,
        "login",
        {
            "title": f"Login - {settings.instance_name}",
            "description": "Sign in to your account",
            "active_page": "login",
        },
    )


@router.post("/login")
def login_post(
    username: str = Form(""),
    password: str = Form(""),
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
    sessions: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session),
):
    errors = validate_login(username, password)
    if errors:
        return redirect_with("/login", error=errors[0])

    username = normalize_username(username)
    try:
        user = authenticate(db, username, password, roles_path=settings.roles_path)
    except AuthenticationError as exc:
        logger.info("Login failed for %s: %s", username, exc.reason.value)
        return redirect_with("/login", error=exc.public_message)
    except StoreError as exc:
        logger.error("Authentication error: %s", exc)
        return redirect_with("/login", error="Authentication service unavailable")

    try:
        sessions.login(ctx, user)
    except StoreError as exc:
        logger.error("Could not create session for %s: %s", user.username, exc)
        return redirect_with("/login", error="Authentication service unavailable")

    logger.info("Login successful for %s", user.username)
    return redirect_with("/", success=f"Welcome back, {user.username}!")


@router.get("/logout")
def logout(
    settings: Settings = Depends(get_settings),
    sessions: SessionManager = Depends(get_session_manager),
    ctx: SessionContext = Depends(get_session),
):
    identity = ctx.identity
    username = identity.username if identity else "Unknown"
    try:
        sessions.logout(ctx)
    except StoreError as exc:
        logger.error("Error destroying session: %s", exc)
        return redirect_with("/", error="Error logging out")

    resp = redirect_with("/login", success="Successfully logged out")
    resp.delete_cookie(settings.session_cookie_name, **cookie_settings(settings))
    logger.info("User logged out: %s", username)
    return resp
