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
from portal.errors import DuplicateEntryError, StoreError, ValidationError
from portal.permissions import redirect_if_authenticated
from portal.rendering import Renderer
from portal.services.registration import RegistrationForm, register

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/register", response_class=HTMLResponse, dependencies=[Depends(redirect_if_authenticated)])
def register_get(
    request: Request,
    renderer: Renderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
):
    return renderer.render(
        request,
        "register",
        {
            "title": f"Register - {settings.instance_name}",
            "description": "Create a new account",
            "active_page": "register",
        },
    )


@router.post("/register")
def register_post(
    first_name: str = Form("", alias="firstName"),
    last_name: str = Form("", alias="lastName"),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form("", alias="confirmPassword"),
    agree_terms: str = Form("", alias="agreeTerms"),
    db: Database = Depends(get_database),
):
    form = RegistrationForm(
        first_name=first_name,
        last_name=last_name,
        email=email,
        username=username,
        password=password,
        confirm_password=confirm_password,
        agree_terms=agree_terms,
    )
    try:
        register(db, form)
    except (ValidationError, DuplicateEntryError) as exc:
        logger.info("Registration rejected: %s", exc.public_message)
        return redirect_with("/register", error=exc.public_message)
    except StoreError as exc:
        logger.error("Registration error: %s", exc)
        return redirect_with("/register", error="Registration failed. Please try again.")

    return redirect_with(
        "/login",
        success="Registration successful! Please log in with your credentials.",
    )
