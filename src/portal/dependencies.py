# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""FastAPI dependencies exposing the objects built by `create_app`."""

from __future__ import annotations

from fastapi import Request

from portal.auth.session import SessionContext, SessionManager
from portal.config import Settings
from portal.database import Database
from portal.layouts import LayoutRegistry
from portal.permissions import session_context
from portal.rendering import Renderer


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_renderer(request: Request) -> Renderer:
    return request.app.state.renderer


def get_layouts(request: Request) -> LayoutRegistry:
    return request.app.state.layouts


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_session(request: Request) -> SessionContext:
    return session_context(request)
