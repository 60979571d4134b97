# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.auth.session import SCOPE_KEY, SessionManager
from portal.auth.session_store import SessionStore, SessionSweeper, create_session_store
from portal.config import Settings
from portal.core.routes import load_routers
from portal.core.utils import redirect_with
from portal.database import Database
from portal.errors import ForbiddenError, NotAuthenticatedError, StoreError
from portal.layouts import discover_layouts
from portal.permissions import cookie_settings
from portal.rendering import Renderer

logger = logging.getLogger(__name__)


def _install_session_middleware(app: FastAPI, sessions: SessionManager, settings: Settings) -> None:
    @app.middleware("http")
    async def _session_middleware(request: Request, call_next):
        token = request.cookies.get(settings.session_cookie_name, "")
        ctx = await run_in_threadpool(sessions.load, token)
        request.scope[SCOPE_KEY] = ctx

        response = await call_next(request)

        if ctx.destroyed:
            return response
        try:
            cookie = await run_in_threadpool(sessions.commit, ctx)
        except StoreError as exc:
            logger.warning("Session refresh failed: %s", exc)
            return response
        if cookie:
            response.set_cookie(
                settings.session_cookie_name,
                cookie,
                max_age=settings.session_max_age,
                **cookie_settings(settings),
            )
        return response


def _install_exception_handlers(app: FastAPI, renderer: Renderer, settings: Settings) -> None:
    def _error_page(request: Request, title: str, message: str, status_code: int, detail: str = ""):
        return renderer.render(
            request,
            "error",
            {
                "title": title,
                "error": message,
                "detail": detail if not settings.is_production else "",
                "status_code": status_code,
                "active_page": None,
            },
            layout=settings.default_layout,
            status_code=status_code,
        )

    @app.exception_handler(NotAuthenticatedError)
    async def _not_authenticated(request: Request, exc: NotAuthenticatedError):
        return redirect_with("/login", error=exc.public_message)

    @app.exception_handler(ForbiddenError)
    async def _forbidden(request: Request, exc: ForbiddenError):
        logger.info("Forbidden %s for role '%s'", request.url.path, exc.actual_role)
        return _error_page(request, "Access Denied", exc.public_message, 403)

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError):
        logger.error("Store failure on %s: %s", request.url.path, exc)
        return _error_page(request, "Service Unavailable", exc.public_message, 503)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return renderer.render(
                request,
                "404",
                {"title": "Page Not Found", "active_page": None},
                layout=settings.default_layout,
                status_code=404,
            )
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return _error_page(request, "Server Error", "An unexpected error occurred.", 500, detail=repr(exc))


def create_app(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
    session_store: Optional[SessionStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Application factory."""
    settings = settings or Settings.from_env()
    owns_database = database is None
    database = database or Database.from_settings(settings)

    try:
        database.create_all()
    except StoreError:
        # Keep serving; requests touching the store will report the failure.
        logger.error("Database initialization failed", exc_info=True)

    store = session_store or create_session_store(settings, database)
    sessions = SessionManager(
        store,
        secret=settings.session_secret,
        max_age=settings.session_max_age,
        clock=clock,
    )
    sweeper = SessionSweeper(store, settings.session_sweep_interval, clock=sessions.clock)

    layouts = discover_layouts(settings.layouts_dir)
    logger.info("Available layouts: %s", list(layouts.names()))

    templates = Jinja2Templates(directory=str(settings.templates_dir))
    renderer = Renderer(
        templates,
        layouts,
        default_layout=settings.default_layout,
        globals={"app_name": settings.instance_name, "env_name": settings.env_name},
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper.start()
        try:
            yield
        finally:
            sweeper.stop()
            if owns_database:
                database.dispose()

    app = FastAPI(title=settings.instance_name, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.sessions = sessions
    app.state.layouts = layouts
    app.state.renderer = renderer
    app.state.started_at = time.monotonic()

    if settings.static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=str(settings.static_dir)), name="static")

    _install_session_middleware(app, sessions, settings)
    _install_exception_handlers(app, renderer, settings)

    for router in load_routers():
        app.include_router(router)

    logger.info("Session store: %s; environment: %s", store.name, settings.env_name)
    return app
