# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse

from portal.config import Settings
from portal.dependencies import get_layouts, get_renderer, get_settings
from portal.layouts import LayoutRegistry
from portal.rendering import NO_LAYOUT, Renderer

router = APIRouter()


@router.get("/api/health")
def health(request: Request, settings: Settings = Depends(get_settings)):
    started = getattr(request.app.state, "started_at", time.monotonic())
    return JSONResponse(
        {
            "status": "OK",
            "environment": settings.env_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
        }
    )


@router.get("/layouts")
def list_layouts(layouts: LayoutRegistry = Depends(get_layouts)):
    return {
        "availableLayouts": layouts.as_dict(),
        "totalLayouts": len(layouts),
        "layoutNames": list(layouts.names()),
    }


@router.get("/test", response_class=HTMLResponse)
def bare_page(request: Request, renderer: Renderer = Depends(get_renderer)):
    return renderer.render(request, "test", {"description": "Test description"}, layout=NO_LAYOUT)
