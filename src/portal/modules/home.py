# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from portal.config import Settings
from portal.dependencies import get_renderer, get_settings
from portal.rendering import Renderer

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
def index(
    request: Request,
    renderer: Renderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
):
    return renderer.render(
        request,
        "index",
        {
            "title": f"Welcome to {settings.instance_name}",
            "description": f"{settings.instance_name} - account portal",
            "active_page": "home",
            "base_url": settings.public_url,
        },
        layout="default",
    )
