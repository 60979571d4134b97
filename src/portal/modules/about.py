# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from portal.config import Settings
from portal.dependencies import get_renderer, get_settings
from portal.rendering import Renderer

router = APIRouter()


@router.get("/about", response_class=HTMLResponse)
def about(
    request: Request,
    renderer: Renderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
):
    return renderer.render(
        request,
        "about",
        {
            "title": f"About - {settings.instance_name}",
            "description": f"Learn more about {settings.instance_name}",
            "active_page": "about",
            "base_url": settings.public_url,
        },
    )
