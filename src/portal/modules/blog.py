# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from portal.dependencies import get_renderer
from portal.rendering import Renderer

router = APIRouter()


@router.get("/blog", response_class=HTMLResponse)
def blog_home(request: Request, renderer: Renderer = Depends(get_renderer)):
    return renderer.render(request, "blog-home", {"title": "My Blog", "active_page": "blog"}, layout="blog")
