# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from portal.auth.session import Identity
from portal.dependencies import get_layouts, get_renderer
from portal.layouts import LayoutRegistry
from portal.permissions import require_role
from portal.rendering import Renderer

router = APIRouter()


@router.get("/admin", response_class=HTMLResponse)
def admin_dashboard(
    request: Request,
    identity: Identity = Depends(require_role("admin")),
    renderer: Renderer = Depends(get_renderer),
    layouts: LayoutRegistry = Depends(get_layouts),
):
    return renderer.render(
        request,
        "admin-dashboard",
        {
            "title": "Admin Dashboard",
            "admin": identity,
            "available_layouts": layouts.as_dict(),
        },
        layout="admin",
    )
