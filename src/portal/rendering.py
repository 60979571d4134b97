# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Template rendering with layout resolution.

Views are rendered first; the resolved layout is then rendered with the view
HTML available as `body`. Routes pick a layout by name, leave it to the
default, or ask for none at all.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from fastapi import Request
from fastapi.templating import Jinja2Templates
from markupsafe import Markup

from portal.auth.session import Identity
from portal.layouts import LayoutRegistry, normalize_layout_name, resolve
from portal.permissions import current_identity

logger = logging.getLogger(__name__)

MESSAGE_KINDS = ("success", "error", "warning", "info")


class LayoutChoice(Enum):
    DEFAULT = "default"
    NONE = "none"


USE_DEFAULT = LayoutChoice.DEFAULT
NO_LAYOUT = LayoutChoice.NONE

LayoutOption = Union[LayoutChoice, str, bool, None]


class ViewHelpers:
    def __init__(self, identity: Optional[Identity]):
        self.identity = identity

    def has_role(self, role: str) -> bool:
        return self.identity is not None and self.identity.role == role

    def is_admin(self) -> bool:
        return self.has_role("admin")

    def display_name(self) -> str:
        if self.identity is None:
            return "Guest"
        return self.identity.name or self.identity.username

    def login_time(self) -> Optional[str]:
        if self.identity is None or not self.identity.login_time:
            return None
        try:
            return datetime.fromisoformat(self.identity.login_time).strftime("%Y-%m-%d %H:%M:%S")
        except ValueError:
            return self.identity.login_time

    def logout_url(self) -> str:
        return "/logout"


def select_layout(registry: LayoutRegistry, layout: LayoutOption, default_layout: str) -> Optional[str]:
    """Turn a route's layout option into a template identifier (None = bare)."""
    if layout is False or layout is NO_LAYOUT:
        return None
    if layout is None or layout is True or layout is USE_DEFAULT:
        return resolve(registry, None, fallback=default_layout)
    return resolve(registry, normalize_layout_name(str(layout)), fallback=default_layout)


class Renderer:
    def __init__(
        self,
        templates: Jinja2Templates,
        registry: LayoutRegistry,
        *,
        default_layout: str = "default",
        globals: Optional[Dict[str, Any]] = None,
    ):
        self.templates = templates
        self.registry = registry
        self.default_layout = default_layout
        self.globals = dict(globals or {})

    def base_context(self, request: Request) -> Dict[str, Any]:
        identity = current_identity(request)
        messages = {kind: request.query_params.get(kind) or None for kind in MESSAGE_KINDS}
        return {
            **self.globals,
            "request": request,
            "messages": messages,
            "user": identity.as_dict() if identity else None,
            "is_authenticated": identity is not None,
            "helpers": ViewHelpers(identity),
        }

    def render(
        self,
        request: Request,
        view: str,
        context: Optional[Dict[str, Any]] = None,
        *,
        layout: LayoutOption = USE_DEFAULT,
        status_code: int = 200,
    ):
        view_name = view if view.endswith(".html") else f"{view}.html"
        chosen = select_layout(self.registry, layout, self.default_layout)
        merged = {**self.base_context(request), **(context or {})}

        logger.info("Rendering %s with layout: %s", view_name, chosen or "none")

        if chosen is None:
            return self.templates.TemplateResponse(request, view_name, merged, status_code=status_code)

        body = self.templates.get_template(view_name).render(merged)
        return self.templates.TemplateResponse(
            request,
            chosen,
            {**merged, "body": Markup(body), "view": view_name},
            status_code=status_code,
        )
