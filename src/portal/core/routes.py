# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import List

from fastapi import APIRouter

logger = logging.getLogger(__name__)

MODULES_PACKAGE = "portal.modules"


def load_routers(package: str = MODULES_PACKAGE) -> List[APIRouter]:
    """Import every feature module under `package` and collect its `router`.

    Modules are visited in name order. A module that fails to import or does
    not expose a router is logged and skipped.
    """
    try:
        pkg = importlib.import_module(package)
    except ImportError:
        logger.warning("Modules package not found: %s", package)
        return []

    routers: List[APIRouter] = []
    seen = set()
    for info in sorted(pkgutil.iter_modules(pkg.__path__), key=lambda m: m.name):
        if info.name.startswith("_") or info.name in seen:
            continue
        seen.add(info.name)
        try:
            module = importlib.import_module(f"{package}.{info.name}")
        except Exception:
            logger.exception("Failed to load route module %s", info.name)
            continue
        router = getattr(module, "router", None)
        if not isinstance(router, APIRouter):
            logger.warning("Route module %s has no router", info.name)
            continue
        routers.append(router)
        logger.info("Loaded route module: %s", info.name)
    return routers
