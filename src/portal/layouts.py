# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Page layout discovery and resolution.

The registry is built once at startup by scanning the layouts directory and
is read-only afterwards, so every request can share it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

LAYOUT_NAMESPACE = "layouts"
LAYOUT_SUFFIX = ".html"
DEFAULT_LAYOUT_NAME = "default"
DEFAULT_LAYOUT_ID = f"{LAYOUT_NAMESPACE}/{DEFAULT_LAYOUT_NAME}{LAYOUT_SUFFIX}"


@dataclass(frozen=True)
class LayoutRegistry:
    """Layout name -> template identifier, in discovery order."""

    entries: Tuple[Tuple[str, str], ...] = ()

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def names(self) -> Tuple[str, ...]:
        return tuple(key for key, _ in self.entries)

    def get(self, name: str) -> Optional[str]:
        for key, ident in self.entries:
            if key == name:
                return ident
        return None

    def first(self) -> Optional[str]:
        return self.entries[0][1] if self.entries else None

    def as_dict(self) -> Dict[str, str]:
        return dict(self.entries)


def discover_layouts(directory: Path) -> LayoutRegistry:
    """Scan `directory` (non-recursive) for layout templates."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning("Layouts directory not found: %s", directory)
        return LayoutRegistry()

    try:
        files = sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == LAYOUT_SUFFIX)
    except OSError as exc:
        logger.error("Error discovering layouts: %s", exc)
        return LayoutRegistry()

    entries = []
    for p in files:
        ident = f"{LAYOUT_NAMESPACE}/{p.name}"
        entries.append((p.stem, ident))
        logger.info("Discovered layout: %s -> %s", p.stem, ident)
    return LayoutRegistry(entries=tuple(entries))


def normalize_layout_name(name: Optional[str]) -> str:
    """Reduce a requested layout to a bare registry key.

    Strips a leading `layouts/` namespace and the template suffix. Whatever is
    left is only ever used as a dictionary key, never as a filesystem path.
    """
    s = str(name or "").strip().replace("\\", "/")
    prefix = f"{LAYOUT_NAMESPACE}/"
    if s.startswith(prefix):
        s = s[len(prefix):]
    if s.endswith(LAYOUT_SUFFIX):
        s = s[: -len(LAYOUT_SUFFIX)]
    return s


def resolve(
    registry: LayoutRegistry,
    requested: Optional[str] = None,
    fallback: Optional[str] = DEFAULT_LAYOUT_NAME,
) -> str:
    if requested:
        ident = registry.get(normalize_layout_name(requested))
        if ident:
            return ident

    if fallback:
        ident = registry.get(normalize_layout_name(fallback))
        if ident:
            return ident

    return registry.first() or DEFAULT_LAYOUT_ID
