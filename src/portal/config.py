# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Runtime settings.

Values come from the process environment (optionally seeded from a `.env`
file). Tests build `Settings` directly instead of going through `from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
# Data files are anchored to the project root, never the working directory.
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DATABASE_URL = f"sqlite:///{(DATA_DIR / 'portal.db').as_posix()}"
DEFAULT_ROLES_PATH = DATA_DIR / "roles.yml"

_TRUE = {"1", "true", "yes", "y"}
_PRODUCTION_ENVS = {"prod", "production"}
_DEV_SECRET = "dev-session-secret-change-in-production"


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE


@dataclass(frozen=True)
class Settings:
    env_name: str = "dev"
    instance_name: str = "World"
    protocol: str = "http"
    base_url: str = "localhost"
    port: int = 8001

    database_url: str = DEFAULT_DATABASE_URL
    db_pool_size: int = 10
    db_pool_timeout: float = 10.0

    session_secret: str = _DEV_SECRET
    session_cookie_name: str = "portal_session"
    session_max_age: int = 24 * 60 * 60
    session_sweep_interval: int = 15 * 60
    session_backend: str = "sql"
    redis_url: str = ""
    cookie_secure: bool = False

    templates_dir: Path = field(default=BASE_DIR / "templates")
    layouts_dir: Path = field(default=BASE_DIR / "templates" / "layouts")
    static_dir: Path = field(default=BASE_DIR / "static")
    default_layout: str = "default"
    roles_path: Path = field(default=DEFAULT_ROLES_PATH)

    @property
    def is_production(self) -> bool:
        return self.env_name.strip().lower() in _PRODUCTION_ENVS

    @property
    def public_url(self) -> str:
        return f"{self.protocol}://{self.base_url}:{self.port}"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        env_name = os.getenv("PORTAL_ENV") or os.getenv("ENV_NAME") or "dev"
        production = env_name.strip().lower() in _PRODUCTION_ENVS

        secret = os.getenv("PORTAL_SESSION_SECRET") or os.getenv("SECRET_KEY")
        if not secret:
            if production:
                raise RuntimeError("PORTAL_SESSION_SECRET (or SECRET_KEY) is required in production")
            secret = _DEV_SECRET

        templates_dir = Path(os.getenv("PORTAL_TEMPLATES_DIR", str(BASE_DIR / "templates"))).resolve()
        layouts_dir = Path(os.getenv("PORTAL_LAYOUTS_DIR", str(templates_dir / "layouts"))).resolve()

        return cls(
            env_name=env_name,
            instance_name=os.getenv("PORTAL_INSTANCE_NAME", "World"),
            protocol=os.getenv("PORTAL_PROTOCOL", "http"),
            base_url=os.getenv("PORTAL_BASE_URL", "localhost"),
            port=int(os.getenv("PORTAL_PORT", "8001")),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            db_pool_size=int(os.getenv("PORTAL_DB_POOL_SIZE", "10")),
            db_pool_timeout=float(os.getenv("PORTAL_DB_POOL_TIMEOUT", "10")),
            session_secret=secret,
            session_cookie_name=os.getenv("PORTAL_COOKIE_NAME", "portal_session"),
            session_max_age=int(os.getenv("PORTAL_SESSION_MAX_AGE", str(24 * 60 * 60))),
            session_sweep_interval=int(os.getenv("PORTAL_SESSION_SWEEP_INTERVAL", str(15 * 60))),
            session_backend=os.getenv("PORTAL_SESSION_BACKEND", "sql").strip().lower(),
            redis_url=os.getenv("REDIS_URL", ""),
            cookie_secure=_flag("PORTAL_COOKIE_SECURE", production),
            templates_dir=templates_dir,
            layouts_dir=layouts_dir,
            static_dir=Path(os.getenv("PORTAL_STATIC_DIR", str(BASE_DIR / "static"))).resolve(),
            default_layout=os.getenv("PORTAL_DEFAULT_LAYOUT", "default"),
            roles_path=Path(os.getenv("PORTAL_ROLES_PATH", str(DEFAULT_ROLES_PATH))).resolve(),
        )
