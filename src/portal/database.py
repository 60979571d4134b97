# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Database engine, pooled connections and the scoped transaction block.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from portal.config import Settings
from portal.errors import DuplicateEntryError, PortalError, StoreError, StoreTimeoutError

logger = logging.getLogger(__name__)

Base = declarative_base()


def _duplicate_field(exc: IntegrityError) -> Optional[str]:
    detail = str(getattr(exc, "orig", None) or exc).lower()
    if "email" in detail:
        return "email"
    if "username" in detail:
        return "username"
    return None


def translate_error(exc: SQLAlchemyError) -> PortalError:
    """Map a SQLAlchemy failure onto the application taxonomy."""
    if isinstance(exc, PoolTimeoutError):
        return StoreTimeoutError("timed out waiting for a database connection")
    if isinstance(exc, IntegrityError):
        field = _duplicate_field(exc)
        if field is not None:
            return DuplicateEntryError(field)
    return StoreError(f"database error: {exc.__class__.__name__}")


class Database:
    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        pool_timeout: float = 10.0,
        max_overflow: int = 0,
        echo: bool = False,
    ):
        self.url = url
        connect_args: dict = {}
        options: dict = {"pool_pre_ping": True, "echo": echo}

        if url.startswith("sqlite"):
            # The pool hands connections to request worker threads.
            connect_args["check_same_thread"] = False
            database = make_url(url).database
            if not database or database == ":memory:":
                options["poolclass"] = StaticPool
            else:
                Path(database).parent.mkdir(parents=True, exist_ok=True)
                options.update(
                    poolclass=QueuePool,
                    pool_size=pool_size,
                    max_overflow=max_overflow,
                    pool_timeout=pool_timeout,
                )
        else:
            if url.startswith("postgresql"):
                connect_args["connect_timeout"] = 10
            options.update(
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=3600,
            )

        self.engine = create_engine(url, connect_args=connect_args, **options)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            pool_timeout=settings.db_pool_timeout,
        )

    def create_all(self) -> None:
        """Import models and create missing tables."""
        from portal import models  # noqa: F401  (side-effect import)

        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            logger.error("Error initializing database: %s", exc, exc_info=True)
            raise translate_error(exc) from exc

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Yield an ORM session holding one pooled connection for the block.

        Commits when the block exits normally, rolls back on any exception and
        always returns the connection to the pool.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Database operation failed: %s", exc)
            raise translate_error(exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
