# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Server-side session persistence.

Three interchangeable backends: the relational `sessions` table, Redis and an
in-process dictionary. `create_session_store` falls back to the in-process
store whenever the configured backend cannot be reached.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import redis
from redis.exceptions import RedisError
from sqlalchemy import delete, select, update

from portal.config import Settings
from portal.database import Database
from portal.errors import StoreError
from portal.models import SessionRow

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _epoch(dt: datetime) -> int:
    return int(dt.timestamp())


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass
class SessionRecord:
    session_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    expires: datetime = field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return self.expires <= now


class SessionStore:
    """Interface shared by all backends."""

    name = "abstract"

    def get(self, session_id: str, now: Optional[datetime] = None) -> Optional[SessionRecord]:
        raise NotImplementedError

    def save(self, record: SessionRecord) -> None:
        raise NotImplementedError

    def touch(self, session_id: str, expires: datetime) -> None:
        raise NotImplementedError

    def destroy(self, session_id: str) -> None:
        raise NotImplementedError

    def sweep(self, now: Optional[datetime] = None) -> int:
        raise NotImplementedError

    def ping(self) -> bool:
        return True


class MemorySessionStore(SessionStore):
    name = "memory"

    def __init__(self):
        self._records: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str, now: Optional[datetime] = None) -> Optional[SessionRecord]:
        now = now or utcnow()
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                return None
            if record.is_expired(now):
                self._records.pop(session_id, None)
                return None
            return SessionRecord(record.session_id, dict(record.data), record.expires)

    def save(self, record: SessionRecord) -> None:
        with self._lock:
            self._records[record.session_id] = SessionRecord(record.session_id, dict(record.data), record.expires)

    def touch(self, session_id: str, expires: datetime) -> None:
        with self._lock:
            record = self._records.get(session_id)
            if record is not None:
                record.expires = expires

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def sweep(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        with self._lock:
            expired = [sid for sid, rec in self._records.items() if rec.is_expired(now)]
            for sid in expired:
                self._records.pop(sid, None)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SqlSessionStore(SessionStore):
    name = "sql"

    def __init__(self, db: Database):
        self.db = db

    def get(self, session_id: str, now: Optional[datetime] = None) -> Optional[SessionRecord]:
        now = now or utcnow()
        with self.db.session() as s:
            row = s.execute(select(SessionRow).where(SessionRow.session_id == session_id)).scalar_one_or_none()
            if row is None:
                return None
            if row.expires <= _epoch(now):
                s.execute(delete(SessionRow).where(SessionRow.session_id == session_id))
                return None
            try:
                data = json.loads(row.data or "{}")
            except ValueError:
                logger.warning("Discarding unreadable session payload for %s", session_id[:8])
                data = {}
            return SessionRecord(row.session_id, data if isinstance(data, dict) else {}, _from_epoch(row.expires))

    def save(self, record: SessionRecord) -> None:
        payload = json.dumps(record.data)
        with self.db.session() as s:
            row = s.get(SessionRow, record.session_id)
            if row is None:
                s.add(SessionRow(session_id=record.session_id, expires=_epoch(record.expires), data=payload))
            else:
                row.expires = _epoch(record.expires)
                row.data = payload

    def touch(self, session_id: str, expires: datetime) -> None:
        with self.db.session() as s:
            s.execute(
                update(SessionRow).where(SessionRow.session_id == session_id).values(expires=_epoch(expires))
            )

    def destroy(self, session_id: str) -> None:
        with self.db.session() as s:
            s.execute(delete(SessionRow).where(SessionRow.session_id == session_id))

    def sweep(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        with self.db.session() as s:
            result = s.execute(delete(SessionRow).where(SessionRow.expires <= _epoch(now)))
            return int(result.rowcount or 0)

    def ping(self) -> bool:
        return self.db.ping()


class RedisSessionStore(SessionStore):
    name = "redis"
    KEY_PREFIX = "session:"

    def __init__(self, client: "redis.Redis", *, clock: Callable[[], datetime] = utcnow):
        self.client = client
        self.clock = clock

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        params = {
            "decode_responses": True,
            "socket_connect_timeout": 5,
            "socket_timeout": 5,
            "retry_on_timeout": True,
            "health_check_interval": 30,
        }
        return cls(redis.from_url(url, **params))

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    def _ttl(self, expires: datetime) -> int:
        return max(1, int((expires - self.clock()).total_seconds()))

    def get(self, session_id: str, now: Optional[datetime] = None) -> Optional[SessionRecord]:
        now = now or self.clock()
        try:
            raw = self.client.get(self._key(session_id))
        except RedisError as exc:
            raise StoreError("session lookup failed") from exc
        if not raw:
            return None
        try:
            payload = json.loads(raw)
            record = SessionRecord(session_id, dict(payload.get("data") or {}), _from_epoch(payload["expires"]))
        except (ValueError, KeyError, TypeError):
            return None
        if record.is_expired(now):
            self.destroy(session_id)
            return None
        return record

    def save(self, record: SessionRecord) -> None:
        payload = json.dumps({"data": record.data, "expires": _epoch(record.expires)})
        try:
            self.client.setex(self._key(record.session_id), self._ttl(record.expires), payload)
        except RedisError as exc:
            raise StoreError("session write failed") from exc

    def touch(self, session_id: str, expires: datetime) -> None:
        record = self.get(session_id)
        if record is None:
            return
        record.expires = expires
        self.save(record)

    def destroy(self, session_id: str) -> None:
        try:
            self.client.delete(self._key(session_id))
        except RedisError as exc:
            raise StoreError("session destroy failed") from exc

    def sweep(self, now: Optional[datetime] = None) -> int:
        # Keys carry their own TTL.
        return 0

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisError:
            return False


def create_session_store(settings: Settings, db: Optional[Database] = None) -> SessionStore:
    backend = (settings.session_backend or "sql").strip().lower()

    if backend == "redis" and settings.redis_url:
        try:
            store = RedisSessionStore.from_url(settings.redis_url)
            if store.ping():
                logger.info("Using Redis session store")
                return store
            logger.warning("Redis session store unreachable at startup")
        except (RedisError, ValueError) as exc:
            logger.warning("Redis session store unavailable: %s", exc)
    elif backend == "sql" and db is not None:
        store = SqlSessionStore(db)
        if store.ping():
            logger.info("Using SQL session store")
            return store
        logger.warning("SQL session store unreachable at startup")
    elif backend != "memory":
        logger.warning("Session backend '%s' is not configured", backend)

    logger.warning("Using memory session store (not recommended for production)")
    return MemorySessionStore()


class SessionSweeper:
    """Background thread that deletes expired sessions on a fixed interval."""

    def __init__(self, store: SessionStore, interval: float, *, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.interval = max(1.0, float(interval))
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        try:
            removed = self.store.sweep(self.clock())
        except StoreError as exc:
            logger.warning("Session sweep failed: %s", exc)
            return 0
        if removed:
            logger.info("Swept %d expired sessions", removed)
        return removed

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="session-sweeper", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if not self._thread:
            return
        self._stop_event.set()
        self._thread.join(timeout=5)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.run_once()
