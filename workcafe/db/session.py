from __future__ import annotations

import logging
import math
import time
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from workcafe.core.config import settings

logger = logging.getLogger(__name__)


def _safe_asin(x: float | None) -> float | None:
    if x is None:
        return None
    return math.asin(max(-1.0, min(1.0, x)))


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # Math functions used by the haversine distance expression.
        dbapi_conn.create_function("radians", 1, lambda v: None if v is None else math.radians(v), deterministic=True)
        dbapi_conn.create_function("sin", 1, lambda v: None if v is None else math.sin(v), deterministic=True)
        dbapi_conn.create_function("cos", 1, lambda v: None if v is None else math.cos(v), deterministic=True)
        dbapi_conn.create_function("sqrt", 1, lambda v: None if v is None else math.sqrt(max(v, 0.0)), deterministic=True)
        dbapi_conn.create_function("asin", 1, _safe_asin, deterministic=True)


@dataclass
class PoolStats:
    checkouts: int = 0
    long_checkouts: int = 0
    max_checkout_seconds: float = 0.0


class CheckoutWatchdog:
    """Times every pooled-connection checkout.

    A connection returned after more than `threshold` seconds is reported as a
    warning and counted, so leaks show up in /api/health instead of only in logs.
    """

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold
        self._lock = Lock()
        self._stats = PoolStats()

    def attach(self, engine: Engine) -> None:
        event.listen(engine, "checkout", self._on_checkout)
        event.listen(engine, "checkin", self._on_checkin)

    def _on_checkout(self, _dbapi_conn, record, _proxy) -> None:
        record.info["checked_out_at"] = time.monotonic()
        with self._lock:
            self._stats.checkouts += 1

    def _on_checkin(self, _dbapi_conn, record) -> None:
        started = record.info.pop("checked_out_at", None)
        if started is None:
            return
        held = time.monotonic() - started
        with self._lock:
            self._stats.max_checkout_seconds = max(self._stats.max_checkout_seconds, held)
            if held <= self.threshold:
                return
            self._stats.long_checkouts += 1
        logger.warning("Connection was checked out for %.2fs (limit %.2fs)", held, self.threshold)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "checkouts": self._stats.checkouts,
                "long_checkouts": self._stats.long_checkouts,
                "max_checkout_seconds": round(self._stats.max_checkout_seconds, 3),
                "threshold_seconds": self.threshold,
            }

    def reset(self) -> None:
        with self._lock:
            self._stats = PoolStats()


def _make_engine() -> Engine:
    url = settings.sqlalchemy_database_url
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    engine = create_engine(url, echo=False, future=True, pool_pre_ping=True, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        _install_sqlite_hooks(engine)
    return engine


engine = _make_engine()
watchdog = CheckoutWatchdog(settings.pool_checkout_warn_seconds)
watchdog.attach(engine)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Run a block of writes as one unit: commit on success, roll back on any error."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
