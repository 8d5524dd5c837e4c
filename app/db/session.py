from __future__ import annotations
import asyncio
import logging
from typing import Any, AsyncGenerator, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import DATABASE_URL, PARTS_DATABASE_URL

logger = logging.getLogger(__name__)

SessionLocal = sessionmaker(autoflush=False, autocommit=False, future=True)


class LazyEngine:
    """Process-wide engine, created on first use and reused afterwards.

    Callers that arrive while the first connect is still running await the
    same in-flight future instead of opening a second pool. A failed connect
    clears the future so the next caller starts over.
    """

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        self.url = url
        self._engine_kwargs = engine_kwargs
        self._engine: Optional[Engine] = None
        self._pending: Optional[asyncio.Future] = None
        self.connect_count = 0

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    def _create(self) -> Engine:
        self.connect_count += 1
        engine = create_engine(self.url, future=True, pool_pre_ping=True, **self._engine_kwargs)
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            engine.dispose()
            raise
        logger.info("database engine ready: %s", engine.url.render_as_string(hide_password=True))
        return engine

    async def connect(self) -> Engine:
        if self._engine is not None:
            return self._engine
        if self._pending is None:
            self._pending = asyncio.ensure_future(asyncio.to_thread(self._create))
        pending = self._pending
        try:
            # shield: one cancelled waiter must not cancel the shared connect
            engine = await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
            raise
        if self._pending is not pending:
            # dispose() ran while this connect was in flight
            if engine is not self._engine:
                engine.dispose()
            raise RuntimeError(f"engine for {self.url} was disposed during connect")
        self._engine = engine
        return engine

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._pending = None


requests_engine = LazyEngine(DATABASE_URL)
parts_engine = requests_engine if PARTS_DATABASE_URL == DATABASE_URL else LazyEngine(PARTS_DATABASE_URL)


async def get_parts_db() -> AsyncGenerator[Session, None]:
    engine = await parts_engine.connect()
    db = SessionLocal(bind=engine)
    try:
        yield db
    finally:
        db.close()


def dispose_all() -> None:
    requests_engine.dispose()
    parts_engine.dispose()
