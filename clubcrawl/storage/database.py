"""SQLite-backed crawl store.

Engine setup follows the usual aiosqlite arrangement: a single shared
connection (StaticPool), WAL journaling, and the schema created from the
SQLModel metadata on open. A commit inserts a club's records and its
processed_links row in one transaction, so the ProgressSet and the
OutputCollection can never disagree.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

from clubcrawl.data_types import LinkId, Record
from clubcrawl.storage.models import ProcessedLink, RecordRow

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


async def create_engine_and_init(db_path: Path) -> AsyncEngine:
    """Create an async engine and initialize the database schema.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An initialized AsyncEngine.
    """
    url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(
        url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=FULL")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    return engine


async def init_database(
    db_path: Path,
) -> tuple[AsyncEngine, async_sessionmaker]:
    """Initialize database and return engine + session factory.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        Tuple of (engine, session_factory).
    """
    engine = await create_engine_and_init(db_path)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return engine, session_factory


class SQLCrawlStore:
    """CrawlStore backed by a SQLite database.

    Example::

        async with SQLCrawlStore.open(Path("clubs.db")) as store:
            await store.commit("1234", records)
    """

    def __init__(
        self, engine: AsyncEngine, session_factory: async_sessionmaker
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory

    @classmethod
    @asynccontextmanager
    async def open(cls, db_path: Path) -> AsyncIterator[SQLCrawlStore]:
        """Open (creating if needed) the database at db_path."""
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine, session_factory = await init_database(Path(db_path))
        store = cls(engine, session_factory)
        try:
            yield store
        finally:
            await store.close()

    async def load_progress(self) -> set[LinkId]:
        async with self._session_factory() as session:
            result = await session.execute(select(ProcessedLink.link_id))
            return set(result.scalars().all())

    async def commit(self, link_id: LinkId, records: list[Record]) -> None:
        """Insert records and the progress row in a single transaction."""
        async with self._session_factory() as session:
            async with session.begin():
                for position, record in enumerate(records):
                    session.add(
                        RecordRow(**record.model_dump(), position=position)
                    )
                session.add(
                    ProcessedLink(link_id=link_id, record_count=len(records))
                )
        logger.debug(f"Committed {len(records)} records for club {link_id}")

    async def read_records(self) -> list[Record]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RecordRow).order_by(RecordRow.id)  # type: ignore[arg-type]
            )
            return [row.to_record() for row in result.scalars().all()]

    async def close(self) -> None:
        await self._engine.dispose()
