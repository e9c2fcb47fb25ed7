"""Durable crawl state: the ProgressSet and the OutputCollection.

FileCrawlStore keeps them in a JSON progress file and a JSON Lines output
file; SQLCrawlStore keeps them in SQLite. open_store() picks one.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from clubcrawl.storage.base import CrawlStore
from clubcrawl.storage.database import SQLCrawlStore
from clubcrawl.storage.files import FileCrawlStore, OutputSink, ProgressStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@asynccontextmanager
async def open_store(
    progress_path: Path,
    output_path: Path,
    db_path: Path | None = None,
    readonly: bool = False,
) -> AsyncIterator[CrawlStore]:
    """Open the SQLite store when db_path is given, else the file store.

    readonly only matters for the file store: it skips rewriting the
    output file during reconciliation.
    """
    if db_path is not None:
        async with SQLCrawlStore.open(db_path) as store:
            yield store
    else:
        async with FileCrawlStore.open(
            progress_path, output_path, readonly=readonly
        ) as store:
            yield store


__all__ = [
    "CrawlStore",
    "FileCrawlStore",
    "OutputSink",
    "ProgressStore",
    "SQLCrawlStore",
    "open_store",
]
