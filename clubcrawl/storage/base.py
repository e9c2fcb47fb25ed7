"""Store protocol shared by the file and SQLite back ends.

A store owns both halves of the crawl's durable state: the ProgressSet
(club codes already processed) and the OutputCollection (the records).
commit() is the only mutation, and it always persists the records before
the progress entry that vouches for them.
"""

from __future__ import annotations

from typing import Protocol

from clubcrawl.data_types import LinkId, Record


class CrawlStore(Protocol):
    """Durable ProgressSet plus OutputCollection."""

    async def load_progress(self) -> set[LinkId]:
        """Return the set of LinkIds already processed."""
        ...

    async def commit(self, link_id: LinkId, records: list[Record]) -> None:
        """Persist records for link_id, then mark link_id processed.

        Both writes are durable when this returns. Committing a link that is
        already processed is a caller error; the orchestrator checks first.
        """
        ...

    async def read_records(self) -> list[Record]:
        """Return the whole OutputCollection in commit order."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...
