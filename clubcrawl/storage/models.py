"""SQLModel table definitions for the SQLite crawl store.

Tables:
- processed_links: the ProgressSet, one row per processed club code
- records: the OutputCollection, in commit order
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel

from clubcrawl.data_types import Record


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProcessedLink(SQLModel, table=True):  # type: ignore[call-arg]
    """One processed club code."""

    __tablename__ = "processed_links"

    link_id: str = Field(primary_key=True)
    record_count: int = 0
    processed_at: str = Field(default_factory=_utcnow)


class RecordRow(Record, table=True):  # type: ignore[call-arg]
    """One persisted Record.

    position is the record's index within its club page.
    """

    __tablename__ = "records"

    id: int | None = Field(default=None, primary_key=True)
    position: int = 0

    def to_record(self) -> Record:
        return Record.model_validate(
            self.model_dump(exclude={"id", "position"})
        )
