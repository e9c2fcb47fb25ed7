"""File-backed progress store and output sink.

Two files make up the crawl state:

- The progress file, a JSON document ``{"processed": [...], "updated_at":
  ...}``. It is rewritten in full after every successful club, through a
  temporary file that is fsynced and then renamed over the original, so
  it is never observed half-written.
- The output file, JSON Lines with one Record per line. Records are
  appended and fsynced before the progress file is updated.

A crash between those two writes leaves records for a club that is not in
the progress set. FileCrawlStore reconciles on open: such records (and a
torn final line) are dropped, so the club is simply fetched again.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from clubcrawl.common.exceptions import StoreCorruptedError
from clubcrawl.data_types import LinkId, Record

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, text: str) -> None:
    """Replace path with text so readers see the old or new content only."""
    temp_path = path.with_name(path.name + ".tmp")
    with open(temp_path, "w", encoding="utf-8") as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    temp_path.replace(path)


class ProgressStore:
    """The ProgressSet persisted as a JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> set[LinkId]:
        """Load the processed LinkIds.

        Returns:
            The ProgressSet; empty if the file does not exist yet.

        Raises:
            StoreCorruptedError: If the file exists but is not a progress
                document.
        """
        if not self.path.exists():
            return set()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreCorruptedError(str(self.path), str(e)) from e

        # a bare array is accepted as well as the full document
        processed = data.get("processed") if isinstance(data, dict) else data
        if not isinstance(processed, list) or not all(
            isinstance(item, str) for item in processed
        ):
            raise StoreCorruptedError(
                str(self.path), "expected a list of processed club codes"
            )
        return set(processed)

    def save(self, processed: Iterable[LinkId]) -> None:
        """Atomically rewrite the progress file."""
        document = {
            "processed": sorted(processed),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self.path, json.dumps(document, indent=2))


class OutputSink:
    """The OutputCollection persisted as JSON Lines."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def append(self, records: list[Record]) -> None:
        """Append records and fsync before returning."""
        if not records:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            for record in records:
                f.write(record.model_dump_json() + "\n")
            f.flush()
            os.fsync(f.fileno())

    def read_lines(self) -> list[bytes]:
        """Return the non-blank lines as raw bytes.

        Lines are decoded one at a time by parse_line(), so a final line
        torn inside a multibyte character spoils only itself.
        """
        if not self.path.exists():
            return []
        return [
            line for line in self.path.read_bytes().split(b"\n") if line.strip()
        ]

    @staticmethod
    def parse_line(line: bytes) -> Record | None:
        """Decode one line into a Record, or None if it is not one."""
        try:
            return Record.model_validate_json(line.decode("utf-8"))
        except (UnicodeDecodeError, ValidationError):
            return None

    def read(self) -> list[Record]:
        """Return every parseable record in file order."""
        records = []
        for line in self.read_lines():
            record = self.parse_line(line)
            if record is None:
                logger.warning(f"Skipping unparseable line in {self.path}")
                continue
            records.append(record)
        return records

    def rewrite(self, records: list[Record]) -> None:
        """Atomically replace the whole output file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(
            self.path, "".join(r.model_dump_json() + "\n" for r in records)
        )


class FileCrawlStore:
    """CrawlStore backed by a progress file and a JSON Lines output file.

    Example::

        async with FileCrawlStore.open(Path("progress.json"),
                                       Path("clubs.jsonl")) as store:
            processed = await store.load_progress()
    """

    def __init__(self, progress: ProgressStore, output: OutputSink) -> None:
        self.progress = progress
        self.output = output
        self._processed: set[LinkId] = set()

    @classmethod
    @asynccontextmanager
    async def open(
        cls, progress_path: Path, output_path: Path, readonly: bool = False
    ) -> AsyncIterator[FileCrawlStore]:
        """Open the store, reconciling the two files first.

        With readonly=True nothing is rewritten; orphaned output lines are
        only filtered out of read_records().

        Raises:
            StoreCorruptedError: If the progress file is unreadable.
        """
        store = cls(ProgressStore(progress_path), OutputSink(output_path))
        store.reconcile(rewrite=not readonly)
        try:
            yield store
        finally:
            await store.close()

    def reconcile(self, rewrite: bool = True) -> int:
        """Drop output lines not backed by the progress file.

        Returns:
            Number of lines dropped.
        """
        self._processed = self.progress.load()
        kept: list[Record] = []
        dropped = 0
        for line in self.output.read_lines():
            record = self.output.parse_line(line)
            if record is not None and record.link_id in self._processed:
                kept.append(record)
            else:
                dropped += 1
        if dropped and rewrite:
            logger.warning(
                f"Dropping {dropped} output line(s) from {self.output.path} "
                "not covered by the progress file (interrupted write)"
            )
            self.output.rewrite(kept)
        return dropped

    async def load_progress(self) -> set[LinkId]:
        return set(self._processed)

    async def commit(self, link_id: LinkId, records: list[Record]) -> None:
        self.output.append(records)
        self.progress.save(self._processed | {link_id})
        self._processed.add(link_id)

    async def read_records(self) -> list[Record]:
        return [
            record
            for record in self.output.read()
            if record.link_id in self._processed
        ]

    async def close(self) -> None:
        pass
