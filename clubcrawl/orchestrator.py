"""Resumable crawl orchestrator.

CrawlOrchestrator turns the listing page into persisted records:

1. Discovery: fetch the listing page and read every club code from it.
2. Iteration: for each code not already in the ProgressSet, fetch the club
   page, extract its records and commit them to the store (records first,
   then the progress entry).

Per-club problems (timeouts, server errors, extraction bugs) are logged and
reported but never stop the run; the club stays out of the ProgressSet and
the next run retries it. A redirect to the login page is different: every
later club would be redirected too, so the run stops immediately and is
reported as ABORTED.

Workers:
    With num_workers > 1, that many asyncio tasks share one queue of links.
    Commits are serialized by a lock, and a fatal redirect seen by any
    worker sets the shared stop_event so no worker takes another link.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Callable
from typing import Any

from typing_extensions import assert_never

from clubcrawl.common.exceptions import ExtractionError, FatalRedirectError
from clubcrawl.common.page_element import PageElement
from clubcrawl.data_types import (
    FatalRedirect,
    FetchSuccess,
    LinkFailure,
    LinkId,
    LinkState,
    Record,
    RunReport,
    RunStatus,
    TransientFailure,
)
from clubcrawl.discovery import (
    DEFAULT_DETAIL_URL_TEMPLATE,
    build_detail_url,
    discover,
)
from clubcrawl.extractor import extract_records
from clubcrawl.fetcher.base import EntityFetcher
from clubcrawl.storage.base import CrawlStore

logger = logging.getLogger(__name__)

Extractor = Callable[[PageElement, LinkId], list[Record]]


class CrawlOrchestrator:
    """Drives one crawl run over a fetcher and a store.

    Args:
        fetcher: Used for the listing page and every club page.
        store: Owns the ProgressSet and the OutputCollection.
        listing_url: The directory listing page.
        detail_url_template: Template for club page URLs ({origin}, {code}).
        extractor: Function turning a club page into records.
        num_workers: Number of concurrent workers (default: 1).
        stop_event: Optional externally owned stop signal.

    Example:
        async with HttpFetcher() as fetcher:
            async with FileCrawlStore.open(progress, output) as store:
                report = await CrawlOrchestrator(
                    fetcher, store, listing_url
                ).run()
    """

    def __init__(
        self,
        fetcher: EntityFetcher,
        store: CrawlStore,
        listing_url: str,
        detail_url_template: str = DEFAULT_DETAIL_URL_TEMPLATE,
        extractor: Extractor = extract_records,
        num_workers: int = 1,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        if num_workers < 1:
            raise ValueError("num_workers must be at least 1")
        self.fetcher = fetcher
        self.store = store
        self.listing_url = listing_url
        self.detail_url_template = detail_url_template
        self.extractor = extractor
        self.num_workers = num_workers
        self.stop_event: asyncio.Event = stop_event or asyncio.Event()

        self.status = RunStatus.DISCOVERING
        self.link_states: dict[LinkId, LinkState] = {}
        self._processed: set[LinkId] = set()
        self._commit_lock = asyncio.Lock()
        self._abort_error: FatalRedirectError | None = None
        self._visited = 0
        self._previous_handlers: dict[int, Any] = {}

    # --- Signal Handlers ---

    def _setup_signal_handlers(self) -> None:
        """Register SIGINT/SIGTERM handlers that request a graceful stop.

        Workers finish the club they are on and take no new ones, so the
        store stays consistent and the run can be resumed.
        """

        def handle_signal(signum: int, frame: Any) -> None:
            sig_name = signal.Signals(signum).name
            logger.info(f"Received {sig_name}, finishing current clubs...")
            self.stop()

        for signum in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, handle_signal)

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def stop(self) -> None:
        """Signal workers to stop after completing their current club."""
        self.stop_event.set()

    # --- Run ---

    async def run(self, setup_signal_handlers: bool = False) -> RunReport:
        """Discover the clubs and process every one not yet persisted.

        Args:
            setup_signal_handlers: If True, register SIGINT/SIGTERM handlers
                for graceful shutdown (used by the command line).

        Returns:
            RunReport describing how the run ended.

        Raises:
            DiscoveryError: If the listing page yields no clubs.
        """
        if setup_signal_handlers:
            self._setup_signal_handlers()
        try:
            return await self._run()
        finally:
            if setup_signal_handlers:
                self._restore_signal_handlers()

    async def _run(self) -> RunReport:
        self.status = RunStatus.DISCOVERING
        link_ids = await discover(self.fetcher, self.listing_url)

        self._processed = await self.store.load_progress()
        already = len(set(link_ids) & self._processed)
        logger.info(
            f"{len(link_ids)} clubs discovered, {already} already processed"
        )

        report = RunReport(status=RunStatus.ITERATING, discovered=len(link_ids))
        self.status = RunStatus.ITERATING
        self.link_states = dict.fromkeys(link_ids, LinkState.PENDING)

        queue: asyncio.Queue[tuple[int, LinkId]] = asyncio.Queue()
        for index, link_id in enumerate(link_ids, start=1):
            queue.put_nowait((index, link_id))

        workers = [
            asyncio.create_task(
                self._worker(queue, len(link_ids), report),
                name=f"crawl-worker-{i}",
            )
            for i in range(self.num_workers)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()

        report.remaining = len(set(link_ids) - self._processed)
        if self._abort_error is not None:
            report.status = RunStatus.ABORTED
            report.abort_error = self._abort_error
        elif self._visited < len(link_ids):
            report.status = RunStatus.STOPPED
        else:
            report.status = RunStatus.COMPLETED
        self.status = report.status

        self._log_summary(report)
        return report

    async def _worker(
        self,
        queue: asyncio.Queue[tuple[int, LinkId]],
        total: int,
        report: RunReport,
    ) -> None:
        while not self.stop_event.is_set():
            try:
                index, link_id = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            await self._process_link(index, total, link_id, report)

    def _transition(self, link_id: LinkId, state: LinkState) -> None:
        previous = self.link_states.get(link_id, LinkState.PENDING)
        logger.debug(f"Club {link_id}: {previous.value} -> {state.value}")
        self.link_states[link_id] = state

    async def _process_link(
        self, index: int, total: int, link_id: LinkId, report: RunReport
    ) -> None:
        if link_id in self._processed:
            if self.link_states.get(link_id) == LinkState.PERSISTED:
                logger.warning(
                    f"Skipping club {index}/{total}: {link_id} is listed "
                    "twice and was already persisted during this run"
                )
            else:
                logger.debug(
                    f"Skipping club {index}/{total}: {link_id} already processed"
                )
                self._transition(link_id, LinkState.SKIPPED)
            report.skipped += 1
            self._visited += 1
            return

        url = build_detail_url(
            self.listing_url, link_id, self.detail_url_template
        )
        logger.info(f"Processing club {index}/{total}: {link_id}")
        self._transition(link_id, LinkState.FETCHING)
        outcome = await self.fetcher.fetch(url)

        match outcome:
            case FetchSuccess(page=page):
                self._transition(link_id, LinkState.SUCCESS)
                self._transition(link_id, LinkState.EXTRACTING)
                try:
                    records = self.extractor(page.page_element(), link_id)
                except Exception as e:
                    self._record_failure(
                        report, link_id, url, ExtractionError(link_id, url, e)
                    )
                else:
                    await self._commit(link_id, records, report)
            case FatalRedirect():
                error = outcome.to_exception()
                self._transition(link_id, LinkState.FATAL_REDIRECT)
                logger.warning(f"Aborting run at club {link_id}: {error}")
                if self._abort_error is None:
                    self._abort_error = error
                self.stop_event.set()
                self._transition(link_id, LinkState.ABORTED)
                return
            case TransientFailure(error=error):
                self._transition(link_id, LinkState.TRANSIENT_ERROR)
                self._record_failure(report, link_id, url, error)
            case _:
                assert_never(outcome)

        self._visited += 1

    async def _commit(
        self, link_id: LinkId, records: list[Record], report: RunReport
    ) -> None:
        async with self._commit_lock:
            # duplicates in the listing may have been persisted meanwhile
            if link_id in self._processed:
                logger.warning(
                    f"Club {link_id} already persisted during this run, "
                    "dropping duplicate"
                )
                report.skipped += 1
                return
            await self.store.commit(link_id, records)
            self._processed.add(link_id)

        self._transition(link_id, LinkState.PERSISTED)
        report.persisted += 1
        report.records_written += len(records)
        logger.info(f"Persisted {len(records)} records for club {link_id}")

    def _record_failure(
        self,
        report: RunReport,
        link_id: LinkId,
        url: str,
        error: Exception,
    ) -> None:
        self._transition(link_id, LinkState.FAILED)
        report.failures.append(LinkFailure(link_id, url, error))
        logger.error(
            f"Failed to process club {link_id}: {error}",
            exc_info=error,
            extra={"link_id": link_id, "url": url},
        )

    def _log_summary(self, report: RunReport) -> None:
        logger.info(
            f"Run {report.status.value}: {report.persisted} persisted, "
            f"{report.skipped} skipped, {len(report.failures)} failed, "
            f"{report.remaining} remaining ({report.records_written} records)"
        )
