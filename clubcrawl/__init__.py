"""Resumable club directory crawler.

This package crawls a federation club directory: it discovers club detail
pages from a listing page, extracts organization and people records from
each, and persists them incrementally so an interrupted run can resume
without re-fetching finished clubs.

The pieces are kept separate so each can be swapped:

- Fetchers (Playwright or httpx) turn a URL into a tagged FetchOutcome.
- Discovery and extraction are pure functions over a PageElement snapshot.
- Stores (JSON files or SQLite) own the progress set and the output.
- CrawlOrchestrator drives the whole run.
"""

__version__ = "0.1.0"
