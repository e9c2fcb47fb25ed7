"""Fetchers that turn a URL into a classified FetchOutcome.

Two transports are provided: PlaywrightFetcher renders pages in Chromium,
HttpFetcher downloads them with httpx. Both share RedirectWatcher for
login-redirect detection.
"""

from clubcrawl.fetcher.base import (
    EntityFetcher,
    RedirectWatcher,
)
from clubcrawl.fetcher.http_fetcher import (
    HttpFetcher,
)
from clubcrawl.fetcher.playwright_fetcher import (
    PlaywrightFetcher,
)

__all__ = [
    "EntityFetcher",
    "HttpFetcher",
    "PlaywrightFetcher",
    "RedirectWatcher",
]
