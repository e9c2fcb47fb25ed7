"""Plain HTTP fetcher built on httpx.

For directory pages that render server-side there is no need for a
browser: HttpFetcher downloads the HTML with an httpx.AsyncClient, follows
redirects itself and runs every hop through the RedirectWatcher.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from clubcrawl.common.exceptions import (
    HTMLResponseAssumptionException,
    NavigationException,
    RequestTimeoutException,
)
from clubcrawl.data_types import FetchedPage, FetchOutcome
from clubcrawl.fetcher.base import (
    DEFAULT_LOGIN_MARKER,
    DEFAULT_REDIRECT_STATUSES,
    RedirectWatcher,
)

logger = logging.getLogger(__name__)


class HttpFetcher:
    """Fetches pages with httpx and classifies the outcome.

    Example::

        async with HttpFetcher(timeout=30.0) as fetcher:
            outcome = await fetcher.fetch(url)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        redirect_statuses: Iterable[int] = DEFAULT_REDIRECT_STATUSES,
        login_marker: str = DEFAULT_LOGIN_MARKER,
        user_agent: str | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Per-request timeout in seconds.
            redirect_statuses: Statuses treated as a login redirect.
            login_marker: Substring of a final URL that means login page.
            user_agent: Optional User-Agent header.
        """
        self.timeout = timeout
        self.redirect_statuses = frozenset(redirect_statuses)
        self.login_marker = login_marker

        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, headers=headers
        )

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> HttpFetcher:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def fetch(self, url: str) -> FetchOutcome:
        """Fetch url and classify it as success, fatal redirect or transient.

        Args:
            url: Absolute URL to fetch.

        Returns:
            FetchSuccess, FatalRedirect or TransientFailure.
        """
        watcher = RedirectWatcher(
            url, self.redirect_statuses, self.login_marker
        )
        try:
            response = await self._client.get(url)
        except httpx.TimeoutException:
            logger.warning(f"Timeout fetching {url}")
            return watcher.classify_error(
                RequestTimeoutException(url=url, timeout_seconds=self.timeout)
            )
        except httpx.HTTPError as e:
            logger.warning(f"HTTP error fetching {url}: {e}")
            return watcher.classify_error(NavigationException(url, str(e)))

        for hop in response.history:
            watcher.observe(hop.status_code, str(hop.url), hop.headers)
        watcher.observe(response.status_code, str(response.url), response.headers)

        page = FetchedPage(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )
        if watcher.check_final_url(page.final_url) is None and (
            response.status_code >= 400
        ):
            return watcher.classify_error(
                HTMLResponseAssumptionException(
                    status_code=response.status_code,
                    expected_codes=[200],
                    url=url,
                )
            )
        return watcher.classify(page)
