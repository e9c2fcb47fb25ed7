"""Fetcher protocol and login-redirect detection.

Every transport turns a URL into exactly one FetchOutcome. The decision of
whether a navigation was hijacked by the login page is made here, in
RedirectWatcher, so the browser and HTTP transports classify identically.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Protocol
from urllib.parse import urljoin

from clubcrawl.common.exceptions import TransientException
from clubcrawl.data_types import (
    FatalRedirect,
    FetchedPage,
    FetchOutcome,
    FetchSuccess,
    TransientFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_STATUSES = frozenset({301, 302})
DEFAULT_LOGIN_MARKER = "login"


class EntityFetcher(Protocol):
    """Anything that can fetch a page and classify the outcome."""

    async def fetch(self, url: str) -> FetchOutcome:
        """Navigate to url and return a tagged outcome.

        Implementations never raise for navigation problems; those are
        returned as TransientFailure or FatalRedirect.
        """
        ...


class RedirectWatcher:
    """Observes the HTTP exchanges of one navigation.

    Feed it every response of the navigation with observe(); the first
    response whose status is a redirect status is remembered. Once the
    navigation has settled, check_final_url() catches redirects that were
    only visible in where the browser ended up.

    Example::

        watcher = RedirectWatcher(url)
        for hop in response.history:
            watcher.observe(hop.status_code, str(hop.url), hop.headers)
        redirect = watcher.redirect or watcher.check_final_url(final_url)
    """

    def __init__(
        self,
        url: str,
        redirect_statuses: Iterable[int] = DEFAULT_REDIRECT_STATUSES,
        login_marker: str = DEFAULT_LOGIN_MARKER,
    ) -> None:
        self.url = url
        self.redirect_statuses = frozenset(redirect_statuses)
        self.login_marker = login_marker.lower()
        self.redirect: FatalRedirect | None = None

    def observe(
        self,
        status_code: int,
        response_url: str,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Record one response of the navigation.

        Args:
            status_code: HTTP status of the response.
            response_url: URL the response was served for.
            headers: Response headers, used for the Location target.
        """
        if self.redirect is not None:
            return
        if status_code not in self.redirect_statuses:
            return
        location = _get_header(headers or {}, "location")
        target = urljoin(response_url, location) if location else response_url
        logger.debug(
            f"Observed HTTP {status_code} redirect: {response_url} -> {target}"
        )
        self.redirect = FatalRedirect(self.url, target, status_code)

    def check_final_url(self, final_url: str) -> FatalRedirect | None:
        """Classify the URL the navigation ended on.

        Returns:
            A FatalRedirect if a redirect was observed or the final URL
            contains the login marker, else None.
        """
        if self.redirect is not None:
            return self.redirect
        if self.login_marker and self.login_marker in final_url.lower():
            self.redirect = FatalRedirect(self.url, final_url, None)
        return self.redirect

    def classify(self, page: FetchedPage) -> FetchOutcome:
        """Turn a settled navigation into its FetchOutcome."""
        redirect = self.check_final_url(page.final_url)
        if redirect is not None:
            return redirect
        return FetchSuccess(page)

    def classify_error(
        self, error: TransientException, final_url: str | None = None
    ) -> FetchOutcome:
        """Classify a navigation that raised.

        A redirect seen before the failure still wins: the failure is most
        likely the browser giving up on the login page. The same holds when
        the page has meanwhile landed on the login page through a
        client-side redirect, so final_url (where the page is now, when
        known) goes through the login marker check.
        """
        if final_url is not None:
            self.check_final_url(final_url)
        if self.redirect is not None:
            return self.redirect
        return TransientFailure(self.url, error)


def _get_header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None
