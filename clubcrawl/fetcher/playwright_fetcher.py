"""Browser fetcher built on Playwright.

The directory is rendered in a real Chromium so that pages behave exactly
as they do for a visitor. Extraction still never touches the live browser:
after each navigation the DOM is serialized with page.content() and handed
on as a FetchedPage, which is parsed with lxml.

Redirect detection hooks the page's "response" event for the duration of a
single goto() and feeds main-frame navigation responses to a
RedirectWatcher, so a 301/302 is caught even though the browser follows it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    async_playwright,
)
from playwright.async_api import (
    Error as PlaywrightError,
)
from playwright.async_api import (
    Response as PlaywrightResponse,
)
from playwright.async_api import (
    TimeoutError as PlaywrightTimeoutError,
)

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

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


class PlaywrightFetcher:
    """Fetches pages in a Playwright browser context.

    Holds a small pool of pages, one per concurrent worker. A page is
    checked out for the duration of one fetch and reused afterwards.

    Example:
        async with PlaywrightFetcher.open(headless=True) as fetcher:
            outcome = await fetcher.fetch(url)
    """

    def __init__(
        self,
        browser_context: BrowserContext,
        pages: list[Page],
        timeout: float = 30.0,
        redirect_statuses: Iterable[int] = DEFAULT_REDIRECT_STATUSES,
        login_marker: str = DEFAULT_LOGIN_MARKER,
    ) -> None:
        """Initialize the fetcher.

        Args:
            browser_context: The context the pages belong to.
            pages: Pre-created pages forming the pool (at least one).
            timeout: Navigation timeout in seconds.
            redirect_statuses: Statuses treated as a login redirect.
            login_marker: Substring of a final URL that means login page.
        """
        self.browser_context = browser_context
        self.timeout = timeout
        self.redirect_statuses = frozenset(redirect_statuses)
        self.login_marker = login_marker
        self._pages: asyncio.Queue[Page] = asyncio.Queue()
        for page in pages:
            self._pages.put_nowait(page)

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        num_pages: int = 1,
        browser_type: str = "chromium",
        headless: bool = True,
        user_agent: str | None = None,
        locale: str = "es-ES",
        timeout: float = 30.0,
        **kwargs: Any,
    ) -> AsyncIterator[PlaywrightFetcher]:
        """Open a browser and yield a fetcher bound to it.

        Ensures the pages, context, browser and Playwright itself are shut
        down in reverse order, whatever happens inside the block.

        Args:
            num_pages: Size of the page pool (one per worker).
            browser_type: "chromium", "firefox" or "webkit".
            headless: Run the browser headless.
            user_agent: Custom user agent (default: browser default).
            locale: Browser locale.
            timeout: Navigation timeout in seconds.
            **kwargs: Passed through to __init__ (redirect_statuses,
                login_marker).

        Yields:
            An initialized PlaywrightFetcher.
        """
        playwright = await async_playwright().start()
        try:
            browser_launcher = getattr(playwright, browser_type)
            browser: Browser = await browser_launcher.launch(headless=headless)
            try:
                context_kwargs: dict[str, Any] = {"locale": locale}
                if user_agent:
                    context_kwargs["user_agent"] = user_agent
                browser_context = await browser.new_context(**context_kwargs)
                try:
                    pages = [
                        await browser_context.new_page()
                        for _ in range(max(1, num_pages))
                    ]
                    logger.debug(
                        f"Launched {browser_type} with {len(pages)} page(s)"
                    )
                    yield cls(browser_context, pages, timeout=timeout, **kwargs)
                finally:
                    await browser_context.close()
            finally:
                await browser.close()
        finally:
            await playwright.stop()

    async def fetch(self, url: str) -> FetchOutcome:
        """Navigate to url and classify the result.

        Args:
            url: Absolute URL to navigate to.

        Returns:
            FetchSuccess, FatalRedirect or TransientFailure.
        """
        page = await self._pages.get()
        try:
            return await self._navigate(page, url)
        finally:
            self._pages.put_nowait(page)

    async def _navigate(self, page: Page, url: str) -> FetchOutcome:
        watcher = RedirectWatcher(
            url, self.redirect_statuses, self.login_marker
        )

        def on_response(response: PlaywrightResponse) -> None:
            request = response.request
            if request.is_navigation_request() and request.frame == page.main_frame:
                watcher.observe(response.status, response.url, response.headers)
                watcher.check_final_url(response.url)

        page.on("response", on_response)
        try:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.timeout * 1000,
            )
            html_content = await page.content()
        except PlaywrightTimeoutError:
            logger.warning(f"Playwright timeout navigating to {url}")
            return watcher.classify_error(
                RequestTimeoutException(url=url, timeout_seconds=self.timeout),
                final_url=page.url,
            )
        except PlaywrightError as e:
            logger.warning(f"Playwright navigation to {url} failed: {e}")
            await self._settle(page)
            return watcher.classify_error(
                NavigationException(url, e.message), final_url=page.url
            )
        finally:
            page.remove_listener("response", on_response)

        status_code = response.status if response is not None else 200
        fetched = FetchedPage(
            url=url,
            final_url=page.url,
            status_code=status_code,
            text=html_content,
            headers=dict(response.headers) if response is not None else {},
        )
        if watcher.check_final_url(fetched.final_url) is None and (
            status_code >= 400
        ):
            return watcher.classify_error(
                HTMLResponseAssumptionException(
                    status_code=status_code, expected_codes=[200], url=url
                )
            )
        return watcher.classify(fetched)

    async def _settle(self, page: Page) -> None:
        """Let a navigation started by the page's own scripts commit.

        page.content() fails while a script is replacing the document, as
        with a location.href assignment. Waiting for the new document means
        page.url reports where the script sent us.
        """
        try:
            await page.wait_for_load_state(
                "domcontentloaded", timeout=self.timeout * 1000
            )
        except PlaywrightError as e:
            logger.debug(f"Page did not settle after failed navigation: {e}")
