"""Test utilities for the crawler tests.

This module provides a scripted in-memory fetcher and page builders so the
orchestrator can be exercised without a network or a browser.
"""

import asyncio
import socket
from contextlib import closing
from urllib.parse import parse_qs, urlsplit

from clubcrawl.common.exceptions import (
    HTMLResponseAssumptionException,
    RequestTimeoutException,
)
from clubcrawl.data_types import (
    FatalRedirect,
    FetchedPage,
    FetchOutcome,
    FetchSuccess,
    TransientFailure,
)
from tests.mock_server import (
    CLUBS,
    MockClub,
    generate_club_html,
    generate_listing_html,
)

FAKE_ORIGIN = "https://clubs.example"
FAKE_LISTING_URL = f"{FAKE_ORIGIN}/pnfg/NPcd/NFG_Clubes?cod_primaria=1000118"


def listing_url_for(base_url: str) -> str:
    """Listing page URL on a server rooted at base_url."""
    return f"{base_url}/pnfg/NPcd/NFG_Clubes?cod_primaria=1000118"


def find_unused_url() -> str:
    """A localhost URL nothing is listening on."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"http://127.0.0.1:{port}/pnfg/NPcd/NFG_VerClub?codigo_club=1"


def make_club(code: str, people: int = 1) -> MockClub:
    """Build a club whose records are easy to attribute to its code."""
    return MockClub(
        code=code,
        name=f"Club {code}",
        email=f"club{code}@example.org",
        phone="981 000 000",
        province="Lugo",
        teams=["Alevín"],
        people=[(f"Person {code}-{i}", "Vogal") for i in range(people)],
    )


def redirect_to_login(url: str) -> FatalRedirect:
    return FatalRedirect(url, f"{FAKE_ORIGIN}/login", 302)


def server_error(url: str) -> TransientFailure:
    return TransientFailure(
        url, HTMLResponseAssumptionException(500, [200], url)
    )


def timeout(url: str) -> TransientFailure:
    return TransientFailure(url, RequestTimeoutException(url, 30.0))


class FakeFetcher:
    """Scripted EntityFetcher.

    The listing page lists the given codes. Club pages come from `clubs`
    (rendered with the mock server's HTML) unless `outcomes` maps the code
    to a function producing a different FetchOutcome for the URL.

    Example:
        fetcher = FakeFetcher(["1", "2"], outcomes={"2": server_error})
        outcome = await fetcher.fetch(url)
    """

    def __init__(
        self,
        codes: list[str],
        clubs: dict[str, MockClub] | None = None,
        outcomes: dict | None = None,
        delay: float = 0.0,
        listing_url: str = FAKE_LISTING_URL,
    ) -> None:
        self.codes = codes
        self.clubs = clubs or {
            code: make_club(code) for code in codes if code.strip()
        }
        self.outcomes = outcomes or {}
        self.delay = delay
        self.listing_url = listing_url
        self.requested: list[str] = []

    async def fetch(self, url: str) -> FetchOutcome:
        if url == self.listing_url:
            return FetchSuccess(
                FetchedPage(url, url, 200, generate_listing_html(self.codes))
            )

        code = parse_qs(urlsplit(url).query)["codigo_club"][0]
        self.requested.append(code)
        if self.delay:
            await asyncio.sleep(self.delay)

        if code in self.outcomes:
            return self.outcomes[code](url)
        return FetchSuccess(
            FetchedPage(url, url, 200, generate_club_html(self.clubs[code]))
        )


def mock_club(code: str) -> MockClub:
    """Look up a club of the mock directory by code."""
    return next(club for club in CLUBS if club.code == code)
