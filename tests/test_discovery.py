"""Tests for link discovery from the listing page."""

import pytest

from clubcrawl.common.exceptions import DiscoveryError, RequestTimeoutException
from clubcrawl.common.lxml_page_element import LxmlPageElement
from clubcrawl.data_types import (
    FatalRedirect,
    FetchedPage,
    FetchSuccess,
    TransientFailure,
)
from clubcrawl.discovery import (
    DEFAULT_DETAIL_URL_TEMPLATE,
    build_detail_url,
    discover,
    discover_links,
)
from tests.mock_server import generate_listing_html


def listing(rows: str) -> LxmlPageElement:
    return LxmlPageElement.from_html(
        f"<html><body><table>{rows}</table></body></html>",
        "https://clubs.example/listing",
    )


class TestDiscoverLinks:
    """Tests for reading club codes out of the listing table."""

    def test_codes_in_document_order(self):
        """discover_links shall return the second-cell text of each row, top to bottom."""
        page = LxmlPageElement.from_html(generate_listing_html(["30", "10", "20"]))

        assert discover_links(page) == ["30", "10", "20"]

    def test_whitespace_only_code_row_is_skipped(self):
        """A row whose code cell is whitespace-only shall be skipped."""
        page = listing(
            "<tr><td>1</td><td>A1</td></tr>"
            "<tr><td>2</td><td>   \n\t </td></tr>"
            "<tr><td>3</td><td> B2 </td></tr>"
            "<tr><td>4</td><td>C3</td></tr>"
        )

        assert discover_links(page) == ["A1", "B2", "C3"]

    def test_rows_without_code_cell_are_skipped(self):
        """Header rows and rows with fewer than two cells shall be skipped."""
        page = listing(
            "<tr><th>#</th><th>Code</th></tr>"
            "<tr><td>only one cell</td></tr>"
            "<tr><td>1</td><td></td></tr>"
            "<tr><td>2</td><td>X9</td></tr>"
        )

        assert discover_links(page) == ["X9"]

    def test_duplicates_are_preserved(self):
        """discover_links shall not deduplicate codes."""
        page = listing(
            "<tr><td>1</td><td>A</td></tr>"
            "<tr><td>2</td><td>A</td></tr>"
        )

        assert discover_links(page) == ["A", "A"]

    def test_no_table_yields_nothing(self):
        """A page without table rows shall produce an empty list."""
        page = LxmlPageElement.from_html("<html><body><p>Nada</p></body></html>")

        assert discover_links(page) == []

    def test_discovery_is_deterministic(self):
        """Repeated discovery over the same page shall produce the same sequence."""
        page = LxmlPageElement.from_html(generate_listing_html(["5", "4", "3"]))

        assert discover_links(page) == discover_links(page)


class TestBuildDetailUrl:
    """Tests for detail page URL construction."""

    def test_default_template_uses_listing_origin(self):
        """The default template shall combine the listing origin and the club code."""
        url = build_detail_url(
            "https://www.futgal.es/pnfg/NPcd/NFG_Clubes?cod_primaria=1000118&x=1",
            "1234",
        )

        assert url == (
            "https://www.futgal.es/pnfg/NPcd/NFG_VerClub"
            "?cod_primaria=1000118&codigo_club=1234"
        )

    def test_code_is_url_quoted(self):
        """Club codes shall be URL-quoted into the template."""
        url = build_detail_url(
            "http://127.0.0.1:8080/list", "A B&C", "{origin}/club?c={code}"
        )

        assert url == "http://127.0.0.1:8080/club?c=A%20B%26C"

    def test_default_template_constant(self):
        """The default template shall carry both placeholders."""
        assert "{origin}" in DEFAULT_DETAIL_URL_TEMPLATE
        assert "{code}" in DEFAULT_DETAIL_URL_TEMPLATE


class StaticFetcher:
    """Fetcher returning one fixed outcome."""

    def __init__(self, outcome):
        self.outcome = outcome

    async def fetch(self, url):
        return self.outcome


class TestDiscover:
    """Tests for fetching and discovering the listing page."""

    URL = "https://clubs.example/listing"

    @pytest.mark.asyncio
    async def test_discover_returns_codes(self):
        """discover shall return the codes of a successfully fetched listing."""
        page = FetchedPage(self.URL, self.URL, 200, generate_listing_html(["1", "2"]))

        assert await discover(StaticFetcher(FetchSuccess(page)), self.URL) == ["1", "2"]

    @pytest.mark.asyncio
    async def test_empty_listing_raises(self):
        """A listing without club codes shall raise DiscoveryError."""
        page = FetchedPage(self.URL, self.URL, 200, generate_listing_html([]))

        with pytest.raises(DiscoveryError, match="no club codes"):
            await discover(StaticFetcher(FetchSuccess(page)), self.URL)

    @pytest.mark.asyncio
    async def test_transient_failure_raises(self):
        """A listing that cannot be fetched shall raise DiscoveryError with the cause."""
        error = RequestTimeoutException(self.URL, 30.0)

        with pytest.raises(DiscoveryError) as exc_info:
            await discover(StaticFetcher(TransientFailure(self.URL, error)), self.URL)

        assert exc_info.value.cause is error

    @pytest.mark.asyncio
    async def test_login_redirect_raises(self):
        """A listing redirected to the login page shall raise DiscoveryError."""
        outcome = FatalRedirect(self.URL, "https://clubs.example/login", 302)

        with pytest.raises(DiscoveryError, match="login"):
            await discover(StaticFetcher(outcome), self.URL)
