"""Link discovery from the club listing page.

The listing page is one big table; every row carries a club code in its
second cell. Discovery turns that table into an ordered list of LinkIds and
builds the detail URL for each.
"""

from __future__ import annotations

import logging
from urllib.parse import quote, urlsplit

from typing_extensions import assert_never

from clubcrawl.common.exceptions import DiscoveryError
from clubcrawl.common.page_element import PageElement
from clubcrawl.data_types import (
    FatalRedirect,
    FetchSuccess,
    LinkId,
    TransientFailure,
)
from clubcrawl.fetcher.base import EntityFetcher

logger = logging.getLogger(__name__)

DEFAULT_DETAIL_URL_TEMPLATE = (
    "{origin}/pnfg/NPcd/NFG_VerClub?cod_primaria=1000118&codigo_club={code}"
)


def discover_links(page: PageElement) -> list[LinkId]:
    """Extract club codes from every listing row, top to bottom.

    Rows whose code cell is missing, empty or whitespace-only are skipped.
    Duplicates are preserved; the orchestrator deals with them.

    Args:
        page: The parsed listing page.

    Returns:
        LinkIds in document order.
    """
    link_ids: list[LinkId] = []
    rows = page.query_css("table tr", "listing rows", min_count=0)
    for index, row in enumerate(rows):
        cells = row.query_css(
            "td:nth-child(2)", "club code cell", min_count=0
        )
        if not cells:
            continue
        code = cells[0].text_content().strip()
        if not code:
            logger.debug(f"Skipping listing row {index}: empty club code")
            continue
        link_ids.append(code)
    return link_ids


def build_detail_url(
    listing_url: str,
    link_id: LinkId,
    template: str = DEFAULT_DETAIL_URL_TEMPLATE,
) -> str:
    """Build the detail page URL for a club code.

    Args:
        listing_url: The listing page URL; its scheme and host fill {origin}.
        link_id: The club code; URL-quoted into {code}.
        template: Format string with {origin} and {code} placeholders.

    Returns:
        The absolute detail page URL.
    """
    parts = urlsplit(listing_url)
    origin = f"{parts.scheme}://{parts.netloc}"
    return template.format(origin=origin, code=quote(link_id, safe=""))


async def discover(fetcher: EntityFetcher, listing_url: str) -> list[LinkId]:
    """Fetch the listing page and discover its LinkIds.

    Args:
        fetcher: The fetcher used for the listing page.
        listing_url: The listing page URL.

    Returns:
        LinkIds in document order (at least one).

    Raises:
        DiscoveryError: If the listing page could not be fetched, was
            redirected to the login page, or contained no club codes.
    """
    logger.info(f"Discovering clubs from {listing_url}")
    outcome = await fetcher.fetch(listing_url)
    match outcome:
        case FetchSuccess(page=fetched):
            link_ids = discover_links(fetched.page_element())
        case FatalRedirect():
            raise DiscoveryError(
                "Listing page redirected to the login page",
                listing_url,
                outcome.to_exception(),
            )
        case TransientFailure(error=error):
            raise DiscoveryError(
                "Listing page could not be fetched", listing_url, error
            )
        case _:
            assert_never(outcome)

    if not link_ids:
        raise DiscoveryError("Listing page contains no club codes", listing_url)

    logger.info(f"Discovered {len(link_ids)} clubs")
    return link_ids
