"""LxmlPageElement implementation wrapping CheckedHtmlElement.

This module provides the implementation of the PageElement protocol used by
every fetcher: the page HTML is parsed once with lxml and all queries are
delegated to CheckedHtmlElement.
"""

from __future__ import annotations

from lxml import html

from clubcrawl.common.checked_html import CheckedHtmlElement


class LxmlPageElement:
    """Implementation of PageElement protocol wrapping CheckedHtmlElement.

    Attributes:
        _element: The underlying CheckedHtmlElement.
        _url: The URL the HTML was fetched from, for error context.
    """

    def __init__(self, element: CheckedHtmlElement, url: str = ""):
        """Initialize LxmlPageElement.

        Args:
            element: The CheckedHtmlElement to wrap.
            url: URL of the page, used in error messages.
        """
        self._element = element
        self._url = url

    @classmethod
    def from_html(cls, text: str, url: str = "") -> LxmlPageElement:
        """Parse an HTML document into a root LxmlPageElement.

        Args:
            text: The HTML document.
            url: URL the document was fetched from.

        Returns:
            LxmlPageElement wrapping the document root.
        """
        # lxml refuses empty input; an empty page is just an empty document
        doc = html.document_fromstring(text or "<html></html>")
        return cls(CheckedHtmlElement(doc, url), url)

    def query_xpath(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[LxmlPageElement]:
        """Query elements by XPath selector.

        Args:
            selector: XPath expression to execute.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching LxmlPageElement instances.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        checked_elements = self._element.checked_xpath(
            selector, description, min_count, max_count
        )
        return [LxmlPageElement(elem, self._url) for elem in checked_elements]

    def query_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[LxmlPageElement]:
        """Query elements by CSS selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        checked_elements = self._element.checked_css(
            selector, description, min_count, max_count
        )
        return [LxmlPageElement(elem, self._url) for elem in checked_elements]

    def text_content(self) -> str:
        """Extract the text content of the element and its descendants."""
        return self._element.text_content()

