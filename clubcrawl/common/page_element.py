"""PageElement protocol for transport-agnostic data extraction.

Discovery and extraction never see a live browser or an HTTP response.
They receive a PageElement backed by static parsed HTML (LXML); the fetcher
is responsible for obtaining that HTML, whether by downloading it with
httpx or by serializing the rendered Playwright DOM.
"""

from __future__ import annotations

from typing import Protocol


class PageElement(Protocol):
    """Protocol for querying a parsed page or one of its elements.

    All query methods support count validation and raise
    HTMLStructuralAssumptionException if the actual count doesn't match
    expectations. Pass ``min_count=0`` for optional elements.
    """

    def query_xpath(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[PageElement]:
        """Query elements by XPath selector.

        Args:
            selector: XPath expression to execute.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching PageElement instances.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        ...

    def query_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[PageElement]:
        """Query elements by CSS selector.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match expectations.
        """
        ...

    def text_content(self) -> str:
        """Extract the text content of the element and its descendants."""
        ...

