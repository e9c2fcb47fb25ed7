"""Exception types for crawler errors.

This module defines the exception hierarchy used across the crawler. There
are three families, and the orchestrator treats each one differently:

- ScraperAssumptionException: the page did not look the way the crawler
  assumed. DiscoveryError ends the run; ExtractionError only fails one club.
- TransientException: a navigation failed in a way that may resolve on the
  next run. The club is left out of the progress set and retried on resume.
- FatalRedirectError: the site sent us to its login page. The run stops
  immediately and is never retried automatically.
"""

from typing import Any


class ScraperAssumptionException(Exception):
    """Base class for page assumption violations.

    The crawler makes assumptions about the directory's structure. When these
    assumptions are violated, it raises clear, contextual exceptions that
    help diagnose the issue.
    """

    def __init__(
        self,
        message: str,
        request_url: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the assumption violation.
            request_url: The URL of the page that triggered this error.
            context: Optional dict of additional context (selector, counts, etc).
        """
        self.message = message
        self.request_url = request_url
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message]
        parts.append(f"URL: {self.request_url}")

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class HTMLStructuralAssumptionException(ScraperAssumptionException):
    """Raised when HTML structure doesn't match expectations.

    Raised when XPath or CSS selectors return a different number of elements
    than expected, which usually means the directory's markup changed.

    Attributes:
        selector: The XPath or CSS selector that was used.
        selector_type: Type of selector ("xpath" or "css").
    """

    def __init__(
        self,
        selector: str,
        selector_type: str,
        description: str,
        expected_min: int,
        expected_max: int | None,
        actual_count: int,
        request_url: str,
    ) -> None:
        """Initialize the exception.

        Args:
            selector: The XPath or CSS selector that was used.
            selector_type: Type of selector ("xpath" or "css").
            description: Human-readable description of what was being selected.
            expected_min: Minimum number of elements expected.
            expected_max: Maximum number of elements expected (None = unlimited).
            actual_count: Actual number of elements found.
            request_url: The URL of the page that triggered this error.
        """
        self.selector = selector
        self.selector_type = selector_type
        self.description = description
        self.expected_min = expected_min
        self.expected_max = expected_max
        self.actual_count = actual_count

        if expected_max is None:
            expected_str = f"at least {expected_min}"
        elif expected_min == expected_max:
            expected_str = f"exactly {expected_min}"
        else:
            expected_str = f"between {expected_min} and {expected_max}"

        message = (
            f"HTML structure mismatch: Expected {expected_str} "
            f"elements for '{description}', but found {actual_count}"
        )

        context = {
            "selector": selector,
            "selector_type": selector_type,
            "expected_min": expected_min,
            "expected_max": expected_max
            if expected_max is not None
            else "unlimited",
            "actual_count": actual_count,
        }

        super().__init__(message, request_url, context)


class DiscoveryError(ScraperAssumptionException):
    """Raised when the listing page cannot produce any club links.

    Covers an unreachable listing page, a listing page that redirected to
    the login page, and a listing page without a single club code. With no
    links there is nothing to crawl or resume, so this ends the run.
    """

    def __init__(
        self,
        message: str,
        request_url: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of why discovery failed.
            request_url: The listing page URL.
            cause: The underlying exception, when there is one.
        """
        self.cause = cause
        context = {"cause": repr(cause)} if cause is not None else None
        super().__init__(message, request_url, context)


class ExtractionError(ScraperAssumptionException):
    """Raised when extracting records from a fetched club page blows up.

    Extraction substitutes sentinels for missing text and returns no records
    for pages without tables, so reaching this means something truly
    unexpected happened. The orchestrator contains it to the one club.
    """

    def __init__(self, link_id: str, request_url: str, cause: Exception) -> None:
        self.link_id = link_id
        self.cause = cause
        super().__init__(
            f"Extraction failed for club {link_id}: {cause}",
            request_url,
            {"link_id": link_id, "cause": type(cause).__name__},
        )


# =============================================================================
# Transient Exceptions
# =============================================================================


class TransientException(Exception):
    """Base class for transient errors that might resolve on retry.

    Transient exceptions represent temporary failures like network issues,
    server errors (5xx) or timeouts. The crawler never retries them inside a
    run: the club stays out of the progress set and the next run picks it up.
    """

    pass


class HTMLResponseAssumptionException(TransientException):
    """Raised when an HTTP response has an unexpected status code.

    Attributes:
        status_code: The actual HTTP status code received.
        expected_codes: List of status codes that were expected.
        url: The URL that returned the unexpected status.
        message: Human-readable error message.
    """

    def __init__(
        self,
        status_code: int,
        expected_codes: list[int],
        url: str,
    ) -> None:
        """Initialize the exception.

        Args:
            status_code: The actual status code received.
            expected_codes: List of expected status codes.
            url: The URL of the request.
        """
        self.status_code = status_code
        self.expected_codes = expected_codes
        self.url = url

        expected_str = ", ".join(str(code) for code in expected_codes)
        self.message = (
            f"HTTP {status_code} from {url} (expected one of: {expected_str})"
        )
        super().__init__(self.message)


class RequestTimeoutException(TransientException):
    """Raised when a navigation times out.

    Attributes:
        url: The URL that timed out.
        timeout_seconds: The timeout duration in seconds.
        message: Human-readable error message.
    """

    def __init__(self, url: str, timeout_seconds: float) -> None:
        """Initialize the exception.

        Args:
            url: The URL that timed out.
            timeout_seconds: The timeout duration in seconds.
        """
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.message = f"Request to {url} timed out after {timeout_seconds}s"
        super().__init__(self.message)


class NavigationException(TransientException):
    """Raised when a navigation fails for any other reason.

    Connection resets, DNS failures and browser navigation errors all end up
    here.

    Attributes:
        url: The URL being navigated to.
        reason: Short description of the failure.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        self.message = f"Navigation to {url} failed: {reason}"
        super().__init__(self.message)


# =============================================================================
# Fatal Exceptions
# =============================================================================


class FatalRedirectError(Exception):
    """Raised when the directory redirects the crawler to its login page.

    After a number of requests the site stops serving club pages and sends
    every navigation to an authentication page instead. Continuing would
    record nothing while every club appeared to succeed, so the whole run
    stops and waits for outside intervention (a fresh session, a pause).

    Attributes:
        url: The URL whose navigation was redirected.
        target_url: Where the site tried to send us.
        status_code: The 3xx status observed, or None when the redirect was
            only detected from the final URL.
    """

    def __init__(
        self, url: str, target_url: str, status_code: int | None = None
    ) -> None:
        self.url = url
        self.target_url = target_url
        self.status_code = status_code
        via = f"HTTP {status_code}" if status_code is not None else "final URL"
        self.message = (
            f"Redirected to login page ({via}): {url} -> {target_url}"
        )
        super().__init__(self.message)


class StoreCorruptedError(Exception):
    """Raised when a persisted progress document cannot be read.

    The store refuses to overwrite a progress file it cannot parse, because
    that would silently throw away the record of completed work.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        self.message = f"Progress file {path} is unreadable: {reason}"
        super().__init__(self.message)
