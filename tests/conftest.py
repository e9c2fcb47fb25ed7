"""Shared fixtures for the crawler tests."""

import asyncio
import socket
import threading
import time
from collections.abc import Callable, Generator
from contextlib import closing

import pytest
from aiohttp import web
from click.testing import CliRunner

from tests.mock_server import HITS, create_app
from tests.utils import listing_url_for

# =============================================================================
# aiohttp test server fixtures
# =============================================================================


def find_free_port() -> int:
    """Find a free port on localhost.

    Returns:
        An available port number.
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class AioHttpTestServer:
    """Wrapper to run aiohttp server in a background thread."""

    def __init__(self, app: web.Application, port: int) -> None:
        self.app = app
        self.port = port
        self.host = "127.0.0.1"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def url(self) -> str:
        """Get the base URL of the server."""
        return f"http://{self.host}:{self.port}"

    @property
    def hits(self) -> list[str]:
        """Club codes requested so far, in order."""
        return self.app[HITS]

    def start(self) -> None:
        """Start the server in a background thread."""
        self._thread = threading.Thread(target=self._run_server, daemon=True)
        self._thread.start()
        self._started.wait(timeout=5.0)
        # Give the server time to accept connections
        time.sleep(0.05)

    def _run_server(self) -> None:
        """Run the server in an asyncio event loop."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        async def start() -> None:
            self._runner = web.AppRunner(self.app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()

        self._loop.run_until_complete(start())
        self._started.set()
        self._loop.run_forever()

    def stop(self) -> None:
        """Stop the server and clean up resources."""
        if self._loop and self._runner:
            future = asyncio.run_coroutine_threadsafe(
                self._runner.cleanup(), self._loop
            )
            future.result(timeout=2.0)

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)


@pytest.fixture
def start_directory_server() -> Generator[
    Callable[..., AioHttpTestServer], None, None
]:
    """Factory fixture starting a mock directory with a chosen listing.

    Yields:
        A callable taking the listing's club codes (default: all clubs) and
        returning a running AioHttpTestServer.
    """
    servers: list[AioHttpTestServer] = []

    def start(listing_codes: list[str] | None = None) -> AioHttpTestServer:
        server = AioHttpTestServer(create_app(listing_codes), find_free_port())
        server.start()
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.stop()


@pytest.fixture
def directory_server(
    start_directory_server: Callable[..., AioHttpTestServer],
) -> AioHttpTestServer:
    """A mock directory listing every club in tests.mock_server.CLUBS."""
    return start_directory_server()


@pytest.fixture
def server_url(directory_server: AioHttpTestServer) -> str:
    """Get the base URL of the test server."""
    return directory_server.url


@pytest.fixture
def listing_url(directory_server: AioHttpTestServer) -> str:
    """The listing page URL of the default mock directory."""
    return listing_url_for(directory_server.url)


# =============================================================================
# CLI fixtures
# =============================================================================


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CLI test runner."""
    return CliRunner()
