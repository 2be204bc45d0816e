"""
Test suite for the layered URL liveness probe.

Uses httpx.MockTransport for status handling and a loopback server that
drips its response for the wall-clock timeout cases.

System role: Verification of the HEAD-then-GET source validator
"""

import asyncio
import time

import httpx
import pytest

from market_map.boundary.web.url_probe import SourceValidator
from market_map.core.research_agent.schemas import Source


def make_validator(handler) -> tuple[SourceValidator, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return SourceValidator(client, head_timeout=5.0, get_timeout=7.0, user_agent="Mozilla/5.0"), seen


class TestSourceValidatorProbe:
    """Test suite for SourceValidator.probe()."""

    @pytest.mark.asyncio
    async def test_head_success_should_skip_get(self) -> None:
        # Arrange
        validator, seen = make_validator(lambda request: httpx.Response(200))

        # Act
        live = await validator.probe("https://g2.com/categories/crm")

        # Assert
        assert live
        assert [r.method for r in seen] == ["HEAD"]

    @pytest.mark.asyncio
    async def test_head_rejected_should_fall_back_to_get(self) -> None:
        # Arrange
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(405 if request.method == "HEAD" else 200)

        validator, seen = make_validator(handler)

        # Act
        live = await validator.probe("https://ir.hubspot.com")

        # Assert
        assert live
        assert [r.method for r in seen] == ["HEAD", "GET"]
        assert seen[1].headers["User-Agent"] == "Mozilla/5.0"

    @pytest.mark.asyncio
    async def test_head_error_should_fall_back_to_get(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "HEAD":
                raise httpx.ConnectTimeout("slow", request=request)
            return httpx.Response(204)

        validator, _ = make_validator(handler)

        assert await validator.probe("https://www.salesforce.com")

    @pytest.mark.asyncio
    async def test_both_failing_should_be_invalid(self) -> None:
        validator, seen = make_validator(lambda request: httpx.Response(404))

        assert not await validator.probe("https://gone.example.com")
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_get_error_should_be_invalid(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        validator, _ = make_validator(handler)

        assert not await validator.probe("https://down.example.com")

    @pytest.mark.asyncio
    async def test_redirect_to_success_should_be_valid(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://example.com/new"})
            return httpx.Response(200)

        validator, seen = make_validator(handler)

        assert await validator.probe("https://example.com/old")
        assert [r.url.path for r in seen] == ["/old", "/new"]


class TestSourceValidatorValidate:
    """Test suite for SourceValidator.validate()."""

    @pytest.mark.asyncio
    async def test_should_partition_preserving_order(self) -> None:
        # Arrange
        live = {"a.example.com", "c.example.com"}
        validator, _ = make_validator(
            lambda request: httpx.Response(200 if request.url.host in live else 500)
        )
        sources = [
            Source(title=name, url=f"https://{name}.example.com") for name in ("a", "b", "c", "d")
        ]

        # Act
        report = await validator.validate(sources)

        # Assert
        assert [s.title for s in report.valid] == ["a", "c"]
        assert [s.title for s in report.invalid] == ["b", "d"]


DRIP_INTERVAL = 0.2


async def _drip_body(writer: asyncio.StreamWriter) -> None:
    writer.write(b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\nContent-Type: text/html\r\n\r\n")
    await writer.drain()
    while not writer.is_closing():
        await asyncio.sleep(DRIP_INTERVAL)
        writer.write(b"1\r\nx\r\n")
        await writer.drain()


async def _drip_headers(writer: asyncio.StreamWriter) -> None:
    writer.write(b"HTTP/1.1 200 OK\r\n")
    await writer.drain()
    while not writer.is_closing():
        await asyncio.sleep(DRIP_INTERVAL)
        writer.write(b"X")
        await writer.drain()


@pytest.fixture
async def slow_server():
    """
    Loopback HTTP server that rejects HEAD and answers GET too slowly.

    /slow-body sends 200 headers at once then one chunk per interval.
    /slow-headers never finishes its header block. /slow-head drips
    headers for HEAD as well.
    """
    handlers: set[asyncio.Task] = set()

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        handlers.add(asyncio.current_task())
        try:
            while True:
                request = await reader.readuntil(b"\r\n\r\n")
                method, path, _ = request.split(b"\r\n", 1)[0].decode().split(" ", 2)
                if method == "HEAD" and path != "/slow-head":
                    writer.write(b"HTTP/1.1 405 Method Not Allowed\r\nContent-Length: 0\r\n\r\n")
                    await writer.drain()
                    continue
                if path == "/slow-body":
                    await _drip_body(writer)
                else:
                    await _drip_headers(writer)
                return
        except (asyncio.IncompleteReadError, ConnectionError):
            return
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"http://127.0.0.1:{port}"

    for task in handlers:
        task.cancel()
    await asyncio.gather(*handlers, return_exceptions=True)
    server.close()
    await server.wait_closed()


@pytest.fixture
async def loopback_validator():
    client = httpx.AsyncClient(trust_env=False)
    yield SourceValidator(client, head_timeout=0.5, get_timeout=1.0)
    await client.aclose()


class TestSourceValidatorWallClock:
    """Test suite for the end-to-end timeout of each probe."""

    @pytest.mark.asyncio
    async def test_slow_body_should_be_valid_without_reading_it(
        self, slow_server, loopback_validator
    ) -> None:
        # Act
        started = time.monotonic()
        live = await loopback_validator.probe(f"{slow_server}/slow-body")
        elapsed = time.monotonic() - started

        # Assert
        assert live
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_dripping_headers_should_fail_within_get_timeout(
        self, slow_server, loopback_validator
    ) -> None:
        # Act
        started = time.monotonic()
        live = await loopback_validator.probe(f"{slow_server}/slow-headers")
        elapsed = time.monotonic() - started

        # Assert
        assert not live
        assert elapsed < 1.0 + 0.5 + 0.5

    @pytest.mark.asyncio
    async def test_dripping_head_should_fall_back_within_both_timeouts(
        self, slow_server, loopback_validator
    ) -> None:
        # Act
        started = time.monotonic()
        live = await loopback_validator.probe(f"{slow_server}/slow-head")
        elapsed = time.monotonic() - started

        # Assert
        assert not live
        assert 0.5 <= elapsed < 0.5 + 1.0 + 0.5
