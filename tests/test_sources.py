"""
Tests for resolving document sources (bytes, URLs, local paths).
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

URL = "https://docs.example.com/handbook.pdf"


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", URL)
    return httpx.HTTPStatusError(
        f"HTTP {status}", request=request, response=httpx.Response(status, request=request)
    )


@pytest.fixture
def mock_http():
    """Patch httpx.AsyncClient and return the client used inside the context manager."""
    with patch("rag_agent_core.rag.sources.httpx.AsyncClient") as mock_client_cls:
        client = AsyncMock()
        mock_client_cls.return_value.__aenter__.return_value = client
        yield client


class TestFetchUrl:
    """Tests for fetch_url."""

    @pytest.mark.asyncio
    async def test_returns_body(self, mock_http):
        from rag_agent_core.rag.sources import fetch_url

        response = MagicMock()
        response.content = b"%PDF-1.7"
        mock_http.get.return_value = response

        assert await fetch_url(URL, timeout=5) == b"%PDF-1.7"
        mock_http.get.assert_awaited_once_with(URL)
        response.raise_for_status.assert_called_once()

    @pytest.mark.asyncio
    async def test_connect_timeout_from_config(self):
        from rag_agent_core.config import configure
        from rag_agent_core.rag.sources import fetch_url

        configure(connect_timeout=1.5)
        with patch("rag_agent_core.rag.sources.httpx.AsyncClient") as mock_client_cls:
            client = AsyncMock()
            client.get.return_value = MagicMock(content=b"body")
            mock_client_cls.return_value.__aenter__.return_value = client

            await fetch_url(URL, timeout=20.0)

        timeout = mock_client_cls.call_args.kwargs["timeout"]
        assert timeout.connect == 1.5
        assert timeout.read == 20.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 410])
    async def test_missing_document(self, mock_http, status):
        from rag_agent_core.errors import SourceNotFoundError
        from rag_agent_core.rag.sources import fetch_url

        response = MagicMock()
        response.raise_for_status.side_effect = _status_error(status)
        mock_http.get.return_value = response

        with pytest.raises(SourceNotFoundError) as exc_info:
            await fetch_url(URL)
        assert exc_info.value.source == URL

    @pytest.mark.asyncio
    async def test_server_error_is_not_missing(self, mock_http):
        from rag_agent_core.errors import ExternalCapabilityError, SourceNotFoundError
        from rag_agent_core.rag.sources import fetch_url

        response = MagicMock()
        response.raise_for_status.side_effect = _status_error(500)
        mock_http.get.return_value = response

        with pytest.raises(ExternalCapabilityError, match="HTTP 500") as exc_info:
            await fetch_url(URL)
        assert not isinstance(exc_info.value, SourceNotFoundError)

    @pytest.mark.asyncio
    async def test_timeout(self, mock_http):
        from rag_agent_core.errors import CapabilityTimeoutError
        from rag_agent_core.rag.sources import fetch_url

        mock_http.get.side_effect = httpx.ReadTimeout("too slow")

        with pytest.raises(CapabilityTimeoutError) as exc_info:
            await fetch_url(URL, timeout=2.0)
        assert exc_info.value.timeout == 2.0
        assert exc_info.value.elapsed is not None

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_http):
        from rag_agent_core.errors import ExternalCapabilityError
        from rag_agent_core.rag.sources import fetch_url

        mock_http.get.side_effect = httpx.ConnectError("refused")

        with pytest.raises(ExternalCapabilityError, match="Failed to fetch"):
            await fetch_url(URL)


class TestResolveSource:
    """Tests for resolve_source."""

    @pytest.mark.asyncio
    async def test_bytes_pass_through(self):
        from rag_agent_core.rag.sources import resolve_source

        assert await resolve_source(b"raw") == b"raw"
        assert await resolve_source(bytearray(b"raw")) == b"raw"

    @pytest.mark.asyncio
    async def test_local_path(self, tmp_path):
        from rag_agent_core.rag.sources import resolve_source

        path = tmp_path / "doc.txt"
        path.write_bytes(b"local")

        assert await resolve_source(str(path)) == b"local"
        assert await resolve_source(path) == b"local"

    @pytest.mark.asyncio
    async def test_missing_path(self, tmp_path):
        from rag_agent_core.errors import SourceNotFoundError
        from rag_agent_core.rag.sources import resolve_source

        with pytest.raises(SourceNotFoundError):
            await resolve_source(str(tmp_path / "nope.txt"))

    @pytest.mark.asyncio
    async def test_url_is_fetched(self):
        from rag_agent_core.rag.sources import resolve_source

        with patch("rag_agent_core.rag.sources.fetch_url", AsyncMock(return_value=b"remote")) as fetch:
            assert await resolve_source(URL, timeout=3) == b"remote"
        fetch.assert_awaited_once_with(URL, timeout=3)
