"""Tests for the :mod:`parceltrack.tracking_client` module."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

import httpx
import pytest

from parceltrack.errors import UpstreamUnavailableError
from parceltrack.tracking_client import TrackingClient

BASE_URL = "https://tracking.example.com/api/v1/track_order"


def _client(handler) -> TrackingClient:
    return TrackingClient(BASE_URL, "secret-token", timeout=1.0, transport=httpx.MockTransport(handler))


def test_build_url_percent_encodes_order_id() -> None:
    client = TrackingClient(BASE_URL, "secret-token", timeout=1.0)

    assert client.build_url("A B&C") == f"{BASE_URL}?channel_order_no=A%20B%26C"
    assert client.build_url("#1001/é") == f"{BASE_URL}?channel_order_no=%231001%2F%C3%A9"


def test_build_url_appends_to_existing_query() -> None:
    client = TrackingClient(f"{BASE_URL}?region=in", "secret-token", timeout=1.0)

    assert client.build_url("42") == f"{BASE_URL}?region=in&channel_order_no=42"


def test_fetch_sends_credentials_and_returns_raw_body() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(404, text='{"error": "not found"}')

    client = _client(handler)
    result = asyncio.run(client.fetch("A B&C"))

    assert result.status_code == 404
    assert result.raw_body == '{"error": "not found"}'
    assert len(captured) == 1
    request = captured[0]
    assert request.method == "GET"
    assert request.url.params["channel_order_no"] == "A B&C"
    assert b"channel_order_no=A%20B%26C" in request.url.raw_path
    assert request.headers["access-token"] == "secret-token"
    assert request.headers["accept"] == "application/json"
    assert request.headers["content-type"] == "application/json"
    assert request.content == b""


def test_fetch_keeps_non_json_body_as_text() -> None:
    client = _client(lambda request: httpx.Response(200, text="not json at all"))

    result = asyncio.run(client.fetch("1001"))

    assert result.status_code == 200
    assert result.raw_body == "not json at all"


@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ],
)
def test_fetch_maps_transport_errors(error: Exception) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise error

    client = _client(handler)

    with pytest.raises(UpstreamUnavailableError):
        asyncio.run(client.fetch("1001"))


def test_client_is_reused_until_closed() -> None:
    client = _client(lambda request: httpx.Response(200, text="{}"))

    async def scenario() -> None:
        first = client._ensure_client()
        await client.fetch("1")
        await client.fetch("2")
        assert client._ensure_client() is first
        await client.aclose()
        assert client._client is None

    asyncio.run(scenario())


def test_client_uses_bounded_timeout() -> None:
    client = TrackingClient(BASE_URL, "secret-token", timeout=1.0)

    assert client._ensure_client().timeout == httpx.Timeout(1.0)
    asyncio.run(client.aclose())
