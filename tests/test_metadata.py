from __future__ import annotations

import datetime

import httpx
import pytest

from inventory_tracker.metadata import fetch_last_updated

URL = "https://metadata.example.test/repo"


def _transport(handler):
    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_returns_updated_at_timestamp():
    transport = _transport(lambda request: httpx.Response(200, json={"updated_at": "2024-05-01T12:30:00Z"}))

    result = await fetch_last_updated(URL, transport=transport)

    assert result == datetime.datetime(2024, 5, 1, 12, 30, tzinfo=datetime.timezone.utc)


@pytest.mark.asyncio
async def test_no_url_skips_fetch():
    def handler(request):
        raise AssertionError("should not be called")

    assert await fetch_last_updated("", transport=_transport(handler)) is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"name": "no timestamp"}),
        httpx.Response(200, json={"updated_at": "not a date"}),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, text="<html>"),
    ],
)
async def test_bad_responses_yield_none(response):
    assert await fetch_last_updated(URL, transport=_transport(lambda request: response)) is None


@pytest.mark.asyncio
async def test_connection_errors_yield_none():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await fetch_last_updated(URL, transport=_transport(handler)) is None


@pytest.mark.asyncio
async def test_unexpected_errors_yield_none():
    def handler(request):
        raise RuntimeError("transport blew up")

    assert await fetch_last_updated(URL, transport=_transport(handler)) is None


@pytest.mark.asyncio
async def test_malformed_url_yields_none():
    assert await fetch_last_updated("http://[not-a-host", transport=_transport(lambda request: None)) is None
