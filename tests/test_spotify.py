from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import httpx
import pytest

from app.core.credentials import CredentialCache
from app.services.errors import ProviderError
from app.services.spotify import SpotifyService

TRACK = {
    "id": "4uLU6hMCjMI75M1A2tKUQC",
    "name": "Northern Lights",
    "duration_ms": 201000,
    "artists": [{"name": "Ben Okafor"}, {"name": "Ada Lovelace"}],
    "album": {"name": "Northern Lights", "images": [{"url": "https://i.scdn.co/image/abc"}]},
    "external_urls": {"spotify": "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC"},
}


class Clock:
    def __init__(self):
        self.now = datetime(2026, 10, 19, 12, 0)

    def __call__(self):
        return self.now


def _service(handler, clock=None):
    credentials = CredentialCache(clock=clock or Clock())
    return SpotifyService(
        credentials=credentials,
        client_id="client",
        client_secret="secret",
        transport=httpx.MockTransport(handler),
    )


def test_search_track_by_isrc_uses_client_credentials():
    captured = {"token": 0, "search": []}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.spotify.com":
            captured["token"] += 1
            assert request.headers["Authorization"].startswith("Basic ")
            assert b"grant_type=client_credentials" in request.content
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        captured["search"].append(request)
        assert request.headers["Authorization"] == "Bearer tok"
        return httpx.Response(200, json={"tracks": {"items": [TRACK]}})

    service = _service(handler)
    result = asyncio.run(service.search_track_by_isrc(" usrc17607839 "))

    assert result == {
        "spotify_id": "4uLU6hMCjMI75M1A2tKUQC",
        "name": "Northern Lights",
        "album_name": "Northern Lights",
        "image_url": "https://i.scdn.co/image/abc",
        "artists": ["Ben Okafor", "Ada Lovelace"],
        "duration_ms": 201000,
        "external_url": "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC",
    }
    assert captured["token"] == 1
    assert captured["search"][0].url.params["q"] == "isrc:USRC17607839"


def test_results_are_cached_including_misses():
    calls = {"search": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.spotify.com":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        calls["search"] += 1
        return httpx.Response(200, json={"tracks": {"items": []}})

    clock = Clock()
    service = _service(handler, clock)

    async def scenario():
        first = await service.search_track_by_isrc("USRC17607839")
        second = await service.search_track_by_isrc("USRC17607839")
        clock.now += timedelta(hours=25)
        third = await service.search_track_by_isrc("USRC17607839")
        return first, second, third

    assert asyncio.run(scenario()) == (None, None, None)
    assert calls["search"] == 2


def test_rejected_token_is_refreshed_once():
    tokens = iter(["stale", "fresh"])
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "accounts.spotify.com":
            return httpx.Response(200, json={"access_token": next(tokens), "expires_in": 3600})
        seen.append(request.headers["Authorization"])
        if request.headers["Authorization"] == "Bearer stale":
            return httpx.Response(401, json={"error": {"status": 401}})
        return httpx.Response(200, json={"tracks": {"items": [TRACK]}})

    service = _service(handler)
    result = asyncio.run(service.search_track_by_isrc("USRC17607839"))

    assert result["spotify_id"] == TRACK["id"]
    assert seen == ["Bearer stale", "Bearer fresh"]


def test_auth_failure_raises_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_client"})

    service = _service(handler)

    with pytest.raises(ProviderError):
        asyncio.run(service.search_track_by_isrc("USRC17607839"))


def test_missing_credentials_raise_provider_error():
    service = SpotifyService(client_id="", client_secret="")

    assert not service.configured
    with pytest.raises(ProviderError, match="not configured"):
        asyncio.run(service.search_track_by_isrc("USRC17607839"))
