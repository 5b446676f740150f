from __future__ import annotations

import json

import httpx
import pytest

from app.config import get_settings
from app.models.submission import BuildConfig
from app.services import builder as builder_module
from app.services.builder import BuildResult, HttpBuilder, PlaceholderBuilder, get_builder


def _patch_transport(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    real_async_client = httpx.AsyncClient

    def _client(**kwargs):
        return real_async_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(builder_module.httpx, "AsyncClient", _client)


@pytest.mark.asyncio
async def test_placeholder_builder_returns_configured_result():
    builder = PlaceholderBuilder(binary_url="https://cdn/bin", assets=["https://cdn/shot.png"])

    result = await builder.build("https://github.com/a/b", None)

    assert result == BuildResult(binary_url="https://cdn/bin", assets=["https://cdn/shot.png"])


@pytest.mark.asyncio
async def test_http_builder_posts_repository_and_config(monkeypatch: pytest.MonkeyPatch):
    captured: dict = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"binary_url": "https://cdn/bin", "assets": ["https://cdn/a.png"]})

    _patch_transport(monkeypatch, _handler)
    builder = HttpBuilder("https://builds.example.com/", api_key="secret")

    result = await builder.build("https://github.com/a/b", BuildConfig(build_command="npm run build"))

    assert result.binary_url == "https://cdn/bin"
    assert result.assets == ["https://cdn/a.png"]
    assert captured["url"] == "https://builds.example.com/builds"
    assert captured["auth"] == "Bearer secret"
    assert captured["body"] == {
        "repository_url": "https://github.com/a/b",
        "build_config": {"build_command": "npm run build"},
    }


@pytest.mark.asyncio
async def test_http_builder_raises_on_error_status(monkeypatch: pytest.MonkeyPatch):
    _patch_transport(monkeypatch, lambda _request: httpx.Response(500, json={"error": "boom"}))

    with pytest.raises(httpx.HTTPStatusError):
        await HttpBuilder("https://builds.example.com").build("https://github.com/a/b", None)


@pytest.mark.asyncio
async def test_http_builder_requires_binary_url(monkeypatch: pytest.MonkeyPatch):
    _patch_transport(monkeypatch, lambda _request: httpx.Response(200, json={"assets": []}))

    with pytest.raises(RuntimeError, match="missing binary_url"):
        await HttpBuilder("https://builds.example.com").build("https://github.com/a/b", None)


def test_get_builder_uses_placeholder_without_build_service(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("BUILDER_API_URL", raising=False)
    get_settings.cache_clear()
    try:
        assert isinstance(get_builder(), PlaceholderBuilder)
    finally:
        get_settings.cache_clear()


def test_get_builder_uses_http_builder_when_configured(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUILDER_API_URL", "https://builds.example.com")
    monkeypatch.setenv("BUILDER_TIMEOUT_SECONDS", "30")
    get_settings.cache_clear()
    try:
        builder = get_builder()
    finally:
        get_settings.cache_clear()

    assert isinstance(builder, HttpBuilder)
    assert builder.timeout_seconds == 30.0
