# app/services/builder.py — Build service contract and implementations

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Protocol

import httpx

from app.config import get_settings
from app.models.submission import BuildConfig

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    binary_url: str
    assets: list[str] = field(default_factory=list)


class Builder(Protocol):
    async def build(self, repository_url: str, build_config: BuildConfig | None) -> BuildResult:
        """Clone, build and package the repository; return the artifact URL and asset URLs."""
        ...


class PlaceholderBuilder:
    """
    In-process stand-in for the build service. Performs no work and
    returns the configured artifact URL and assets.
    """

    def __init__(self, binary_url: str = "placeholder", assets: list[str] | None = None):
        self.binary_url = binary_url
        self.assets = list(assets or [])

    async def build(self, repository_url: str, build_config: BuildConfig | None) -> BuildResult:
        logger.info("Placeholder build", extra={"repository_url": repository_url})
        return BuildResult(binary_url=self.binary_url, assets=list(self.assets))


class HttpBuilder:
    """Delegates the build to an external HTTP build service."""

    def __init__(self, api_url: str, api_key: str | None = None, timeout_seconds: float = 300.0):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds

    async def build(self, repository_url: str, build_config: BuildConfig | None) -> BuildResult:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            response = await client.post(
                f"{self.api_url}/builds",
                headers=headers,
                json={
                    "repository_url": repository_url,
                    "build_config": build_config.model_dump(exclude_none=True) if build_config else None,
                },
            )
            response.raise_for_status()
            body: dict[str, Any] = response.json()

        binary_url = body.get("binary_url")
        if not binary_url:
            raise RuntimeError("Build service response missing binary_url")
        assets = body.get("assets") or []
        return BuildResult(binary_url=binary_url, assets=[str(asset) for asset in assets])


def get_builder() -> Builder:
    settings = get_settings()
    if settings.builder_api_url:
        return HttpBuilder(
            settings.builder_api_url,
            api_key=settings.builder_api_key,
            timeout_seconds=settings.builder_timeout_seconds,
        )
    logger.warning("BUILDER_API_URL not configured; using placeholder builder")
    return PlaceholderBuilder(binary_url=settings.placeholder_binary_url)
