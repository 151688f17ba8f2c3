"""npm registry client for deprecation and last-publish metadata.

A lookup that fails for any reason (HTTP error status, network failure,
malformed payload) yields no metadata for that package. The scan report
simply omits it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from rabbithole.age import format_age, is_stale
from rabbithole.config import DEFAULT_REGISTRY_URL
from rabbithole.models import RegistryMetadata

logger = logging.getLogger(__name__)

# Requests in flight at once
REGISTRY_BATCH_SIZE = 10


def package_path(name: str) -> str:
    """URL path for a package document. Scoped names are fully escaped."""
    return "/" + quote(name, safe="")


def resolve_last_publish_date(data: dict[str, Any]) -> str:
    """Publish time of the latest tagged version.

    Falls back to the document's "modified" time, and uses it directly when
    the registry reports no latest tag.
    """
    time_map = data.get("time")
    if not isinstance(time_map, dict):
        time_map = {}
    latest = _latest_version(data)
    if latest:
        return str(time_map.get(latest) or time_map.get("modified") or "")
    return str(time_map.get("modified") or "")


def resolve_deprecation(data: dict[str, Any]) -> str | bool:
    """Deprecation message of the latest version only, else False."""
    latest = _latest_version(data)
    versions = data.get("versions")
    if not latest or not isinstance(versions, dict):
        return False
    manifest = versions.get(latest)
    if not isinstance(manifest, dict):
        return False
    message = manifest.get("deprecated")
    if not message:
        return False
    return str(message)


def _latest_version(data: dict[str, Any]) -> str | None:
    tags = data.get("dist-tags")
    if not isinstance(tags, dict):
        return None
    latest = tags.get("latest")
    return str(latest) if latest else None


def build_metadata(
    name: str, data: dict[str, Any], now: datetime | None = None
) -> RegistryMetadata:
    """Turn a registry package document into RegistryMetadata."""
    last_publish = resolve_last_publish_date(data)
    return RegistryMetadata(
        name=name,
        deprecated=resolve_deprecation(data),
        last_publish_date=last_publish,
        last_publish_age=format_age(last_publish, now=now),
        is_stale=is_stale(last_publish, now=now),
    )


class RegistryClient:
    """Async client for the npm registry package endpoint.

    Example:
        client = RegistryClient()
        metadata = await client.fetch_many(["express", "left-pad"])
    """

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        now: datetime | None = None,
    ):
        """Initialize the registry client.

        Args:
            base_url: Registry root URL.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            now: Fixed reference time for age and staleness. Defaults to the clock.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.now = now

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )

    async def _fetch(self, client: httpx.AsyncClient, name: str) -> RegistryMetadata | None:
        try:
            resp = await client.get(package_path(name))
        except httpx.HTTPError as e:
            logger.debug("Registry lookup for %s failed: %s", name, e)
            return None

        if not resp.is_success:
            logger.debug("Registry returned %s for %s", resp.status_code, name)
            return None

        try:
            data = resp.json()
        except ValueError as e:
            logger.debug("Registry sent invalid JSON for %s: %s", name, e)
            return None

        if not isinstance(data, dict):
            logger.debug("Registry document for %s is not an object", name)
            return None

        return build_metadata(name, data, now=self.now)

    async def fetch_metadata(self, name: str) -> RegistryMetadata | None:
        """Look up a single package. Returns None if it cannot be resolved."""
        async with self._client() as client:
            return await self._fetch(client, name)

    async def fetch_many(self, names: list[str]) -> list[RegistryMetadata]:
        """Look up many packages, REGISTRY_BATCH_SIZE at a time.

        Packages that cannot be resolved are left out of the result.
        """
        if not names:
            return []

        results: list[RegistryMetadata] = []
        async with self._client() as client:
            for start in range(0, len(names), REGISTRY_BATCH_SIZE):
                batch = names[start : start + REGISTRY_BATCH_SIZE]
                fetched = await asyncio.gather(*(self._fetch(client, name) for name in batch))
                results.extend(m for m in fetched if m is not None)

        missing = len(names) - len(results)
        if missing:
            logger.info("No registry metadata for %d of %d packages", missing, len(names))
        return results


def get_multiple_package_metadata(
    names: list[str],
    base_url: str = DEFAULT_REGISTRY_URL,
    timeout: float = 10.0,
) -> list[RegistryMetadata]:
    """Blocking wrapper around RegistryClient.fetch_many for the CLI."""
    if not names:
        return []
    client = RegistryClient(base_url=base_url, timeout=timeout)
    return asyncio.run(client.fetch_many(names))
