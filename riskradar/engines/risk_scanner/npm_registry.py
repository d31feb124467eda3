"""Thin async client for the public npm registry."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

REGISTRY_URL = "https://registry.npmjs.org"
PACKAGE_PAGE_URL = "https://www.npmjs.com/package/{name}"


def encode_package_name(name: str) -> str:
    """URL-encode a package name; scoped names keep their ``@``.

    ``@babel/core`` -> ``@babel%2Fcore``
    """
    return quote(name, safe="@")


def package_page_url(name: str) -> str:
    return PACKAGE_PAGE_URL.format(name=name)


class NpmRegistryClient:
    """Registry lookups over a caller-owned :class:`httpx.AsyncClient`."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = REGISTRY_URL) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def get_packument(self, name: str) -> dict[str, Any]:
        """GET /{name} — full metadata document for every published version.

        Raises ``httpx.HTTPStatusError`` on non-2xx and ``ValueError`` on a
        malformed payload.
        """
        data = await self._get_json(f"{self._base_url}/{encode_package_name(name)}")
        if not isinstance(data.get("versions"), dict):
            raise ValueError(f"packument for {name!r} has no versions map")
        return data

    async def get_dependencies(self, name: str, version: str) -> dict[str, str]:
        """GET /{name}/{version} — the ``dependencies`` declared by one version.

        *version* may also be a dist-tag such as ``latest``.
        """
        url = f"{self._base_url}/{encode_package_name(name)}/{quote(version, safe='')}"
        data = await self._get_json(url)
        deps = data.get("dependencies") or {}
        if not isinstance(deps, dict):
            raise ValueError(f"malformed dependencies for {name}@{version}")
        return deps

    async def _get_json(self, url: str) -> dict[str, Any]:
        resp = await self._client.get(url)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"unexpected payload from {url}")
        return data
