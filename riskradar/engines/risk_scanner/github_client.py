"""Async GitHub API client for account-location lookups."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from riskradar.engines.risk_scanner.errors import RateLimitError

log = structlog.get_logger("riskradar.engine")

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_RATE_LIMIT_STATUSES = frozenset({403, 429})

USER_AGENT = "riskradar-security-scanner"


class GitHubClient:
    """Thin async wrapper around the GitHub REST ``/users`` endpoint.

    Unlike a general-purpose client this one never waits out a rate limit:
    a 403/429 raises :class:`RateLimitError` immediately so the caller can
    stop asking.
    """

    def __init__(self, token: str | None = None, timeout: float = 10.0) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url="https://api.github.com",
            headers=headers,
            timeout=timeout,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_user_location(self, login: str) -> str | None:
        """Return the self-declared ``location`` of a user or organization.

        Returns None when the account does not exist or declares nothing.
        Raises :class:`RateLimitError` on 403/429 and ``httpx.HTTPError`` on
        other failures once retries are exhausted.
        """
        resp = await self._request_with_retry(f"/users/{login}")
        if resp.status_code == 404:
            return None
        data: Any = resp.json()
        if not isinstance(data, dict):
            return None
        location = data.get("location")
        if isinstance(location, str) and location.strip():
            return location.strip()
        return None

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(self, url: str) -> httpx.Response:
        """GET with exponential backoff on 5xx and timeout errors."""
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.get(url)

                if resp.status_code in _RATE_LIMIT_STATUSES:
                    raise RateLimitError(resp.status_code)

                if resp.status_code == 404:
                    return resp

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "github.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]
