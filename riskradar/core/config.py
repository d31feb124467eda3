"""Scan configuration — explicit options with environment-variable fallbacks."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}

DEFAULT_HTTP_TIMEOUT = 15.0


@dataclass(frozen=True)
class ScanOptions:
    """Options consumed by the scan engine for one invocation."""

    github_token: str | None = None
    deep: bool = False
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(
        cls,
        *,
        github_token: str | None = None,
        deep: bool | None = None,
        http_timeout: float | None = None,
    ) -> ScanOptions:
        """Build options from keyword overrides, falling back to the environment.

        Reads:
            GITHUB_TOKEN / GH_TOKEN  — hosting-account API credential
            RISKRADAR_DEEP           — enable transitive resolution
            RISKRADAR_HTTP_TIMEOUT   — per-request timeout in seconds
        """
        if github_token is None:
            github_token = get_github_token()
        if deep is None:
            deep = os.environ.get("RISKRADAR_DEEP", "").strip().lower() in _TRUTHY
        if http_timeout is None:
            http_timeout = _env_float("RISKRADAR_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)
        return cls(github_token=github_token, deep=deep, http_timeout=http_timeout)


def get_github_token() -> str | None:
    """Read a GitHub token from the environment, if any."""
    token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    return token or None


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default
