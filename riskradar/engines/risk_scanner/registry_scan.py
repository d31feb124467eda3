"""Registry metadata scan — deprecation, install scripts, maintainers, location."""

from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx
import structlog

from riskradar.core.github import extract_github_owner
from riskradar.engines.dependency_resolver.models import ResolvedPackage
from riskradar.engines.dependency_resolver.version import LATEST
from riskradar.engines.risk_scanner.errors import RateLimitError
from riskradar.engines.risk_scanner.github_client import GitHubClient
from riskradar.engines.risk_scanner.models import Person, RegistryAnalysis
from riskradar.engines.risk_scanner.npm_registry import NpmRegistryClient, package_page_url

log = structlog.get_logger("riskradar.engine")

RISKY_SCRIPTS = ("preinstall", "install", "postinstall")

_MAX_CONCURRENCY = 10

# npm "person" shorthand: "Name <email> (url)"
_PERSON_RE = re.compile(r"^\s*([^<(]*?)\s*(?:<([^>]*)>)?\s*(?:\(([^)]*)\))?\s*$")


class LocationResolver:
    """Account-location lookups for one registry scan.

    Lookups are serialized; each account is queried at most once.  The first
    rate-limit rejection trips :attr:`rate_limited`, after which every call
    returns None without touching the network.
    """

    def __init__(self, github: GitHubClient) -> None:
        self._github = github
        self._cache: dict[str, str | None] = {}
        self._lock = asyncio.Lock()
        self.rate_limited = False
        self.lookups = 0

    async def resolve(self, repo_url: str | None) -> str | None:
        owner = extract_github_owner(repo_url)
        if owner is None:
            return None
        account = owner.lower()

        async with self._lock:
            if self.rate_limited:
                return None
            if account in self._cache:
                return self._cache[account]

            self.lookups += 1
            try:
                location = await self._github.get_user_location(owner)
            except RateLimitError as exc:
                self.rate_limited = True
                log.warning(
                    "github.rate_limited",
                    account=owner,
                    status=exc.status_code,
                    detail="location lookups suspended for this scan",
                )
                return None
            except (httpx.HTTPError, ValueError) as exc:
                log.debug("github.location_failed", account=owner, error=str(exc))
                location = None

            self._cache[account] = location
            return location


class RegistryScanner:
    """Per-target registry scan; owns the location cache and circuit breaker."""

    def __init__(
        self,
        registry: NpmRegistryClient,
        github: GitHubClient | None = None,
        *,
        concurrency: int = _MAX_CONCURRENCY,
    ) -> None:
        self._registry = registry
        self._sem = asyncio.Semaphore(concurrency)
        self.locations = LocationResolver(github) if github is not None else None

    async def scan(self, packages: list[ResolvedPackage]) -> dict[str, RegistryAnalysis]:
        """Analyze every package; returns ``{package.key: RegistryAnalysis}``.

        The packument of each name is fetched once and shared by all of that
        name's versions.  Packages whose metadata cannot be fetched are
        absent from the result.
        """
        by_name: dict[str, list[ResolvedPackage]] = {}
        for pkg in packages:
            by_name.setdefault(pkg.name, []).append(pkg)

        per_name = await asyncio.gather(
            *(self._scan_name(name, versions) for name, versions in by_name.items())
        )

        results: dict[str, RegistryAnalysis] = {}
        for analyses in per_name:
            results.update(analyses)
        return results

    async def _scan_name(
        self,
        name: str,
        packages: list[ResolvedPackage],
    ) -> dict[str, RegistryAnalysis]:
        async with self._sem:
            try:
                packument = await self._registry.get_packument(name)
            except (httpx.HTTPError, ValueError) as exc:
                log.warning("registry.fetch_failed", package=name, error=str(exc))
                return {}

        results: dict[str, RegistryAnalysis] = {}
        for pkg in packages:
            try:
                analysis = analyze_packument(pkg, packument)
            except (AttributeError, TypeError, ValueError) as exc:
                log.warning("registry.malformed", package=pkg.key, error=str(exc))
                continue
            if analysis is None:
                log.warning("registry.version_missing", package=pkg.key)
                continue
            if self.locations is not None and analysis.repository_url:
                analysis.maintainer_location = await self.locations.resolve(
                    analysis.repository_url
                )
            results[pkg.key] = analysis
        return results


async def run_registry_scan(
    packages: list[ResolvedPackage],
    registry: NpmRegistryClient,
    github: GitHubClient | None = None,
) -> dict[str, RegistryAnalysis]:
    """Run one registry scan with fresh location state."""
    return await RegistryScanner(registry, github).scan(packages)


# ── extraction ────────────────────────────────────────────────────────────


def analyze_packument(pkg: ResolvedPackage, packument: dict[str, Any]) -> RegistryAnalysis | None:
    """Extract risk signals from a packument for one resolved version.

    Uses the requested version's record when the registry has it, otherwise
    the ``latest`` dist-tag.  Returns None if neither record exists.
    """
    versions = packument.get("versions")
    if not isinstance(versions, dict):
        versions = {}
    dist_tags = packument.get("dist-tags")
    latest = dist_tags.get("latest") if isinstance(dist_tags, dict) else None

    selected = pkg.version if pkg.version != LATEST and pkg.version in versions else latest
    version_data = versions.get(selected) if selected else None
    if not isinstance(version_data, dict):
        return None

    deprecated = version_data.get("deprecated")
    scripts = version_data.get("scripts")
    if not isinstance(scripts, dict):
        scripts = {}
    found_scripts = [s for s in RISKY_SCRIPTS if scripts.get(s)]

    maintainers = [p for p in map(parse_person, packument.get("maintainers") or []) if p]

    return RegistryAnalysis(
        registry_page_url=package_page_url(pkg.name),
        is_deprecated=bool(deprecated),
        deprecation_reason=deprecated if isinstance(deprecated, str) and deprecated else None,
        has_install_scripts=bool(found_scripts),
        install_script_details=[f"{s}: {scripts[s]}" for s in found_scripts],
        latest_version=latest,
        description=packument.get("description") or version_data.get("description"),
        author=parse_person(version_data.get("author")) or parse_person(packument.get("author")),
        maintainers=maintainers,
        repository_url=_repository_url(version_data.get("repository"))
        or _repository_url(packument.get("repository")),
    )


def parse_person(value: Any) -> Person | None:
    """Parse an npm person field (object or ``"Name <email> (url)"`` string)."""
    if isinstance(value, dict):
        name = value.get("name")
        if not name:
            return None
        return Person(name=name, email=value.get("email") or None, url=value.get("url") or None)
    if isinstance(value, str) and value.strip():
        m = _PERSON_RE.match(value)
        if m and m.group(1):
            return Person(name=m.group(1), email=m.group(2) or None, url=m.group(3) or None)
        return Person(name=value.strip())
    return None


def _repository_url(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("url")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
