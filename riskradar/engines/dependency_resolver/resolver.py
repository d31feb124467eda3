"""Breadth-first transitive dependency resolver."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterable
from typing import Protocol

import structlog

from riskradar.engines.dependency_resolver.models import (
    Provenance,
    ResolvedPackage,
    package_key,
)
from riskradar.engines.dependency_resolver.version import normalize_version
from riskradar.engines.manifest_parser.models import PackageRequirement

log = structlog.get_logger("riskradar.engine")

_BATCH_SIZE = 25
_MAX_PACKAGES = 5000


class DependencyFetcher(Protocol):
    """Anything that can list the declared dependencies of ``name@version``."""

    async def get_dependencies(self, name: str, version: str) -> dict[str, str]: ...


async def resolve_deep(
    seeds: Iterable[PackageRequirement],
    fetcher: DependencyFetcher,
    *,
    max_packages: int = _MAX_PACKAGES,
    batch_size: int = _BATCH_SIZE,
) -> list[ResolvedPackage]:
    """Expand *seeds* into their deduplicated transitive closure.

    Iterative BFS over an explicit frontier: each round draws up to
    *batch_size* requirements, registers the ones whose ``name@version``
    identity is new, fetches their dependency lists concurrently, and only
    then enqueues the children (in batch order).  A node whose fetch fails
    is kept but its subtree is not explored.

    At most *max_packages* identities are ever queued or resolved; reaching
    the cap stops the traversal without raising.
    """
    frontier: deque[PackageRequirement] = deque()
    queued: set[str] = set()
    for req in seeds:
        frontier.append(req)
        queued.add(package_key(req.name, normalize_version(req.version_spec)))

    resolved: dict[str, ResolvedPackage] = {}
    cap_logged = False

    while frontier and len(resolved) < max_packages:
        batch = [frontier.popleft() for _ in range(min(batch_size, len(frontier)))]

        to_fetch: list[ResolvedPackage] = []
        for req in batch:
            version = normalize_version(req.version_spec)
            key = package_key(req.name, version)
            if key in resolved:
                continue
            if len(resolved) >= max_packages:
                break
            pkg = ResolvedPackage(
                name=req.name,
                version=version,
                provenance=Provenance.DEEP_RESOLVED,
                version_spec=version,
                source=req.source,
            )
            resolved[key] = pkg
            to_fetch.append(pkg)

        children = await asyncio.gather(*(_fetch_dependencies(fetcher, pkg) for pkg in to_fetch))

        for parent, deps in zip(to_fetch, children, strict=True):
            for dep_name, dep_spec in deps.items():
                dep_key = package_key(dep_name, normalize_version(dep_spec))
                if dep_key in resolved or dep_key in queued:
                    continue
                if len(queued) >= max_packages:
                    if not cap_logged:
                        log.warning("resolver.cap_reached", max_packages=max_packages)
                        cap_logged = True
                    break
                queued.add(dep_key)
                frontier.append(
                    PackageRequirement(
                        name=dep_name,
                        version_spec=dep_spec,
                        source=f"dependency of {parent.key}",
                    )
                )

    log.debug("resolver.done", resolved=len(resolved), pending=len(frontier))
    return list(resolved.values())


async def _fetch_dependencies(
    fetcher: DependencyFetcher,
    pkg: ResolvedPackage,
) -> dict[str, str]:
    """Fetch declared dependencies, returning ``{}`` on any failure."""
    try:
        deps = await fetcher.get_dependencies(pkg.name, pkg.version)
        return {name: spec for name, spec in deps.items() if isinstance(spec, str)}
    except Exception as exc:
        log.debug("resolver.fetch_failed", package=pkg.key, error=str(exc))
        return {}
