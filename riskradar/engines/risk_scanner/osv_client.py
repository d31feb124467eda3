"""Batch queries against the OSV vulnerability database."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from riskradar.engines.dependency_resolver.models import ResolvedPackage
from riskradar.engines.dependency_resolver.version import LATEST
from riskradar.engines.risk_scanner.models import VulnerabilityFinding

log = structlog.get_logger("riskradar.engine")

OSV_QUERYBATCH_URL = "https://api.osv.dev/v1/querybatch"
ECOSYSTEM = "npm"

_BATCH_SIZE = 100

# Reference types listed first on a finding.
_REFERENCE_TYPES = frozenset({"ADVISORY", "WEB"})


def build_query(pkg: ResolvedPackage) -> dict[str, Any]:
    """One querybatch entry; the version is omitted for ``latest``."""
    query: dict[str, Any] = {"package": {"name": pkg.name, "ecosystem": ECOSYSTEM}}
    if pkg.version != LATEST:
        query["version"] = pkg.version
    return query


async def run_osv_scan(
    packages: list[ResolvedPackage],
    client: httpx.AsyncClient,
    *,
    url: str = OSV_QUERYBATCH_URL,
    batch_size: int = _BATCH_SIZE,
) -> dict[str, list[VulnerabilityFinding]]:
    """Query OSV for every package; returns ``{package.key: findings}``.

    Batches are sent one at a time.  ``results[i]`` of a response belongs
    to ``batch[i]`` of the request.  A failed batch contributes nothing.
    Packages without findings are absent from the result.
    """
    results: dict[str, list[VulnerabilityFinding]] = {}

    for start in range(0, len(packages), batch_size):
        batch = packages[start : start + batch_size]
        try:
            resp = await client.post(url, json={"queries": [build_query(p) for p in batch]})
            resp.raise_for_status()
            payload = resp.json()
            batch_results = payload.get("results") or []
            if not isinstance(batch_results, list):
                raise ValueError("results is not a list")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            log.warning(
                "osv.batch_failed",
                batch_start=start,
                batch_size=len(batch),
                error=str(exc),
            )
            continue

        for pkg, result in zip(batch, batch_results, strict=False):
            vulns = result.get("vulns") if isinstance(result, dict) else None
            if not vulns:
                continue
            findings = [_to_finding(v) for v in vulns if isinstance(v, dict) and v.get("id")]
            if findings:
                results.setdefault(pkg.key, []).extend(findings)

    return results


def _to_finding(vuln: dict[str, Any]) -> VulnerabilityFinding:
    return VulnerabilityFinding(
        source_kind="vuln-db",
        identifier=vuln["id"],
        severity=None,
        summary=vuln.get("summary") or vuln.get("details") or "Vulnerability",
        reference_urls=_reference_urls(vuln.get("references") or []),
    )


def _reference_urls(references: list[Any]) -> list[str]:
    """Every reference URL, advisory and web links first, otherwise in document order."""
    refs = [r for r in references if isinstance(r, dict) and r.get("url")]
    refs.sort(key=lambda r: r.get("type") not in _REFERENCE_TYPES)
    return [r["url"] for r in refs]
