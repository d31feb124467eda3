"""Aggregator — run every source per target and merge into risk records."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import httpx
import structlog

from riskradar.core.config import ScanOptions
from riskradar.core.github import clean_repo_url
from riskradar.engines.dependency_resolver.models import Provenance, ResolvedPackage
from riskradar.engines.dependency_resolver.resolver import resolve_deep
from riskradar.engines.dependency_resolver.version import normalize_version
from riskradar.engines.manifest_parser.models import PackageRequirement, ScanTarget
from riskradar.engines.risk_scanner.github_client import USER_AGENT, GitHubClient
from riskradar.engines.risk_scanner.models import (
    SEVERITY_UNKNOWN,
    AuditReport,
    PackageRiskRecord,
    RegistryAnalysis,
    ScanReport,
    SeverityTally,
    TargetReport,
    VulnerabilityFinding,
)
from riskradar.engines.risk_scanner.npm_audit import run_dependency_audit
from riskradar.engines.risk_scanner.npm_registry import NpmRegistryClient
from riskradar.engines.risk_scanner.osv_client import run_osv_scan
from riskradar.engines.risk_scanner.registry_scan import run_registry_scan

log = structlog.get_logger("riskradar.engine")

NPM_PROFILE_URL = "https://www.npmjs.com/~{name}"


async def run_full_scan(
    targets: list[ScanTarget],
    options: ScanOptions | None = None,
) -> ScanReport:
    """Scan every target in order; one TargetReport is finished before the next starts."""
    options = options or ScanOptions.from_env()
    report = ScanReport(targets_scanned=len(targets))
    for target in targets:
        report.targets.append(await scan_target(target, options))
    return report


async def scan_target(
    target: ScanTarget,
    options: ScanOptions,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> TargetReport:
    """Resolve (optionally), query all sources concurrently, and merge.

    Each source fails independently: an exception from one is logged and
    that source simply contributes no data.
    """
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(
        timeout=options.http_timeout,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
    )
    github = GitHubClient(token=options.github_token, timeout=options.http_timeout)
    try:
        registry = NpmRegistryClient(client)
        if options.deep:
            packages = await resolve_deep(target.packages, registry)
            log.info(
                "scan.deep_resolved",
                target=target.target_name,
                direct=len(target.packages),
                resolved=len(packages),
            )
        else:
            packages = prepare_packages(target.packages)

        queried = unique_packages(packages)
        results = await asyncio.gather(
            run_dependency_audit(queried),
            run_osv_scan(queried, client),
            run_registry_scan(queried, registry, github),
            return_exceptions=True,
        )
    finally:
        await github.close()
        if owns_client:
            await client.aclose()

    audit, osv, registry_results = _unwrap_sources(target, results)
    return build_target_report(
        target,
        packages,
        audit=audit,
        osv=osv or {},
        registry=registry_results or {},
    )


def _unwrap_sources(target: ScanTarget, results: list) -> list:
    unwrapped = []
    for name, result in zip(("audit", "osv", "registry"), results, strict=True):
        if isinstance(result, Exception):
            log.error(
                "scan.source_failed",
                source=name,
                target=target.target_name,
                error=f"{type(result).__name__}: {result}",
            )
            unwrapped.append(None)
        elif isinstance(result, BaseException):
            raise result
        else:
            unwrapped.append(result)
    return unwrapped


def prepare_packages(requirements: Iterable[PackageRequirement]) -> list[ResolvedPackage]:
    """Pin direct requirements without traversal, one entry per requirement.

    Requirements that normalize to the same identity are all kept so the
    report has a row for each of them; see :func:`unique_packages`.
    """
    return [
        ResolvedPackage(
            name=req.name,
            version=normalize_version(req.version_spec),
            provenance=Provenance.DIRECT,
            version_spec=req.version_spec,
            source=req.source,
        )
        for req in requirements
    ]


def unique_packages(packages: Iterable[ResolvedPackage]) -> list[ResolvedPackage]:
    """First occurrence of each ``name@version``; this is what the sources are asked about."""
    unique: dict[str, ResolvedPackage] = {}
    for pkg in packages:
        unique.setdefault(pkg.key, pkg)
    return list(unique.values())


def build_target_report(
    target: ScanTarget,
    packages: list[ResolvedPackage],
    *,
    audit: AuditReport | None,
    osv: dict[str, list[VulnerabilityFinding]],
    registry: dict[str, RegistryAnalysis],
) -> TargetReport:
    """Merge completed source maps into a TargetReport (pure, no I/O).

    The severity tally comes from the audit tool only.
    """
    report = TargetReport(
        target_name=target.target_name,
        file_path=target.file_path,
        packages_scanned=len(packages),
        target_version=target.target_version,
        description=target.description,
        summary=audit.tally if audit is not None else SeverityTally(),
    )
    for pkg in packages:
        report.results.append(
            merge_package(
                pkg,
                findings=osv.get(pkg.key, []),
                verdict=audit.verdicts.get(pkg.name) if audit is not None else None,
                analysis=registry.get(pkg.key),
            )
        )
    return report


def merge_package(
    pkg: ResolvedPackage,
    *,
    findings: list[VulnerabilityFinding],
    verdict: VulnerabilityFinding | None,
    analysis: RegistryAnalysis | None,
) -> PackageRiskRecord:
    """Merge one package's source outputs into a PackageRiskRecord.

    Severity precedence: audit-tool verdict, then ``"Unknown"`` if the
    database found something, else ``"None"``.  The audit tool contributes
    at most one to the count.
    """
    record = PackageRiskRecord(
        name=pkg.name,
        version=pkg.version_spec or pkg.version,
        source=pkg.source,
        provenance=pkg.provenance.value,
    )

    for finding in findings:
        line = f"OSV: {finding.identifier} - {finding.summary or 'Vulnerability'}"
        if finding.reference_urls:
            line += f"\n  Url: {finding.reference_urls[0]}"
        record.issues.append(line)
    if findings:
        record.vulnerability_count += len(findings)
        record.highest_severity = SEVERITY_UNKNOWN

    if verdict is not None:
        line = f"NPM Audit: {verdict.severity} severity."
        for url in verdict.reference_urls:
            line += f"\n  Url: {url}"
        record.issues.append(line)
        record.vulnerability_count += 1
        record.highest_severity = verdict.severity or SEVERITY_UNKNOWN

    if analysis is not None:
        if analysis.is_deprecated:
            record.is_deprecated = True
            record.issues.append(
                f"DEPRECATED: {analysis.deprecation_reason or 'No reason provided'}"
            )
        if analysis.has_install_scripts:
            record.has_install_scripts = True
            record.issues.append(
                "RISKY SCRIPTS: Contains install scripts "
                f"({', '.join(analysis.install_script_details)})"
            )
        record.registry_page_url = analysis.registry_page_url
        record.maintainer_summary = format_maintainers(analysis)

    return record


def format_maintainers(analysis: RegistryAnalysis) -> str:
    """Author, numbered maintainers, and cleaned repository URL, one per line."""
    location = f" [{analysis.maintainer_location}]" if analysis.maintainer_location else ""
    lines: list[str] = []

    if analysis.author is not None:
        a = analysis.author
        email = f" <{a.email}>" if a.email else ""
        url = f" ({a.url})" if a.url else ""
        lines.append(f"Author: {a.name}{email}{url}{location}")

    if analysis.maintainers:
        entries = []
        for i, m in enumerate(analysis.maintainers, 1):
            email = f" <{m.email}>" if m.email else ""
            url = m.url or NPM_PROFILE_URL.format(name=m.name)
            entries.append(f"{i}. {m.name}{email} ({url}){location}")
        lines.append("Maintainers:\n  " + "\n  ".join(entries))

    if analysis.repository_url:
        lines.append(f"Repo: {clean_repo_url(analysis.repository_url)}")

    return "\n".join(lines)
