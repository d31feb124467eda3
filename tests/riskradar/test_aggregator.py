"""Tests for merging source outputs into risk records and the per-target scan."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from riskradar.core.config import ScanOptions
from riskradar.engines.dependency_resolver.models import Provenance, ResolvedPackage
from riskradar.engines.dependency_resolver.version import LATEST
from riskradar.engines.manifest_parser.models import PackageRequirement, ScanTarget
from riskradar.engines.risk_scanner.aggregator import (
    build_target_report,
    format_maintainers,
    merge_package,
    prepare_packages,
    run_full_scan,
    scan_target,
    unique_packages,
)
from riskradar.engines.risk_scanner.errors import AuditError
from riskradar.engines.risk_scanner.models import (
    AuditReport,
    Person,
    RegistryAnalysis,
    SeverityTally,
    VulnerabilityFinding,
)

_AGG = "riskradar.engines.risk_scanner.aggregator"


# ── helpers ──────────────────────────────────────────────────────────────


def _pkg(
    name: str,
    version: str = "1.0.0",
    *,
    provenance: Provenance = Provenance.DIRECT,
    version_spec: str | None = None,
    source: str | None = "dependencies",
) -> ResolvedPackage:
    return ResolvedPackage(
        name=name,
        version=version,
        provenance=provenance,
        version_spec=version if version_spec is None else version_spec,
        source=source,
    )


def _finding(vid: str, summary: str = "Bad thing", urls: list[str] | None = None) -> VulnerabilityFinding:
    return VulnerabilityFinding(
        source_kind="vuln-db", identifier=vid, summary=summary, reference_urls=urls or []
    )


def _verdict(name: str, severity: str, urls: list[str] | None = None) -> VulnerabilityFinding:
    return VulnerabilityFinding(
        source_kind="audit-tool", identifier=name, severity=severity, reference_urls=urls or []
    )


def _analysis(name: str = "left-pad", **kwargs) -> RegistryAnalysis:
    return RegistryAnalysis(registry_page_url=f"https://www.npmjs.com/package/{name}", **kwargs)


def _target(*reqs: PackageRequirement, name: str = "demo-app") -> ScanTarget:
    return ScanTarget(target_name=name, file_path="package.json", packages=list(reqs))


def _patched_sources(*, audit=None, osv=None, registry=None):
    """Patch the three sources as seen from the aggregator."""
    return (
        patch(f"{_AGG}.run_dependency_audit", new_callable=AsyncMock, **_mock_kwargs(audit, None)),
        patch(f"{_AGG}.run_osv_scan", new_callable=AsyncMock, **_mock_kwargs(osv, {})),
        patch(f"{_AGG}.run_registry_scan", new_callable=AsyncMock, **_mock_kwargs(registry, {})),
    )


def _mock_kwargs(value, default):
    if isinstance(value, BaseException):
        return {"side_effect": value}
    return {"return_value": default if value is None else value}


# ── merge_package ────────────────────────────────────────────────────────


class TestMergePackage:
    def test_no_signals(self):
        record = merge_package(_pkg("a"), findings=[], verdict=None, analysis=None)

        assert record.vulnerability_count == 0
        assert record.highest_severity == "None"
        assert record.issues == []
        assert record.registry_page_url == ""
        assert record.maintainer_summary == ""

    def test_audit_severity_wins_over_database(self):
        record = merge_package(
            _pkg("a"),
            findings=[_finding("GHSA-1"), _finding("GHSA-2")],
            verdict=_verdict("a", "high"),
            analysis=None,
        )

        assert record.vulnerability_count == 3
        assert record.highest_severity == "high"

    def test_database_only_is_unknown(self):
        record = merge_package(_pkg("a"), findings=[_finding("GHSA-1")], verdict=None, analysis=None)

        assert record.vulnerability_count == 1
        assert record.highest_severity == "Unknown"

    def test_audit_only_counts_once(self):
        verdict = _verdict("a", "critical", ["u1", "u2"])
        record = merge_package(_pkg("a"), findings=[], verdict=verdict, analysis=None)

        assert record.vulnerability_count == 1
        assert record.highest_severity == "critical"
        assert record.issues == ["NPM Audit: critical severity.\n  Url: u1\n  Url: u2"]

    def test_issue_order_and_format(self):
        record = merge_package(
            _pkg("a"),
            findings=[
                _finding("GHSA-1", "Prototype pollution", ["https://a", "https://b"]),
                _finding("GHSA-2", ""),
            ],
            verdict=_verdict("a", "moderate"),
            analysis=_analysis(
                "a",
                is_deprecated=True,
                has_install_scripts=True,
                install_script_details=["preinstall: x", "postinstall: y"],
            ),
        )

        assert record.issues == [
            "OSV: GHSA-1 - Prototype pollution\n  Url: https://a",
            "OSV: GHSA-2 - Vulnerability",
            "NPM Audit: moderate severity.",
            "DEPRECATED: No reason provided",
            "RISKY SCRIPTS: Contains install scripts (preinstall: x, postinstall: y)",
        ]
        assert record.is_deprecated is True
        assert record.has_install_scripts is True

    def test_deprecation_reason_used(self):
        record = merge_package(
            _pkg("a"),
            findings=[],
            verdict=None,
            analysis=_analysis("a", is_deprecated=True, deprecation_reason="use b"),
        )
        assert record.issues == ["DEPRECATED: use b"]

    def test_record_shows_requested_spec(self):
        pkg = _pkg("a", "1.2.0", version_spec="^1.2.0", source="devDependencies")
        record = merge_package(pkg, findings=[], verdict=None, analysis=None)

        assert record.version == "^1.2.0"
        assert record.source == "devDependencies"
        assert record.provenance == "direct"

    def test_empty_spec_shows_normalized_version(self):
        pkg = _pkg("a", LATEST, version_spec="")
        record = merge_package(pkg, findings=[], verdict=None, analysis=None)
        assert record.version == LATEST


# ── format_maintainers ───────────────────────────────────────────────────


class TestFormatMaintainers:
    def test_full_summary(self):
        analysis = _analysis(
            author=Person("azer", "azer@roadbeats.com", "http://azer.bike"),
            maintainers=[Person("stevemao", "maochenyan@gmail.com"), Person("bob", None, "https://bob.dev")],
            repository_url="git+https://github.com/stevemao/left-pad.git",
            maintainer_location="Sydney",
        )

        assert format_maintainers(analysis) == (
            "Author: azer <azer@roadbeats.com> (http://azer.bike) [Sydney]\n"
            "Maintainers:\n"
            "  1. stevemao <maochenyan@gmail.com> (https://www.npmjs.com/~stevemao) [Sydney]\n"
            "  2. bob (https://bob.dev) [Sydney]\n"
            "Repo: https://github.com/stevemao/left-pad"
        )

    def test_nothing_known(self):
        assert format_maintainers(_analysis()) == ""

    def test_author_without_location(self):
        assert format_maintainers(_analysis(author=Person("jane"))) == "Author: jane"


# ── prepare_packages / build_target_report ───────────────────────────────


class TestPreparePackages:
    def test_normalizes_and_keeps_spec(self):
        pkgs = prepare_packages(
            [
                PackageRequirement("express", "^4.18.2", "dependencies"),
                PackageRequirement("jest", "*", "devDependencies"),
            ]
        )

        assert [(p.name, p.version, p.version_spec) for p in pkgs] == [
            ("express", "4.18.2", "^4.18.2"),
            ("jest", LATEST, "*"),
        ]
        assert all(p.provenance is Provenance.DIRECT for p in pkgs)

    def test_same_identity_keeps_every_row(self):
        pkgs = prepare_packages(
            [
                PackageRequirement("a", "1.0.0", "dependencies"),
                PackageRequirement("a", "1.0.0", "devDependencies"),
            ]
        )

        assert [(p.key, p.source) for p in pkgs] == [
            ("a@1.0.0", "dependencies"),
            ("a@1.0.0", "devDependencies"),
        ]

    def test_unique_packages_keeps_first_occurrence(self):
        pkgs = [_pkg("a", source="dependencies"), _pkg("b"), _pkg("a", source="devDependencies")]
        unique = unique_packages(pkgs)

        assert [(p.key, p.source) for p in unique] == [("a@1.0.0", "dependencies"), ("b@1.0.0", "dependencies")]


class TestBuildTargetReport:
    def test_tally_comes_from_audit_only(self):
        pkg = _pkg("a")
        tally = SeverityTally(low=2, total=2)
        report = build_target_report(
            _target(),
            [pkg],
            audit=AuditReport(tally=tally, verdicts={}),
            osv={pkg.key: [_finding("GHSA-1")]},
            registry={},
        )

        assert report.summary == tally
        assert report.results[0].vulnerability_count == 1
        assert report.packages_scanned == 1

    def test_missing_audit_gives_zero_tally(self):
        report = build_target_report(_target(), [_pkg("a")], audit=None, osv={}, registry={})
        assert report.summary == SeverityTally()

    def test_verdict_matched_by_name(self):
        pkgs = [_pkg("debug", "2.6.9"), _pkg("debug", "4.3.4")]
        audit = AuditReport(tally=SeverityTally(), verdicts={"debug": _verdict("debug", "low")})
        report = build_target_report(_target(), pkgs, audit=audit, osv={}, registry={})

        assert [r.highest_severity for r in report.results] == ["low", "low"]


# ── scan_target / run_full_scan ──────────────────────────────────────────


class TestScanTarget:
    @pytest.mark.anyio
    async def test_left_pad_scenario(self):
        pkg_key = "left-pad@1.3.0"
        audit = AuditReport(
            tally=SeverityTally(moderate=1, total=1),
            verdicts={"left-pad": _verdict("left-pad", "moderate")},
        )
        registry = {pkg_key: _analysis("left-pad", repository_url="https://github.com/stevemao/left-pad")}
        audit_p, osv_p, reg_p = _patched_sources(audit=audit, registry=registry)

        with audit_p, osv_p, reg_p:
            report = await scan_target(
                _target(PackageRequirement("left-pad", "1.3.0", "dependencies")),
                ScanOptions(),
            )

        assert report.packages_scanned == 1
        assert report.summary == SeverityTally(moderate=1, total=1)
        record = report.results[0]
        assert record.highest_severity == "moderate"
        assert record.vulnerability_count == 1
        assert record.is_deprecated is False
        assert record.issues == ["NPM Audit: moderate severity."]
        assert record.registry_page_url == "https://www.npmjs.com/package/left-pad"
        assert record.maintainer_summary == "Repo: https://github.com/stevemao/left-pad"

    @pytest.mark.anyio
    async def test_duplicate_rows_reported_once_each(self):
        audit = AuditReport(tally=SeverityTally(high=1, total=1), verdicts={"a": _verdict("a", "high")})
        audit_p, osv_p, reg_p = _patched_sources(
            audit=audit,
            osv={"a@1.0.0": [_finding("GHSA-1")]},
            registry={"a@1.0.0": _analysis("a")},
        )

        with audit_p as mock_audit, osv_p as mock_osv, reg_p as mock_registry:
            report = await scan_target(
                _target(
                    PackageRequirement("a", "1.0.0", "dependencies"),
                    PackageRequirement("a", "1.0.0", "devDependencies"),
                ),
                ScanOptions(),
            )

        queried = [p.key for p in mock_osv.call_args.args[0]]
        assert queried == ["a@1.0.0"]
        assert [p.key for p in mock_audit.call_args.args[0]] == queried
        assert [p.key for p in mock_registry.call_args.args[0]] == queried
        assert report.packages_scanned == 2
        assert [r.source for r in report.results] == ["dependencies", "devDependencies"]
        assert all(r.highest_severity == "high" for r in report.results)
        assert all(r.vulnerability_count == 2 for r in report.results)
        assert all(r.registry_page_url == "https://www.npmjs.com/package/a" for r in report.results)

    @pytest.mark.anyio
    async def test_failing_source_isolated(self):
        audit = AuditReport(
            tally=SeverityTally(high=1, total=1),
            verdicts={"a": _verdict("a", "high")},
        )
        audit_p, osv_p, reg_p = _patched_sources(
            audit=audit,
            osv=RuntimeError("osv down"),
            registry={"a@1.0.0": _analysis("a", is_deprecated=True)},
        )

        with audit_p, osv_p, reg_p:
            report = await scan_target(_target(PackageRequirement("a", "1.0.0")), ScanOptions())

        record = report.results[0]
        assert record.highest_severity == "high"
        assert record.vulnerability_count == 1
        assert record.is_deprecated is True

    @pytest.mark.anyio
    async def test_audit_error_leaves_zero_tally(self):
        audit_p, osv_p, reg_p = _patched_sources(
            audit=AuditError("garbage"),
            osv={"a@1.0.0": [_finding("GHSA-9")]},
        )

        with audit_p, osv_p, reg_p:
            report = await scan_target(_target(PackageRequirement("a", "1.0.0")), ScanOptions())

        assert report.summary == SeverityTally()
        assert report.results[0].highest_severity == "Unknown"

    @pytest.mark.anyio
    async def test_deep_mode_uses_resolver(self):
        resolved = [
            _pkg("a", provenance=Provenance.DEEP_RESOLVED),
            _pkg("b", "2.0.0", provenance=Provenance.DEEP_RESOLVED, source="dependency of a@1.0.0"),
        ]
        audit_p, osv_p, reg_p = _patched_sources()

        with audit_p, osv_p as mock_osv, reg_p, patch(
            f"{_AGG}.resolve_deep", new_callable=AsyncMock, return_value=resolved
        ) as mock_resolve:
            report = await scan_target(_target(PackageRequirement("a", "^1.0.0")), ScanOptions(deep=True))

        mock_resolve.assert_awaited_once()
        assert mock_osv.call_args.args[0] == resolved
        assert report.packages_scanned == 2
        assert [r.provenance for r in report.results] == ["deep-resolved", "deep-resolved"]
        assert report.results[1].source == "dependency of a@1.0.0"

    @pytest.mark.anyio
    async def test_direct_mode_skips_resolver(self):
        audit_p, osv_p, reg_p = _patched_sources()

        with audit_p, osv_p, reg_p, patch(f"{_AGG}.resolve_deep", new_callable=AsyncMock) as mock_resolve:
            report = await scan_target(_target(PackageRequirement("a", "^1.0.0")), ScanOptions())

        mock_resolve.assert_not_called()
        assert report.results[0].provenance == "direct"


class TestRunFullScan:
    @pytest.mark.anyio
    async def test_targets_in_order(self):
        audit_p, osv_p, reg_p = _patched_sources()
        targets = [
            _target(PackageRequirement("a", "1.0.0"), name="first"),
            _target(name="empty"),
            _target(PackageRequirement("b", "1.0.0"), name="third"),
        ]

        with audit_p, osv_p, reg_p:
            report = await run_full_scan(targets, ScanOptions())

        assert report.targets_scanned == 3
        assert [t.target_name for t in report.targets] == ["first", "empty", "third"]
        assert report.targets[1].packages_scanned == 0
        assert report.targets[1].results == []

    @pytest.mark.anyio
    async def test_to_dict(self):
        audit_p, osv_p, reg_p = _patched_sources()

        with audit_p, osv_p, reg_p:
            report = await run_full_scan([_target(PackageRequirement("a", "1.0.0"))], ScanOptions())

        data = report.to_dict()
        assert data["targets_scanned"] == 1
        assert data["targets"][0]["results"][0]["name"] == "a"
        assert data["targets"][0]["summary"]["total"] == 0
