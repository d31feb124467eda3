"""npm audit driver — lock a synthetic manifest in a scratch dir and audit it."""

from __future__ import annotations

import asyncio
import json
import shutil
import tempfile
from pathlib import Path
from typing import Any

import structlog

from riskradar.engines.dependency_resolver.models import ResolvedPackage
from riskradar.engines.dependency_resolver.version import LATEST
from riskradar.engines.risk_scanner.errors import AuditError
from riskradar.engines.risk_scanner.models import (
    AuditReport,
    SeverityTally,
    VulnerabilityFinding,
)

log = structlog.get_logger("riskradar.engine")

SYNTHETIC_PACKAGE_NAME = "riskradar-synthetic-audit-target"

# Resolve a lockfile only: no node_modules, no lifecycle scripts.
_LOCK_ARGS = [
    "install",
    "--package-lock-only",
    "--ignore-scripts",
    "--legacy-peer-deps",
    "--force",
    "--no-audit",
    "--no-fund",
]
_AUDIT_ARGS = ["audit", "--json"]

_TIMEOUT = 300.0  # seconds, per npm invocation

_SEVERITY_RANK = {"info": 0, "low": 1, "moderate": 2, "high": 3, "critical": 4}


def build_manifest(packages: list[ResolvedPackage]) -> dict[str, Any]:
    """Synthetic package.json declaring every package as a direct dependency."""
    return {
        "name": SYNTHETIC_PACKAGE_NAME,
        "version": "1.0.0",
        "private": True,
        "dependencies": {p.name: p.version_spec or LATEST for p in packages},
    }


async def run_dependency_audit(
    packages: list[ResolvedPackage],
    *,
    npm: str | None = None,
    timeout: float = _TIMEOUT,
) -> AuditReport | None:
    """Audit *packages* with the local npm CLI.

    Returns None when there is nothing to audit, when npm is not installed,
    or when the dependency tree cannot be locked (conflicting constraints);
    these are recoverable and only logged.

    ``npm audit`` exits non-zero when it finds vulnerabilities, so its
    output is parsed whatever the exit code.  Raises :class:`AuditError`
    only if that output is unusable.

    The scratch directory is removed on every exit path.
    """
    if not packages:
        return None
    npm = npm or shutil.which("npm") or "npm"

    with tempfile.TemporaryDirectory(prefix="riskradar-audit-") as tmpdir:
        workdir = Path(tmpdir)
        (workdir / "package.json").write_text(
            json.dumps(build_manifest(packages), indent=2), encoding="utf-8"
        )

        try:
            code, _, stderr = await _run([npm, *_LOCK_ARGS], workdir, timeout)
        except FileNotFoundError:
            log.warning("audit.npm_missing", npm=npm)
            return None
        except asyncio.TimeoutError:
            log.warning("audit.lock_failed", reason="timeout", timeout=timeout)
            return None
        if code != 0:
            log.warning(
                "audit.lock_failed",
                exit_code=code,
                detail="could not resolve dependency tree; audit skipped",
                stderr=stderr.strip()[-500:],
            )
            return None

        try:
            code, stdout, stderr = await _run([npm, *_AUDIT_ARGS], workdir, timeout)
        except (FileNotFoundError, asyncio.TimeoutError) as exc:
            raise AuditError(f"npm audit failed: {type(exc).__name__}") from exc

    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise AuditError(
            f"npm audit (exit {code}) produced unparsable output: {stderr.strip()[-200:]}"
        ) from exc
    return parse_audit_output(data)


def parse_audit_output(data: Any) -> AuditReport:
    """Convert ``npm audit --json`` output (npm 7+ or legacy npm 6) to an AuditReport."""
    if not isinstance(data, dict):
        raise AuditError("npm audit output is not a JSON object")
    if "error" in data and "vulnerabilities" not in data and "advisories" not in data:
        error = data["error"]
        summary = error.get("summary") if isinstance(error, dict) else error
        raise AuditError(f"npm audit reported an error: {summary}")

    if isinstance(data.get("advisories"), dict):
        verdicts = _legacy_verdicts(data["advisories"])
    else:
        verdicts = _verdicts(data.get("vulnerabilities") or {})

    return AuditReport(tally=_tally(data.get("metadata") or {}), verdicts=verdicts)


def _finding(name: str, severity: str, summary: str = "") -> VulnerabilityFinding:
    return VulnerabilityFinding(
        source_kind="audit-tool", identifier=name, severity=severity, summary=summary
    )


def _verdicts(vulnerabilities: dict[str, Any]) -> dict[str, VulnerabilityFinding]:
    verdicts: dict[str, VulnerabilityFinding] = {}
    for name, entry in vulnerabilities.items():
        if not isinstance(entry, dict) or not entry.get("severity"):
            continue
        # Advisory objects carry url/title; bare strings name the dependency it came through.
        advisories = [v for v in entry.get("via") or [] if isinstance(v, dict)]
        finding = _finding(
            name,
            str(entry["severity"]).lower(),
            next((str(a["title"]) for a in advisories if a.get("title")), ""),
        )
        for advisory in advisories:
            url = advisory.get("url")
            if url and url not in finding.reference_urls:
                finding.reference_urls.append(url)
        verdicts[name] = finding
    return verdicts


def _legacy_verdicts(advisories: dict[str, Any]) -> dict[str, VulnerabilityFinding]:
    """npm 6 reports one advisory per id; keep the worst severity per module."""
    verdicts: dict[str, VulnerabilityFinding] = {}
    for advisory in advisories.values():
        if not isinstance(advisory, dict):
            continue
        name = advisory.get("module_name")
        severity = str(advisory.get("severity") or "").lower()
        if not name or not severity:
            continue
        url = advisory.get("url")
        current = verdicts.get(name)
        if current is None:
            current = verdicts[name] = _finding(name, severity, advisory.get("title") or "")
        elif _SEVERITY_RANK.get(severity, 0) > _SEVERITY_RANK.get(current.severity or "", 0):
            current.severity = severity
        if url and url not in current.reference_urls:
            current.reference_urls.append(url)
    return verdicts


def _tally(metadata: dict[str, Any]) -> SeverityTally:
    counts = metadata.get("vulnerabilities") or {}
    tally = SeverityTally(
        critical=_int(counts.get("critical")),
        high=_int(counts.get("high")),
        moderate=_int(counts.get("moderate")),
        low=_int(counts.get("low")),
    )
    total = counts.get("total")
    tally.total = (
        _int(total)
        if total is not None
        else tally.critical + tally.high + tally.moderate + tally.low + _int(counts.get("info"))
    )
    return tally


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


async def _run(cmd: list[str], cwd: Path, timeout: float) -> tuple[int, str, str]:
    """Run a command, returning ``(exit_code, stdout, stderr)``.

    Kills the process and re-raises ``asyncio.TimeoutError`` on timeout.
    """
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=str(cwd),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise
    return (
        proc.returncode if proc.returncode is not None else -1,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )
