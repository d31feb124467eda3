"""Data models for the risk scanner engine.

Every entity is built and fully populated within one scan invocation and is
not mutated after it has been added to its parent collection.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

FindingSource = Literal["audit-tool", "vuln-db"]

SEVERITY_NONE = "None"
SEVERITY_UNKNOWN = "Unknown"


@dataclass
class VulnerabilityFinding:
    """One finding for one package name.

    Database findings carry no severity. An audit-tool finding is the
    tool's single per-package verdict, so its severity is always set.
    """

    source_kind: FindingSource
    identifier: str
    severity: str | None = None
    summary: str = ""
    reference_urls: list[str] = field(default_factory=list)


@dataclass
class SeverityTally:
    critical: int = 0
    high: int = 0
    moderate: int = 0
    low: int = 0
    total: int = 0


@dataclass
class AuditReport:
    """Aggregate counts plus one audit-tool finding per vulnerable package name."""

    tally: SeverityTally
    verdicts: dict[str, VulnerabilityFinding] = field(default_factory=dict)


@dataclass
class Person:
    """Author or maintainer identity as published on the registry."""

    name: str
    email: str | None = None
    url: str | None = None


@dataclass
class RegistryAnalysis:
    registry_page_url: str
    is_deprecated: bool = False
    deprecation_reason: str | None = None
    has_install_scripts: bool = False
    install_script_details: list[str] = field(default_factory=list)
    latest_version: str | None = None
    description: str | None = None
    author: Person | None = None
    maintainers: list[Person] = field(default_factory=list)
    repository_url: str | None = None
    maintainer_location: str | None = None


@dataclass
class PackageRiskRecord:
    name: str
    version: str
    source: str | None
    provenance: str
    vulnerability_count: int = 0
    highest_severity: str = SEVERITY_NONE
    is_deprecated: bool = False
    has_install_scripts: bool = False
    registry_page_url: str = ""
    maintainer_summary: str = ""
    issues: list[str] = field(default_factory=list)


@dataclass
class TargetReport:
    target_name: str
    file_path: str
    packages_scanned: int
    target_version: str | None = None
    description: str | None = None
    results: list[PackageRiskRecord] = field(default_factory=list)
    summary: SeverityTally = field(default_factory=SeverityTally)


@dataclass
class ScanReport:
    targets_scanned: int
    targets: list[TargetReport] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
