"""Data models for the manifest parser engine."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PackageRequirement:
    """A single requested package, as declared by an input file."""

    name: str
    version_spec: str  # concrete version, semver range, dist-tag, or ""
    source: str | None = None  # e.g. "dependencies", "Row 3"


@dataclass
class ScanTarget:
    """One scanned unit: a manifest, a CSV file, or one archive entry."""

    target_name: str
    file_path: str
    packages: list[PackageRequirement] = field(default_factory=list)
    target_version: str | None = None
    description: str | None = None
