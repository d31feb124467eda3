"""Data models for the dependency resolver engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Provenance(str, enum.Enum):
    DIRECT = "direct"
    DEEP_RESOLVED = "deep-resolved"


@dataclass(frozen=True)
class ResolvedPackage:
    """A package pinned to a concrete lookup version.

    ``version_spec`` is what the synthetic audit manifest declares: the
    requested expression for direct packages, the concrete version for
    packages discovered by deep resolution.
    """

    name: str
    version: str
    provenance: Provenance
    version_spec: str = ""
    source: str | None = None

    @property
    def key(self) -> str:
        return package_key(self.name, self.version)


def package_key(name: str, version: str) -> str:
    """Identity key of a package within one resolution run."""
    return f"{name}@{version}"
