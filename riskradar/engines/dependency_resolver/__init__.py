"""Dependency resolver engine — expand package lists into their transitive closure."""

from riskradar.engines.dependency_resolver.models import Provenance, ResolvedPackage, package_key
from riskradar.engines.dependency_resolver.resolver import DependencyFetcher, resolve_deep
from riskradar.engines.dependency_resolver.version import LATEST, normalize_version

__all__ = [
    "LATEST",
    "DependencyFetcher",
    "Provenance",
    "ResolvedPackage",
    "normalize_version",
    "package_key",
    "resolve_deep",
]
