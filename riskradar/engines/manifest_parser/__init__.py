"""Manifest parser engine — decode input files into scan targets."""

# Ensure parsers are registered before any input is decoded.
import riskradar.engines.manifest_parser.parsers  # noqa: F401
from riskradar.engines.manifest_parser.errors import ManifestError
from riskradar.engines.manifest_parser.models import PackageRequirement, ScanTarget
from riskradar.engines.manifest_parser.registry import parse_input

__all__ = ["ManifestError", "PackageRequirement", "ScanTarget", "parse_input"]
