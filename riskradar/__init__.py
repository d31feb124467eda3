"""Risk Radar: npm package vulnerability and risk scanner."""

__version__ = "1.0.0"

from riskradar.core.config import ScanOptions
from riskradar.engines.manifest_parser import PackageRequirement, ScanTarget, parse_input
from riskradar.engines.risk_scanner import ScanReport, TargetReport, run_full_scan

__all__ = [
    "PackageRequirement",
    "ScanOptions",
    "ScanReport",
    "ScanTarget",
    "TargetReport",
    "parse_input",
    "run_full_scan",
]
