"""Risk scanner engine — query vulnerability and registry sources and merge results."""

from riskradar.engines.risk_scanner.aggregator import (
    build_target_report,
    merge_package,
    prepare_packages,
    run_full_scan,
    scan_target,
    unique_packages,
)
from riskradar.engines.risk_scanner.errors import AuditError, RateLimitError, RiskRadarError
from riskradar.engines.risk_scanner.models import (
    AuditReport,
    PackageRiskRecord,
    RegistryAnalysis,
    ScanReport,
    SeverityTally,
    TargetReport,
    VulnerabilityFinding,
)

__all__ = [
    "AuditError",
    "AuditReport",
    "PackageRiskRecord",
    "RateLimitError",
    "RegistryAnalysis",
    "RiskRadarError",
    "ScanReport",
    "SeverityTally",
    "TargetReport",
    "VulnerabilityFinding",
    "build_target_report",
    "merge_package",
    "prepare_packages",
    "run_full_scan",
    "scan_target",
    "unique_packages",
]
