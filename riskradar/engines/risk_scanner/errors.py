"""Risk scanner exceptions."""


class RiskRadarError(Exception):
    """Base exception for scan-engine errors."""


class AuditError(RiskRadarError):
    """Raised when the audit tool crashed or its output could not be parsed."""


class RateLimitError(RiskRadarError):
    """Raised when the source-hosting API rejects a request for quota reasons."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"rate limited (HTTP {status_code})")
