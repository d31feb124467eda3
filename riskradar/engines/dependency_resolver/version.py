"""Version normalization — approximate a version expression by one concrete version."""

from __future__ import annotations

import re

LATEST = "latest"

# Everything before the first digit: range operators, ~, ^, "v", "=", whitespace.
_LEADING_NON_NUMERIC_RE = re.compile(r"^[^\d]*")


def normalize_version(version_spec: str | None) -> str:
    """Reduce a requested version expression to a registry lookup key.

    ``"^4.1.2"`` -> ``"4.1.2"``, ``"~4.1"`` -> ``"4.1"``, ``">=1.0.0"`` -> ``"1.0.0"``,
    ``"*"`` / ``""`` / ``None`` -> ``"latest"``.

    This is deliberately lossy: only the leading numeric token survives, so
    ``">=1.2.0 <2"`` and ``"^1.2.0"`` normalize identically and pre-release
    or multi-constraint semantics are ignored.
    """
    if not version_spec or not isinstance(version_spec, str):
        return LATEST
    stripped = _LEADING_NON_NUMERIC_RE.sub("", version_spec.strip(), count=1)
    token = stripped.split(None, 1)[0] if stripped.strip() else ""
    return token or LATEST
