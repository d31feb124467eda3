"""Manifest parser exceptions."""


class ManifestError(Exception):
    """Raised when an input file cannot be read or decoded."""
