"""Input parsers, auto-registered on import."""

from riskradar.engines.manifest_parser.parsers import (
    csv_table,  # noqa: F401
    package_json,  # noqa: F401
    zip_archive,  # noqa: F401
)
