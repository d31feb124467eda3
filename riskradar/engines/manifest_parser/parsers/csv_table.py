"""Parser for CSV exports listing one package per row."""

from __future__ import annotations

import csv
from collections.abc import Sequence
from pathlib import Path

from riskradar.engines.manifest_parser.errors import ManifestError
from riskradar.engines.manifest_parser.models import PackageRequirement, ScanTarget
from riskradar.engines.manifest_parser.registry import register_parser

# Case-insensitive header substrings, highest priority first.
NAME_COLUMN_MATCHERS = ("package", "name")
VERSION_COLUMN_MATCHERS = ("version",)


def find_column(
    headers: Sequence[str],
    matchers: Sequence[str],
    exclude: str | None = None,
) -> str | None:
    """Return the first header containing a matcher, trying matchers in priority order."""
    lowered = [(h, h.lower()) for h in headers if h and h != exclude]
    for needle in matchers:
        for original, low in lowered:
            if needle in low:
                return original
    return None


class CsvTableParser:
    format_name = "csv"
    extensions = [".csv"]

    def parse(self, file_path: Path) -> list[ScanTarget]:
        try:
            with open(file_path, newline="", encoding="utf-8-sig") as f:
                reader = csv.DictReader(f)
                headers = reader.fieldnames or []
                version_col = find_column(headers, VERSION_COLUMN_MATCHERS)
                name_col = find_column(headers, NAME_COLUMN_MATCHERS, exclude=version_col)

                packages: list[PackageRequirement] = []
                # Header is row 1
                for row_num, row in enumerate(reader, start=2):
                    if name_col is None:
                        break
                    name = (row.get(name_col) or "").strip()
                    if not name:
                        continue
                    version = (row.get(version_col) or "").strip() if version_col else ""
                    packages.append(
                        PackageRequirement(
                            name=name,
                            version_spec=version or "latest",
                            source=f"Row {row_num}",
                        )
                    )
        except (OSError, csv.Error, UnicodeDecodeError) as exc:
            raise ManifestError(f"failed to parse CSV at {file_path}: {exc}") from exc

        return [
            ScanTarget(
                target_name=file_path.name,
                file_path=str(file_path),
                packages=packages,
            )
        ]


register_parser(CsvTableParser())
