"""Parser for zip archives containing one or more package.json manifests."""

from __future__ import annotations

import zipfile
from pathlib import Path, PurePosixPath

from riskradar.engines.manifest_parser.errors import ManifestError
from riskradar.engines.manifest_parser.models import ScanTarget
from riskradar.engines.manifest_parser.parsers.package_json import parse_package_json
from riskradar.engines.manifest_parser.registry import register_parser


class ZipArchiveParser:
    format_name = "zip"
    extensions = [".zip"]

    def parse(self, file_path: Path) -> list[ScanTarget]:
        targets: list[ScanTarget] = []
        try:
            with zipfile.ZipFile(file_path) as archive:
                for info in sorted(archive.infolist(), key=lambda i: i.filename):
                    if info.is_dir():
                        continue
                    entry = PurePosixPath(info.filename)
                    if entry.name != "package.json" or "node_modules" in entry.parts:
                        continue
                    content = archive.read(info).decode("utf-8", errors="replace")
                    targets.append(
                        parse_package_json(
                            content,
                            f"{file_path.name}::{info.filename}",
                            entry.parent.name or file_path.stem,
                        )
                    )
        except (OSError, zipfile.BadZipFile) as exc:
            raise ManifestError(f"failed to parse zip at {file_path}: {exc}") from exc
        return targets


register_parser(ZipArchiveParser())
