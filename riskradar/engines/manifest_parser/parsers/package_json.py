"""Parser for npm package.json manifests."""

from __future__ import annotations

import json
from pathlib import Path

from riskradar.engines.manifest_parser.errors import ManifestError
from riskradar.engines.manifest_parser.models import PackageRequirement, ScanTarget
from riskradar.engines.manifest_parser.registry import register_parser

# Dependency sections, in the order they are reported.
_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


def parse_package_json(content: str, file_path: str, fallback_name: str) -> ScanTarget:
    """Decode package.json *content* into a single :class:`ScanTarget`.

    Raises :class:`ManifestError` if the content is not a JSON object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"failed to parse package.json at {file_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"failed to parse package.json at {file_path}: not an object")

    packages: list[PackageRequirement] = []
    for section in _SECTIONS:
        deps = data.get(section)
        if not isinstance(deps, dict):
            continue
        for name, spec in deps.items():
            packages.append(
                PackageRequirement(
                    name=name,
                    version_spec=spec if isinstance(spec, str) else "",
                    source=section,
                )
            )

    return ScanTarget(
        target_name=data.get("name") or fallback_name,
        file_path=file_path,
        packages=packages,
        target_version=data.get("version"),
        description=data.get("description"),
    )


class PackageJsonParser:
    format_name = "package-json"
    extensions = [".json"]

    def parse(self, file_path: Path) -> list[ScanTarget]:
        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ManifestError(f"failed to read {file_path}: {exc}") from exc
        return [parse_package_json(content, str(file_path), file_path.name)]


register_parser(PackageJsonParser())
