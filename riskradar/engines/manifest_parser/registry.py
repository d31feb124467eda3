"""Match input files to parsers by extension."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from riskradar.engines.manifest_parser.errors import ManifestError
from riskradar.engines.manifest_parser.models import ScanTarget


@runtime_checkable
class InputParser(Protocol):
    """Interface that every input parser must satisfy."""

    format_name: str
    extensions: list[str]

    def parse(self, file_path: Path) -> list[ScanTarget]: ...


PARSER_REGISTRY: dict[str, InputParser] = {}


def register_parser(parser: InputParser) -> None:
    """Register a parser instance under each of its file extensions."""
    for ext in parser.extensions:
        PARSER_REGISTRY[ext.lower()] = parser


def parse_input(file_path: str | Path) -> list[ScanTarget]:
    """Decode an input file into scan targets.

    Raises :class:`ManifestError` for missing files and unsupported types.
    """
    path = Path(file_path)
    if not path.is_file():
        raise ManifestError(f"input file not found: {path}")

    ext = path.suffix.lower()
    parser = PARSER_REGISTRY.get(ext)
    if parser is None:
        raise ManifestError(f"unsupported file type: {ext or path.name}")
    return parser.parse(path)
