"""Render a ScanReport as a console table, JSON, Markdown, or CSV."""

from __future__ import annotations

import csv
import io
import json
import textwrap
from collections.abc import Iterable
from pathlib import Path

import click

from riskradar.engines.risk_scanner.models import (
    SEVERITY_NONE,
    PackageRiskRecord,
    ScanReport,
    TargetReport,
)

FORMATS = ("table", "json", "markdown", "csv")

_EXTENSIONS = {"json": ".json", "markdown": ".md", "csv": ".csv"}

_CSV_HEADER = [
    "Target",
    "Package",
    "Version",
    "Vulns",
    "Highest Sev",
    "Deprecated?",
    "Issues",
    "NPM Link",
    "Maintainers",
]

# (header, width) for the console table
_TABLE_COLUMNS = [
    ("Package", 18),
    ("Version", 10),
    ("Vulns", 6),
    ("Highest Sev", 12),
    ("Deprecated?", 11),
    ("Issues", 34),
    ("NPM Link", 28),
    ("Maintainers", 40),
]


def render_report(report: ScanReport, fmt: str) -> str:
    """Render *report* as ``json``, ``markdown``, or ``csv`` text."""
    if fmt == "json":
        return json.dumps(report.to_dict(), indent=2)
    if fmt == "markdown":
        return render_markdown(report)
    if fmt == "csv":
        return render_csv(report)
    if fmt == "table":
        return render_table(report, color=False)
    raise ValueError(f"unknown output format: {fmt!r}")


def write_reports(
    report: ScanReport,
    formats: Iterable[str],
    out_file: str | Path | None = None,
) -> list[Path]:
    """Emit every requested format; returns the files written.

    The table always goes to stdout.  Other formats go to stdout, or to
    ``<out_file stem>.<ext>`` when *out_file* is given so that several
    formats never overwrite each other.
    """
    written: list[Path] = []
    for fmt in formats:
        if fmt == "table":
            click.echo(render_table(report, color=True))
            continue
        text = render_report(report, fmt)
        if out_file is None:
            click.echo(text)
            continue
        base = Path(out_file)
        path = base.with_name(base.stem + _EXTENSIONS[fmt])
        path.write_text(text, encoding="utf-8")
        written.append(path)
    return written


# ── markdown ──────────────────────────────────────────────────────────────


def render_markdown(report: ScanReport) -> str:
    lines: list[str] = ["# Risk Radar Scan Report", ""]
    for target in report.targets:
        lines.append(f"## Target: {target.target_name}")
        if target.description:
            lines.append(f"*{target.description}*")
        if target.target_version:
            lines.append(f"**Version**: {target.target_version}")
        s = target.summary
        lines.append(f"**Packages Scanned:** {target.packages_scanned}  ")
        lines.append(
            f"**Critical:** {s.critical} | **High:** {s.high} | "
            f"**Moderate:** {s.moderate} | **Low:** {s.low}  "
        )
        lines.append("")
        lines.append(
            "| Package | Version | Vulns | Highest Sev | Deprecated? "
            "| Issues | NPM Link | Maintainers |"
        )
        lines.append("|---|---|---|---|---|---|---|---|")
        for r in target.results:
            issues = _md_cell("<br>".join(r.issues)) or "None"
            link = f"[Link]({r.registry_page_url})" if r.registry_page_url else ""
            lines.append(
                f"| {_md_cell(r.name)} | {_md_cell(r.version)} | {r.vulnerability_count} "
                f"| {r.highest_severity} | {_yes_no(r.is_deprecated)} | {issues} "
                f"| {link} | {_md_cell(r.maintainer_summary)} |"
            )
        lines.append("")
        lines.append("")
    return "\n".join(lines)


def _md_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", "<br>")


# ── csv ───────────────────────────────────────────────────────────────────


def render_csv(report: ScanReport) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(_CSV_HEADER)
    for target in report.targets:
        for r in target.results:
            writer.writerow(
                [
                    target.target_name,
                    r.name,
                    r.version,
                    r.vulnerability_count,
                    r.highest_severity,
                    "YES" if r.is_deprecated else "No",
                    "; ".join(r.issues),
                    r.registry_page_url,
                    r.maintainer_summary.replace("\n", " | "),
                ]
            )
    return buf.getvalue()


# ── console table ─────────────────────────────────────────────────────────


def render_table(report: ScanReport, *, color: bool = True) -> str:
    blocks = [_render_target(t, color) for t in report.targets]
    return "\n".join(blocks)


def _render_target(target: TargetReport, color: bool) -> str:
    def style(text: str, **kw) -> str:
        return click.style(text, **kw) if color else text

    version = f"(v{target.target_version}) " if target.target_version else ""
    header = f" --- TARGET: {target.target_name} {version}--- "
    out: list[str] = ["", style(header, bold=True, reverse=True)]
    if target.description:
        out.append(style(f"     {target.description}", italic=True))
    out.append(style(f"     Path: {target.file_path}", dim=True))
    out.append("")

    rule = "+" + "+".join("-" * (w + 2) for _, w in _TABLE_COLUMNS) + "+"
    out.append(rule)
    out.append(_table_row([h for h, _ in _TABLE_COLUMNS], [None] * len(_TABLE_COLUMNS)))
    out.append(rule)
    for r in target.results:
        out.append(_table_row(_cells(r), _colors(r) if color else [None] * len(_TABLE_COLUMNS)))
        out.append(rule)

    s = target.summary
    out.append("")
    out.append(style(f" >> Scan Summary: {target.target_name}", bold=True))
    out.append(f"    Packages Scanned: {target.packages_scanned}")
    out.append(style(f"    Critical:   {s.critical}", fg="red"))
    out.append(style(f"    High:       {s.high}", fg="red"))
    out.append(style(f"    Moderate:   {s.moderate}", fg="yellow"))
    out.append(style(f"    Low:        {s.low}", fg="blue"))
    out.append(f"    Total Vulns: {s.total}")
    return "\n".join(out)


def _cells(r: PackageRiskRecord) -> list[str]:
    return [
        r.name,
        r.version,
        str(r.vulnerability_count),
        r.highest_severity,
        _yes_no(r.is_deprecated),
        "\n".join(r.issues) or "None",
        r.registry_page_url,
        r.maintainer_summary,
    ]


def _colors(r: PackageRiskRecord) -> list[str | None]:
    return [
        None,
        None,
        "red" if r.vulnerability_count else "green",
        "green" if r.highest_severity == SEVERITY_NONE else "red",
        "red" if r.is_deprecated else "green",
        None if r.issues else "green",
        "blue",
        "bright_black",
    ]


def _table_row(cells: list[str], colors: list[str | None]) -> str:
    """Word-wrap each cell to its column width and join the physical lines."""
    wrapped: list[list[str]] = []
    for cell, (_, width) in zip(cells, _TABLE_COLUMNS, strict=True):
        lines: list[str] = []
        for part in cell.splitlines() or [""]:
            lines.extend(textwrap.wrap(part, width, break_long_words=True) or [""])
        wrapped.append(lines)

    height = max(len(c) for c in wrapped)
    physical: list[str] = []
    for i in range(height):
        parts = []
        for lines, (_, width), fg in zip(wrapped, _TABLE_COLUMNS, colors, strict=True):
            text = lines[i] if i < len(lines) else ""
            padded = text.ljust(width)
            parts.append(click.style(padded, fg=fg) if fg else padded)
        physical.append("| " + " | ".join(parts) + " |")
    return "\n".join(physical)


def _yes_no(flag: bool) -> str:
    return "YES" if flag else "No"
