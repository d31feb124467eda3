"""CLI entry point: riskradar.

Subcommands:
    riskradar scan -i package.json                       # console table
    riskradar scan -i deps.csv -o json,markdown -f out   # writes out.json + out.md
    riskradar scan -i manifests.zip --deep               # resolve transitive deps first
"""

from __future__ import annotations

import asyncio
import sys

import click

from riskradar.core.config import ScanOptions
from riskradar.core.logging import setup_logging
from riskradar.engines.manifest_parser import ManifestError, parse_input
from riskradar.engines.report_writer import FORMATS, write_reports
from riskradar.engines.risk_scanner import run_full_scan


def _parse_formats(ctx: click.Context, param: click.Parameter, value: str) -> list[str]:
    formats = [f.strip().lower() for f in value.split(",") if f.strip()]
    unknown = [f for f in formats if f not in FORMATS]
    if unknown:
        raise click.BadParameter(
            f"unknown format(s): {', '.join(unknown)} (choose from {', '.join(FORMATS)})"
        )
    return formats or ["table"]


@click.group()
@click.version_option(package_name="riskradar")
def main() -> None:
    """Risk Radar: npm package vulnerability and risk scanner."""


@main.command("scan")
@click.option(
    "-i",
    "--input",
    "input_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Input file: package.json, .csv, or .zip of manifests",
)
@click.option(
    "-o",
    "--output",
    default="table",
    show_default=True,
    callback=_parse_formats,
    help="Output formats, comma-separated: table, json, markdown, csv",
)
@click.option(
    "-f",
    "--file",
    "out_file",
    default=None,
    help="Base filename for reports (e.g. 'report' writes report.md, report.csv)",
)
@click.option("-d", "--deep", is_flag=True, help="Resolve transitive dependencies (slower)")
@click.option(
    "--github-token",
    envvar="GITHUB_TOKEN",
    default=None,
    help="GitHub token for maintainer location lookups (env: GITHUB_TOKEN)",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def scan(
    input_path: str,
    output: list[str],
    out_file: str | None,
    deep: bool,
    github_token: str | None,
    verbose: bool,
) -> None:
    """Scan packages from a package.json, CSV, or zip file."""
    setup_logging(verbose=verbose)
    quiet = "table" not in output

    def progress(message: str, **style) -> None:
        if not quiet:
            click.echo(click.style(message, **style), err=True)

    progress(f"Initializing Risk Radar scan for: {input_path}...", fg="blue")

    try:
        targets = parse_input(input_path)
    except ManifestError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    total = sum(len(t.packages) for t in targets)
    progress(
        f"Successfully parsed {total} packages across {len(targets)} source file(s).",
        fg="green",
    )
    options = ScanOptions.from_env(github_token=github_token, deep=deep or None)
    if options.deep:
        progress("Deep scanning enabled. Resolving full transitive dependencies...", fg="yellow")
    progress("Starting vulnerability, registry, and audit scans...", fg="cyan")

    report = asyncio.run(run_full_scan(targets, options))

    for path in write_reports(report, output, out_file):
        click.echo(click.style(f"Output written to {path}", fg="green"), err=True)


if __name__ == "__main__":
    main()
