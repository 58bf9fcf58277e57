"""CLI entry point: licaudit.

Usage:
    licaudit                                  # audit ./node_modules
    licaudit -d ../app -r short -l            # report + distinct license list
    licaudit -p -w whitelist.json             # prod deps only, enforce a whitelist
    licaudit -j - -q                          # JSON to stdout
    ls -d services/* | licaudit -d - -c all.csv   # several projects, merged
    licaudit --create-new-whitelist whitelist.json

Exit codes:
    0  success
    1  error (bad directory, manifest, whitelist or output file)
    2  a license matches --fail
    3  --fail-on-missing and at least one package could not be inspected
    4  whitelist violations
"""

from __future__ import annotations

import asyncio
import os
import re
import sys
from dataclasses import dataclass, replace
from pathlib import Path

import click
import structlog

from licaudit import __version__
from licaudit.core.logging import setup_logging
from licaudit.exceptions import AuditError, StartDirError
from licaudit.output.report import distinct_licenses, format_report
from licaudit.output.writers import write_csv, write_json
from licaudit.resolvers.models import PackageRecord
from licaudit.scanner.aggregator import merge_records, scan_project
from licaudit.scanner.models import ScanOptions
from licaudit.scanner.walker import is_valid_start_dir, read_target_manifest
from licaudit.whitelist.loader import load_policy, write_sample_whitelist
from licaudit.whitelist.models import Classification, PolicyRule
from licaudit.whitelist.reconciler import partition, reconcile

log = structlog.get_logger("licaudit.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_LICENSE_MATCH = 2
EXIT_MISSING = 3
EXIT_WHITELIST = 4

STDIN_MARKER = "-"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        return default


# Default resolution fan-out (overridable via env var)
_DEFAULT_CONCURRENCY = _env_int("LICAUDIT_CONCURRENCY", 8)


@dataclass
class CliSettings:
    """Everything a scan needs besides the directory itself."""

    scan: ScanOptions
    quiet: bool = False
    report: str = "none"
    show_licenses: bool = False
    fail_pattern: re.Pattern[str] | None = None
    fail_on_missing: bool = False
    json_target: str | None = None
    csv_target: str | None = None
    policy: list[PolicyRule] | None = None


def _info(settings: CliSettings, message: str) -> None:
    if not settings.quiet:
        click.echo(message)


def _error(message: str) -> None:
    click.echo(f"{click.style('Error:', fg='red')} {message}", err=True)


def _compile_fail_pattern(
    _ctx: click.Context, _param: click.Parameter, value: str | None
) -> re.Pattern[str] | None:
    if not value:
        return None
    try:
        return re.compile(value, re.IGNORECASE)
    except re.error as exc:
        raise click.BadParameter(f"invalid regular expression: {exc}") from exc


def _write_outputs(settings: CliSettings, records: list[PackageRecord]) -> None:
    if settings.json_target:
        write_json(settings.json_target, records)
    if settings.csv_target:
        write_csv(settings.csv_target, records)


def _check_whitelist(settings: CliSettings, records: list[PackageRecord]) -> int:
    policy = settings.policy or []
    allowed = partition(policy, records)[Classification.EXCEPTION]
    if allowed:
        _info(settings, f"{len(allowed)} modules are allowed by an explicit exception:")
        for r in allowed:
            _info(settings, f"  - {r.name}@{r.version or 'N/A'} ({r.license})")

    violations = reconcile(policy, records)
    if violations:
        _error(f"{len(violations)} modules are not covered by the whitelist:")
        for r in violations:
            click.echo(f"  - {r.name}@{r.version or 'N/A'} ({r.license})", err=True)
        return EXIT_WHITELIST
    return EXIT_OK


def scan_directory(
    settings: CliSettings,
    base_dir: Path,
    combine: bool = False,
) -> tuple[int, list[PackageRecord]]:
    """Audit one project; returns (exit code, records tagged with their parent).

    In *combine* mode no files are written: the caller merges the records
    of all projects and writes them once.
    """
    target = read_target_manifest(base_dir)
    target_label = f"{target.get('name')}@{target.get('version')}"
    _info(settings, f"Inspecting node_modules of {target_label} ...")

    result = asyncio.run(scan_project(base_dir, target, settings.scan))
    parent = result.target_name or str(base_dir)
    records = [replace(r, parents=[parent]) for r in result.records]

    if result.unresolved:
        click.echo(
            f"{click.style('WARNING:', fg='yellow')} Found {len(result.unresolved)} "
            "modules which could not be inspected:",
            err=True,
        )
        for mod in result.unresolved:
            click.echo(f"  - {mod.name}@{mod.version or 'N/A'} ({mod.local_path})", err=True)

    if settings.report in ("short", "long"):
        click.echo(format_report(records, detailed=settings.report == "long"))

    if settings.show_licenses:
        licenses = distinct_licenses(records)
        _info(settings, f"Used licenses ({len(licenses)}): {', '.join(licenses)}")

    if not combine:
        _write_outputs(settings, records)

    if settings.fail_pattern is not None:
        for license_name in distinct_licenses(records):
            if settings.fail_pattern.search(license_name):
                _info(
                    settings,
                    f"{click.style('Error:', fg='red')} the license \"{license_name}\" "
                    "conflicts with the given regex!",
                )
                return EXIT_LICENSE_MATCH, []

    if settings.fail_on_missing and result.unresolved:
        _error(f"{len(result.unresolved)} modules cannot be inspected!")
        return EXIT_MISSING, []

    if settings.policy is not None:
        code = _check_whitelist(settings, records)
        if code != EXIT_OK:
            return code, []

    return EXIT_OK, records


def _read_directory_list() -> list[str]:
    text = click.get_text_stream("stdin").read()
    return [line.strip() for line in text.splitlines() if line.strip()]


def run_input_mode(settings: CliSettings) -> int:
    """Scan every directory listed on stdin and merge the results."""
    directories = _read_directory_list()
    if not directories:
        _error("no directory list provided on stdin to scan!")
        return EXIT_ERROR

    all_records: list[PackageRecord] = []
    for i, directory in enumerate(directories, start=1):
        base_dir = Path(directory)
        if not is_valid_start_dir(base_dir):
            raise StartDirError(directory)

        _info(settings, f"{i}/{len(directories)}: {directory}")
        _info(settings, "-" * 46)

        code, records = scan_directory(settings, base_dir, combine=True)
        if code != EXIT_OK:
            return code
        all_records.extend(records)
        _info(settings, " ")

    unique = merge_records(all_records)
    _info(settings, "---")
    _info(settings, f"Found {len(all_records)} and reduced them to {len(unique)} modules.")

    _write_outputs(settings, unique)
    return EXIT_OK


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "-V", "--version")
@click.option(
    "-d",
    "--dir",
    "directory",
    default=".",
    show_default=True,
    help="Project directory to scan; '-' reads one directory per line from stdin.",
)
@click.option("-p", "--prod", is_flag=True, help="Only inspect production dependencies.")
@click.option("--pedantic", is_flag=True, help="Cross-check the prod package count with npm.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option("-q", "--quiet", is_flag=True, help="No informational output on stdout.")
@click.option("-c", "--csv", "csv_target", default=None, help="CSV output file ('-' for stdout).")
@click.option("-j", "--json", "json_target", default=None, help="JSON output file ('-' for stdout).")
@click.option(
    "-f",
    "--fail",
    "fail_pattern",
    default=None,
    callback=_compile_fail_pattern,
    help="Exit with code 2 if a license matches this regex (case-insensitive).",
)
@click.option(
    "-r",
    "--report",
    type=click.Choice(["none", "short", "long"], case_sensitive=False),
    default="none",
    show_default=True,
    help="Print a per-license report.",
)
@click.option("-l", "--licenses", "show_licenses", is_flag=True, help="Print the licenses in use.")
@click.option(
    "-z",
    "--fail-on-missing",
    is_flag=True,
    help="Exit with code 3 if at least one package cannot be inspected.",
)
@click.option(
    "-w",
    "--whitelist",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON whitelist of allowed licenses and packages.",
)
@click.option(
    "--create-new-whitelist",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write a sample whitelist and exit, ignoring every other flag.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=_DEFAULT_CONCURRENCY,
    show_default=True,
    help="Packages resolved in parallel (env: LICAUDIT_CONCURRENCY).",
)
def main(
    directory: str,
    prod: bool,
    pedantic: bool,
    verbose: bool,
    quiet: bool,
    csv_target: str | None,
    json_target: str | None,
    fail_pattern: re.Pattern[str] | None,
    report: str,
    show_licenses: bool,
    fail_on_missing: bool,
    whitelist: str | None,
    create_new_whitelist: str | None,
    concurrency: int,
) -> None:
    """Audit the licenses of the npm packages installed in a project."""
    setup_logging("DEBUG" if verbose else None)

    settings = CliSettings(
        scan=ScanOptions(prod=prod, pedantic=pedantic, concurrency=concurrency),
        quiet=quiet,
        report=report.lower(),
        show_licenses=show_licenses,
        fail_pattern=fail_pattern,
        fail_on_missing=fail_on_missing,
        json_target=json_target,
        csv_target=csv_target,
    )

    try:
        if create_new_whitelist:
            write_sample_whitelist(create_new_whitelist)
            _info(settings, f"Sample whitelist written to {create_new_whitelist}")
            return

        # Load the whitelist first so a broken file fails before the scan.
        if whitelist:
            settings.policy = load_policy(whitelist)

        if directory == STDIN_MARKER:
            code = run_input_mode(settings)
        else:
            base_dir = Path(directory)
            if not is_valid_start_dir(base_dir):
                raise StartDirError(directory)
            code, _records = scan_directory(settings, base_dir)
    except AuditError as exc:
        log.debug("cli.failed", error=str(exc), exc_info=True)
        _error(str(exc))
        sys.exit(EXIT_ERROR)

    sys.exit(code)


if __name__ == "__main__":
    main()
