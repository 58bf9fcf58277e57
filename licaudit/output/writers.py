"""JSON and CSV result writers. A target of ``-`` means stdout."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Sequence
from pathlib import Path

import click

from licaudit.exceptions import OutputError
from licaudit.resolvers.models import PackageRecord

STDOUT = "-"

CSV_HEADER = ("module name", "version", "licenses", "repository", "licenseUrl", "parents")


def _emit(target: str, content: str) -> None:
    if target == STDOUT:
        click.echo(content)
        return
    try:
        Path(target).write_text(content, encoding="utf-8")
    except OSError as exc:
        raise OutputError(f"cannot write {target}: {exc}") from exc


def render_json(records: Sequence[PackageRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], indent=4)


def render_csv(records: Sequence[PackageRecord]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in records:
        writer.writerow(
            (
                r.name,
                r.version or "",
                r.license,
                r.repo_base_url or "",
                r.url or "",
                ";".join(r.parents),
            )
        )
    return buf.getvalue().rstrip("\n")


def write_json(target: str, records: Sequence[PackageRecord]) -> None:
    _emit(target, render_json(records))


def write_csv(target: str, records: Sequence[PackageRecord]) -> None:
    _emit(target, render_csv(records))
