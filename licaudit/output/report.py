"""Console summaries grouped by license."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import click

from licaudit.resolvers.models import PackageRecord

_SHORT_LIMIT = 100


def group_by_license(records: Iterable[PackageRecord]) -> dict[str, list[str]]:
    """License string → package names, both in first-seen order."""
    groups: dict[str, list[str]] = {}
    for r in records:
        groups.setdefault(r.license, []).append(r.name)
    return groups


def distinct_licenses(records: Iterable[PackageRecord]) -> list[str]:
    return list(group_by_license(records))


def format_report(records: Sequence[PackageRecord], detailed: bool = False) -> str:
    """One cyan ``LICENSE (count)`` header per license, then its packages.

    The short form cuts each package list at 100 characters.
    """
    lines: list[str] = []
    for license_name, names in group_by_license(records).items():
        lines.append(f"{click.style(license_name, fg='cyan')} ({len(names)})")
        joined = ", ".join(names)
        if not detailed and len(joined) > _SHORT_LIMIT:
            joined = joined[:_SHORT_LIMIT] + "..."
        lines.append(f"   {joined}")
    return "\n".join(lines)
