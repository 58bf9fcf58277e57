"""Whitelist reconciler — classify resolved packages against policy rules."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from licaudit.resolvers.models import PackageRecord
from licaudit.whitelist.models import Classification, PolicyRule

log = structlog.get_logger("licaudit.whitelist")

_OR_SEPARATOR = " OR "


def split_alternatives(license_expr: str) -> list[str]:
    """Split ``"(MIT OR Apache-2.0)"`` into ``["MIT", "Apache-2.0"]``.

    Only a fully parenthesized expression with a literal ``" OR "`` is
    split; anything else is a single alternative, kept verbatim.
    """
    if license_expr.startswith("(") and license_expr.endswith(")") and _OR_SEPARATOR in license_expr:
        return license_expr[1:-1].split(_OR_SEPARATOR)
    return [license_expr]


def classify(record: PackageRecord, policy: Sequence[PolicyRule]) -> Classification:
    """Classify one package.

    A blanket rule for any alternative wins over a per-package exception.
    """
    alternatives = split_alternatives(record.license)
    matched = [rule for rule in policy if rule.license in alternatives]

    if any(rule.is_blanket for rule in matched):
        return Classification.VALID
    if any(record.name in rule.modules for rule in matched):
        return Classification.EXCEPTION
    return Classification.NONE


def partition(
    policy: Sequence[PolicyRule],
    records: Iterable[PackageRecord],
) -> dict[Classification, list[PackageRecord]]:
    """Group *records* by classification, keeping input order in each group."""
    groups: dict[Classification, list[PackageRecord]] = {c: [] for c in Classification}
    for record in records:
        groups[classify(record, policy)].append(record)
    return groups


def reconcile(
    policy: Sequence[PolicyRule],
    records: Iterable[PackageRecord],
) -> list[PackageRecord]:
    """Return the packages no rule allows, in input order.

    Packages allowed by a named exception are logged for information; a
    non-empty return value means the policy check failed.
    """
    groups = partition(policy, records)

    for record in groups[Classification.EXCEPTION]:
        log.info(
            "whitelist.exception",
            package=record.name,
            version=record.version,
            license=record.license,
        )
    for record in groups[Classification.NONE]:
        log.warning(
            "whitelist.violation",
            package=record.name,
            version=record.version,
            license=record.license,
        )

    return groups[Classification.NONE]
