"""Aggregator — resolve every discovered package and merge across scan roots."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog

from licaudit.resolvers.license import resolve_license
from licaudit.resolvers.models import DetectedLicense, LicenseResolution, PackageRecord
from licaudit.resolvers.scm import combine_subpath_with_repo, repo_base_url, resolve_scm
from licaudit.scanner.models import DiscoveredModule, ScanOptions, ScanResult, UnresolvedPackage
from licaudit.scanner.prod import filter_modules_by_prod
from licaudit.scanner.walker import read_manifest, scan_node_modules

log = structlog.get_logger("licaudit.scanner")


def _license_subpath(resolution: LicenseResolution, module: DiscoveredModule) -> str | None:
    """Relative path of the file the license was read from, if any."""
    for entry in resolution.licenses:
        if isinstance(entry, DetectedLicense) and entry.source:
            return entry.source
    if module.license_path is not None:
        return module.license_path.relative_to(module.root).as_posix()
    return None


def _version_of(manifest: dict[str, Any]) -> str | None:
    version = manifest.get("version")
    return version if isinstance(version, str) else None


def build_record(module: DiscoveredModule) -> PackageRecord | UnresolvedPackage | None:
    """Resolve one package.

    Returns None when the package's own manifest cannot be parsed.
    """
    manifest = read_manifest(module.manifest_path)
    if manifest is None:
        log.warning("scanner.invalid_manifest", path=str(module.manifest_path))
        return None

    version = _version_of(manifest)
    resolution = resolve_license(manifest, module.root)
    license_name = resolution.as_display_string()
    if license_name is None:
        return UnresolvedPackage(
            name=module.name, version=version, local_path=str(module.manifest_path)
        )

    scm = resolve_scm(manifest.get("repository"))
    if not scm.valid:
        log.debug("scanner.no_repository", package=module.name)

    return PackageRecord(
        name=module.name,
        version=version,
        license=license_name,
        url=combine_subpath_with_repo(scm, _license_subpath(resolution, module)),
        repo_base_url=repo_base_url(scm),
        original_paths=module.original_paths,
    )


def _split(
    results: Iterable[PackageRecord | UnresolvedPackage | None],
) -> tuple[list[PackageRecord], list[UnresolvedPackage]]:
    records: list[PackageRecord] = []
    unresolved: list[UnresolvedPackage] = []
    for result in results:
        if isinstance(result, PackageRecord):
            records.append(result)
        elif isinstance(result, UnresolvedPackage):
            unresolved.append(result)
    return records, unresolved


def extract_licenses(
    modules: Iterable[DiscoveredModule],
) -> tuple[list[PackageRecord], list[UnresolvedPackage]]:
    """Resolve *modules* one by one; returns (resolved, unresolved)."""
    return _split(build_record(m) for m in modules)


async def extract_licenses_async(
    modules: Iterable[DiscoveredModule],
    concurrency: int = 8,
) -> tuple[list[PackageRecord], list[UnresolvedPackage]]:
    """Like :func:`extract_licenses`, resolving up to *concurrency* packages at once.

    Results keep the input order.
    """
    sem = asyncio.Semaphore(max(1, concurrency))

    async def _resolve_one(module: DiscoveredModule) -> PackageRecord | UnresolvedPackage | None:
        async with sem:
            return await asyncio.to_thread(build_record, module)

    results = await asyncio.gather(*(_resolve_one(m) for m in modules))
    return _split(results)


async def scan_project(
    base_dir: Path,
    target_manifest: dict[str, Any],
    options: ScanOptions,
) -> ScanResult:
    """Discover, optionally prod-filter, and resolve the packages of one project."""
    modules = scan_node_modules(base_dir)
    log.debug("scanner.modules_found", count=len(modules))

    if options.prod:
        modules = filter_modules_by_prod(base_dir, modules, options.pedantic)

    records, unresolved = await extract_licenses_async(modules, options.concurrency)
    name = target_manifest.get("name")
    return ScanResult(
        target_name=name if isinstance(name, str) else None,
        target_version=_version_of(target_manifest),
        records=records,
        unresolved=unresolved,
    )


def merge_records(records: Iterable[PackageRecord]) -> list[PackageRecord]:
    """Deduplicate across scan roots by (name, version, license).

    Duplicates fold their ``parents`` into the first occurrence; the
    result is sorted by package name.
    """
    unique: dict[tuple[str, str | None, str], PackageRecord] = {}
    for record in records:
        key = (record.name, record.version, record.license)
        kept = unique.get(key)
        if kept is None:
            unique[key] = record
            continue
        for parent in record.parents:
            if parent not in kept.parents:
                kept.parents.append(parent)
    return sorted(unique.values(), key=lambda r: r.name)
