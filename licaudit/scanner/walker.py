"""Locate the target project and the packages installed below it."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import structlog

from licaudit.exceptions import ManifestError
from licaudit.resolvers.license import is_license_filename
from licaudit.scanner.models import DiscoveredModule

log = structlog.get_logger("licaudit.scanner")

MANIFEST_NAME = "package.json"
MODULES_DIR = "node_modules"


def read_manifest(path: Path) -> dict[str, Any] | None:
    """Parse a package.json, or None if unreadable or not a JSON object."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.debug("scanner.manifest_unreadable", path=str(path), error=str(exc))
        return None
    return data if isinstance(data, dict) else None


def read_target_manifest(base_dir: Path) -> dict[str, Any]:
    """Parse the scanned project's own package.json.

    Raises :class:`ManifestError` if it is missing or malformed.
    """
    path = Path(base_dir) / MANIFEST_NAME
    manifest = read_manifest(path)
    if manifest is None:
        raise ManifestError(f"cannot read package.json in dir {base_dir}! No node package?")
    return manifest


def is_valid_start_dir(base_dir: Path) -> bool:
    """A project directory with a readable package.json and a non-empty node_modules."""
    base_dir = Path(base_dir)
    log.debug("scanner.check_start_dir", path=str(base_dir))
    if not base_dir.is_dir():
        return False

    manifest_path = base_dir / MANIFEST_NAME
    if not manifest_path.is_file() or read_manifest(manifest_path) is None:
        return False

    modules_dir = base_dir / MODULES_DIR
    if not modules_dir.is_dir():
        return False
    try:
        return any(modules_dir.iterdir())
    except OSError:
        return False


def _package_name(directory: Path) -> str | None:
    """``node_modules/<name>`` or ``node_modules/@scope/<name>``, else None."""
    parent = directory.parent
    if parent.name == MODULES_DIR and not directory.name.startswith("@"):
        return directory.name
    if parent.name.startswith("@") and parent.parent.name == MODULES_DIR:
        return f"{parent.name}/{directory.name}"
    return None


def _root_license_file(root: Path, filenames: list[str]) -> Path | None:
    for name in sorted(filenames):
        if is_license_filename(name):
            return root / name
    return None


def scan_node_modules(base_dir: Path) -> list[DiscoveredModule]:
    """Find every installed package below ``<base_dir>/node_modules``.

    Symlinked packages are followed; a directory reached twice through
    links is walked once. Nested copies of the same package name collapse
    to the one with the shortest path. Result is sorted by package name.
    """
    modules_dir = Path(base_dir).resolve() / MODULES_DIR
    log.debug("scanner.walk", path=str(modules_dir))

    found: dict[str, DiscoveredModule] = {}
    visited: set[str] = set()
    # npm link, workspaces and pnpm install packages as symlinks
    for dirpath, dirnames, filenames in os.walk(modules_dir, followlinks=True):
        real = os.path.realpath(dirpath)
        if real in visited:
            # still a candidate name, but its subtree was already walked
            log.debug("scanner.already_walked", path=dirpath, target=real)
            dirnames[:] = []
        else:
            visited.add(real)
            # .bin, .cache, .package-lock.json and friends
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        if MANIFEST_NAME not in filenames:
            continue

        current = Path(dirpath)
        name = _package_name(current)
        if name is None:
            continue

        candidate = DiscoveredModule(
            name=name,
            root=current,
            manifest_path=current / MANIFEST_NAME,
            license_path=_root_license_file(current, filenames),
        )
        previous = found.get(name)
        if previous is None or len(str(candidate.manifest_path)) < len(str(previous.manifest_path)):
            found[name] = candidate

    return [found[name] for name in sorted(found)]
