"""Restrict a scan to production dependencies (no devDependencies)."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any

import structlog

from licaudit.exceptions import ProdFilterError
from licaudit.scanner.models import DiscoveredModule
from licaudit.scanner.walker import MANIFEST_NAME, MODULES_DIR, read_manifest

log = structlog.get_logger("licaudit.scanner")

_NPM_TIMEOUT = 120


def get_prod_packages(base_dir: Path, pedantic: bool = False) -> list[str]:
    """Names of all packages reachable through ``dependencies``, in visit order.

    Each dependency's manifest is looked up next to its dependent
    (``<parent>/node_modules/<name>``) and at the top level
    (``<base>/node_modules/<name>``), mirroring npm's hoisting.
    """
    base_dir = Path(base_dir)
    pending: list[Path] = [base_dir]
    visited: list[str] = []
    seen: set[str] = set()

    while pending:
        current = pending.pop()
        manifest = read_manifest(current / MANIFEST_NAME)
        if manifest is None:
            continue
        dependencies = manifest.get("dependencies")
        if not isinstance(dependencies, dict):
            continue
        for name in dependencies:
            if name in seen:
                continue
            seen.add(name)
            visited.append(name)
            pending.append(current / MODULES_DIR / name)
            pending.append(base_dir / MODULES_DIR / name)

    if pedantic:
        via_npm = get_prod_packages_via_npm(base_dir)
        if via_npm is not None:
            if len(via_npm) != len(visited):
                log.error(
                    "scanner.prod_count_mismatch",
                    npm_count=len(via_npm),
                    scanned_count=len(visited),
                )
            else:
                log.debug("scanner.prod_count_confirmed", count=len(visited))

    log.debug("scanner.prod_packages", count=len(visited))
    return visited


def _collect_names(tree: dict[str, Any], into: dict[str, None]) -> None:
    for name, node in (tree.get("dependencies") or {}).items():
        into.setdefault(name, None)
        if isinstance(node, dict):
            _collect_names(node, into)


def get_prod_packages_via_npm(base_dir: Path) -> list[str] | None:
    """Ask ``npm ls`` for the production tree; None if npm is unavailable."""
    npm = shutil.which("npm")
    if npm is None:
        log.warning("scanner.npm_not_found")
        return None

    try:
        proc = subprocess.run(
            [npm, "ls", "--omit=dev", "--all", "--json"],
            capture_output=True,
            text=True,
            cwd=str(base_dir),
            timeout=_NPM_TIMEOUT,
        )
    except (subprocess.SubprocessError, OSError) as exc:
        log.warning("scanner.npm_failed", error=str(exc))
        return None

    # npm ls exits non-zero on extraneous/missing packages but still prints the tree
    try:
        tree = json.loads(proc.stdout or "{}")
    except json.JSONDecodeError:
        log.warning("scanner.npm_bad_output", returncode=proc.returncode)
        return None

    names: dict[str, None] = {}
    if isinstance(tree, dict):
        _collect_names(tree, names)
    return list(names)


def filter_modules_by_prod(
    base_dir: Path,
    modules: list[DiscoveredModule],
    pedantic: bool = False,
) -> list[DiscoveredModule]:
    """Keep only discovered modules that are production dependencies.

    Raises :class:`ProdFilterError` if a production dependency is not
    installed, since the audit would otherwise be silently incomplete.
    """
    prod = get_prod_packages(base_dir, pedantic)
    by_name = {m.name: m for m in modules}

    missing = [name for name in prod if name not in by_name]
    if missing:
        for name in missing:
            log.debug("scanner.prod_module_missing", package=name)
        raise ProdFilterError(missing)

    return [by_name[name] for name in prod]
