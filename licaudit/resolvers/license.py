"""License resolver — manifest fields, then license files, then the README.

Each stage returns a :class:`LicenseResolution`; :func:`resolve_license`
returns the first valid one. Nothing here raises for malformed data or
unreadable files: such input simply contributes no entry.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from licaudit.resolvers.models import (
    DeclaredLicense,
    DetectedLicense,
    LicenseEntry,
    LicenseResolution,
)

log = structlog.get_logger("licaudit.resolver")

# "Copyright (C) 1969 ..." on the first line
CUSTOM_COPYRIGHT_PATTERN = re.compile(r"^copyright.*?\(?c?\)?.*?[0-9]?.*?$", re.IGNORECASE)

# "## License", "# LICENCE", "License"
README_LICENSE_HEADING = re.compile(r"^#*.*?licen[sc]e$", re.IGNORECASE)

CUSTOM_LICENSE = "CUSTOM_LICENSE"

_COPYRIGHT_CONFIDENCE = 0.5
_KNOWN_TEXT_CONFIDENCE = 0.75
_MIN_CONFIDENCE = 0.01

_LICENSE_NAME_PREFIXES = ("license", "licence")
_NESTED_PACKAGES_DIR = "node_modules"


# ── manifest fields ──────────────────────────────────────────────────────


def _parse_license_object(obj: Any) -> DeclaredLicense | None:
    if not isinstance(obj, Mapping):
        return None
    kind = obj.get("type")
    if not isinstance(kind, str) or not kind.strip():
        return None
    url = obj.get("url")
    return DeclaredLicense(type=kind.strip(), url=url if isinstance(url, str) and url else None)


def _parse_license_item(item: Any) -> DeclaredLicense | None:
    if isinstance(item, str):
        return DeclaredLicense(type=item.strip()) if item.strip() else None
    return _parse_license_object(item)


def resolve_from_manifest(manifest: Mapping[str, Any] | None) -> LicenseResolution:
    """Read ``licenses`` / ``license`` from a parsed package.json."""
    if not isinstance(manifest, Mapping):
        return LicenseResolution.invalid()

    licenses = manifest.get("licenses")
    if isinstance(licenses, list):
        entries = [_parse_license_object(item) for item in licenses]
        if entries and all(e is not None for e in entries):
            return LicenseResolution(valid=True, licenses=tuple(entries))  # type: ignore[arg-type]
    elif isinstance(licenses, Mapping):
        entry = _parse_license_object(licenses)
        if entry is not None:
            return LicenseResolution(valid=True, licenses=(entry,))

    license_field = manifest.get("license")
    if isinstance(license_field, str):
        if license_field.strip():
            return LicenseResolution(
                valid=True, licenses=(DeclaredLicense(type=license_field.strip()),)
            )
    elif isinstance(license_field, list):
        parsed = [_parse_license_item(item) for item in license_field]
        kept = tuple(e for e in parsed if e is not None)
        return LicenseResolution(valid=bool(kept), licenses=kept)
    elif isinstance(license_field, Mapping):
        entry = _parse_license_object(license_field)
        if entry is not None:
            return LicenseResolution(valid=True, licenses=(entry,))

    return LicenseResolution.invalid()


# ── license text classification ──────────────────────────────────────────


def classify_license_text(text: str | None) -> DetectedLicense | None:
    """Guess the license from the opening lines of a license text.

    Only a handful of well-known headers are recognized: a leading
    copyright notice (custom license), the MIT header and the GNU GPL header.
    """
    if not text:
        return None
    lines = text.split("\n")

    if CUSTOM_COPYRIGHT_PATTERN.match(lines[0].strip()):
        return DetectedLicense(
            type=CUSTOM_LICENSE, confidence=_COPYRIGHT_CONFIDENCE, license_line=lines[0]
        )

    beginning = lines[:2]
    for line in beginning:
        if "mit license" in line.lower():
            return DetectedLicense(type="MIT", confidence=_KNOWN_TEXT_CONFIDENCE, license_line=line)

    for line in beginning:
        if "GENERAL PUBLIC LICENSE" in line.upper():
            return DetectedLicense(type="GPL", confidence=_KNOWN_TEXT_CONFIDENCE, license_line=line)

    return None


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        log.debug("resolver.file_unreadable", path=str(path), error=str(exc))
        return None


# ── license files ────────────────────────────────────────────────────────


def is_license_filename(relative_path: str) -> bool:
    """True if any path segment starts with ``license`` or ``licence``."""
    segments = relative_path.replace("\\", "/").lower().split("/")
    return any(seg.startswith(_LICENSE_NAME_PREFIXES) for seg in segments if seg)


def _license_candidates(package_root: Path) -> list[Path]:
    """License-like files below *package_root*, nested packages excluded."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(package_root):
        dirnames[:] = sorted(d for d in dirnames if d != _NESTED_PACKAGES_DIR)
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if is_license_filename(path.relative_to(package_root).as_posix()):
                found.append(path)
    return found


def resolve_from_files(package_root: str | os.PathLike[str]) -> LicenseResolution:
    """Scan bundled LICENSE/LICENCE files of a package."""
    root = Path(package_root)
    if not root.is_dir():
        return LicenseResolution.invalid()

    entries: list[LicenseEntry] = []
    for path in _license_candidates(root):
        detected = classify_license_text(_read_text(path))
        if detected is None:
            continue
        source = path.relative_to(root).as_posix()
        entries.append(
            DetectedLicense(
                type=detected.type,
                confidence=detected.confidence,
                source=source,
                license_line=detected.license_line,
            )
        )

    return LicenseResolution(valid=bool(entries), licenses=tuple(entries))


# ── README ───────────────────────────────────────────────────────────────


def _find_readme(package_root: Path) -> Path | None:
    try:
        children = sorted(p for p in package_root.iterdir() if p.is_file())
    except OSError:
        return None

    def rank(path: Path) -> int:
        name = path.name.lower()
        return {"readme.md": 0, "readme": 1}.get(name, 2)

    readmes = [p for p in children if p.name.lower().split(".", 1)[0] == "readme"]
    if not readmes:
        return None
    return min(readmes, key=rank)


def resolve_from_readme(package_root: str | os.PathLike[str]) -> LicenseResolution:
    """Look for a license heading in the package README.

    The text following the heading is classified like a license file, with
    half the confidence.
    """
    root = Path(package_root)
    if not root.is_dir():
        return LicenseResolution.invalid()
    readme = _find_readme(root)
    if readme is None:
        return LicenseResolution.invalid()
    content = _read_text(readme)
    if not content:
        return LicenseResolution.invalid()

    lines = content.split("\n")
    heading = next(
        (i for i, line in enumerate(lines) if README_LICENSE_HEADING.match(line.strip())),
        None,
    )
    if heading is None or heading + 1 >= len(lines):
        return LicenseResolution.invalid()

    detected = classify_license_text("\n".join(lines[heading + 1 :]).strip())
    if detected is None:
        return LicenseResolution.invalid()

    entry = DetectedLicense(
        type=detected.type,
        confidence=max(_MIN_CONFIDENCE, detected.confidence / 2),
        source=readme.relative_to(root).as_posix(),
        license_line=detected.license_line,
    )
    return LicenseResolution(valid=True, licenses=(entry,))


# ── composed ─────────────────────────────────────────────────────────────


def resolve_license(
    manifest: Mapping[str, Any] | None,
    package_root: str | os.PathLike[str],
) -> LicenseResolution:
    """Manifest fields first, then license files, then the README."""
    declared = resolve_from_manifest(manifest)
    if declared.valid:
        return declared

    from_files = resolve_from_files(package_root)
    if from_files.valid:
        log.debug("resolver.license_from_files", root=str(package_root), types=from_files.types)
        return from_files

    from_readme = resolve_from_readme(package_root)
    if from_readme.valid:
        log.debug("resolver.license_from_readme", root=str(package_root), types=from_readme.types)
        return from_readme

    return LicenseResolution.invalid()
