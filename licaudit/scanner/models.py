"""Data models for the node_modules scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from licaudit.resolvers.models import PackageRecord


@dataclass
class DiscoveredModule:
    """An installed package found under node_modules."""

    name: str  # "lodash" or "@babel/core"
    root: Path
    manifest_path: Path
    license_path: Path | None = None

    @property
    def original_paths(self) -> list[str]:
        paths = [str(self.manifest_path)]
        if self.license_path is not None:
            paths.append(str(self.license_path))
        return paths


@dataclass
class UnresolvedPackage:
    """A package whose license could not be determined by any means."""

    name: str
    version: str | None
    local_path: str


@dataclass
class ScanOptions:
    """Knobs for one scan, collected from CLI flags and environment."""

    prod: bool = False
    pedantic: bool = False
    concurrency: int = 8


@dataclass
class ScanResult:
    """Result of scanning one project root."""

    target_name: str | None
    target_version: str | None
    records: list[PackageRecord] = field(default_factory=list)
    unresolved: list[UnresolvedPackage] = field(default_factory=list)
