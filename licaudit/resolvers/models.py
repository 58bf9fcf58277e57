"""Data models for the SCM and license resolvers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ScmType(str, Enum):
    """Closed set of repository kinds; anything unrecognized is ``OTHER``."""

    GIT = "git"
    SVN = "svn"
    GIST = "gist"
    NPM = "npm"
    OTHER = "other"

    @classmethod
    def coerce(cls, raw: Any) -> ScmType:
        if isinstance(raw, cls):
            return raw
        value = str(raw or "").strip().lower()
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class ScmInfo:
    """Canonical repository reference.

    When ``valid`` is False the remaining fields carry no meaning.
    """

    valid: bool
    type: ScmType = ScmType.OTHER
    url: str = ""
    directory: str = ""

    @classmethod
    def invalid(cls) -> ScmInfo:
        return cls(valid=False)


@dataclass(frozen=True)
class DeclaredLicense:
    """A license taken verbatim from a manifest field (fully trusted)."""

    type: str
    url: str | None = None


@dataclass(frozen=True)
class DetectedLicense:
    """A license guessed from a license file or README text."""

    type: str
    confidence: float
    source: str | None = None  # path relative to the package root
    license_line: str = ""


LicenseEntry = DeclaredLicense | DetectedLicense


@dataclass(frozen=True)
class LicenseResolution:
    """Outcome of a license lookup: ordered entries, empty when invalid."""

    valid: bool
    licenses: tuple[LicenseEntry, ...] = ()

    @classmethod
    def invalid(cls) -> LicenseResolution:
        return cls(valid=False)

    @property
    def types(self) -> list[str]:
        """Distinct license identifiers in declaration order."""
        return list(dict.fromkeys(entry.type for entry in self.licenses))

    def as_display_string(self) -> str | None:
        """Collapse to one string; several licenses become ``(A OR B)``."""
        types = self.types
        if not self.valid or not types:
            return None
        if len(types) == 1:
            return types[0]
        return "(" + " OR ".join(types) + ")"


@dataclass
class PackageRecord:
    """One resolved package, as consumed by the whitelist and the writers."""

    name: str
    version: str | None
    license: str
    url: str | None
    repo_base_url: str | None
    original_paths: list[str] = field(default_factory=list)
    parents: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "license": self.license,
            "url": self.url,
            "repoBaseUrl": self.repo_base_url,
            "originalPaths": list(self.original_paths),
            "parents": list(self.parents),
        }
