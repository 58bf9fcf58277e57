"""Provenance resolvers: canonical repository and license per package."""

from licaudit.resolvers.license import (
    classify_license_text,
    resolve_from_files,
    resolve_from_manifest,
    resolve_from_readme,
    resolve_license,
)
from licaudit.resolvers.models import (
    DeclaredLicense,
    DetectedLicense,
    LicenseEntry,
    LicenseResolution,
    PackageRecord,
    ScmInfo,
    ScmType,
)
from licaudit.resolvers.scm import combine_subpath_with_repo, repo_base_url, resolve_scm

__all__ = [
    "DeclaredLicense",
    "DetectedLicense",
    "LicenseEntry",
    "LicenseResolution",
    "PackageRecord",
    "ScmInfo",
    "ScmType",
    "classify_license_text",
    "combine_subpath_with_repo",
    "repo_base_url",
    "resolve_from_files",
    "resolve_from_manifest",
    "resolve_from_readme",
    "resolve_license",
    "resolve_scm",
]
