"""Discover installed packages under node_modules and resolve them."""

from licaudit.scanner.aggregator import (
    build_record,
    extract_licenses,
    extract_licenses_async,
    merge_records,
    scan_project,
)
from licaudit.scanner.models import DiscoveredModule, ScanOptions, ScanResult, UnresolvedPackage
from licaudit.scanner.walker import is_valid_start_dir, read_target_manifest, scan_node_modules

__all__ = [
    "DiscoveredModule",
    "ScanOptions",
    "ScanResult",
    "UnresolvedPackage",
    "build_record",
    "extract_licenses",
    "extract_licenses_async",
    "is_valid_start_dir",
    "merge_records",
    "read_target_manifest",
    "scan_node_modules",
    "scan_project",
]
