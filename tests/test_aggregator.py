"""Tests for per-package record building, extraction and merging."""

from __future__ import annotations

import pytest

from licaudit.resolvers.models import PackageRecord
from licaudit.scanner.aggregator import (
    build_record,
    extract_licenses,
    extract_licenses_async,
    merge_records,
    scan_project,
)
from licaudit.scanner.models import DiscoveredModule, ScanOptions, UnresolvedPackage
from licaudit.scanner.walker import read_target_manifest, scan_node_modules


def _modules(project) -> dict[str, DiscoveredModule]:
    return {m.name: m for m in scan_node_modules(project)}


def _record(name: str, version: str, license: str, parents: list[str]) -> PackageRecord:
    return PackageRecord(
        name=name,
        version=version,
        license=license,
        url=None,
        repo_base_url=None,
        parents=list(parents),
    )


class TestBuildRecord:
    def test_declared_license_with_license_file(self, project):
        record = build_record(_modules(project)["@scope/util"])
        assert isinstance(record, PackageRecord)
        assert record.version == "2.0.0"
        assert record.license == "MIT"
        assert record.url == "https://github.com/scope/util/blob/master/LICENSE"
        assert record.repo_base_url == "https://github.com/scope/util"
        assert len(record.original_paths) == 2

    def test_no_license_file(self, project):
        record = build_record(_modules(project)["left-pad"])
        assert record.license == "WTFPL"
        assert record.url is None
        assert record.repo_base_url == "https://github.com/stevemao/left-pad"

    def test_no_repository(self, project):
        record = build_record(_modules(project)["nested-dep"])
        assert record.license == "ISC"
        assert record.repo_base_url is None

    def test_license_detected_from_file(self, project, make_package):
        make_package(
            project / "node_modules" / "filelic",
            {"name": "filelic", "version": "1.0.0", "repository": "gitlab:a/filelic"},
            files={"docs/LICENSE.md": "MIT License\n"},
        )
        record = build_record(_modules(project)["filelic"])
        assert record.license == "MIT"
        assert record.url == "https://gitlab.com/a/filelic/-/blob/master/docs/LICENSE.md"

    def test_unresolved(self, project):
        module = _modules(project)["mystery"]
        result = build_record(module)
        assert result == UnresolvedPackage(
            name="mystery", version="0.0.1", local_path=str(module.manifest_path)
        )

    def test_broken_manifest(self, project):
        module = _modules(project)["jest"]
        module.manifest_path.write_text("{broken")
        assert build_record(module) is None


class TestExtractLicenses:
    def test_sync(self, project):
        records, unresolved = extract_licenses(scan_node_modules(project))
        assert [r.name for r in records] == ["@scope/util", "jest", "left-pad", "nested-dep"]
        assert [u.name for u in unresolved] == ["mystery"]

    @pytest.mark.asyncio
    async def test_async_matches_sync_order(self, project):
        modules = scan_node_modules(project)
        expected = extract_licenses(modules)
        assert await extract_licenses_async(modules, concurrency=2) == expected

    @pytest.mark.asyncio
    async def test_async_empty(self):
        assert await extract_licenses_async([]) == ([], [])


class TestScanProject:
    @pytest.mark.asyncio
    async def test_all_packages(self, project):
        result = await scan_project(project, read_target_manifest(project), ScanOptions())
        assert result.target_name == "app"
        assert result.target_version == "1.0.0"
        assert len(result.records) == 4
        assert [u.name for u in result.unresolved] == ["mystery"]

    @pytest.mark.asyncio
    async def test_prod_only(self, project):
        result = await scan_project(
            project, read_target_manifest(project), ScanOptions(prod=True, concurrency=1)
        )
        assert [r.name for r in result.records] == ["left-pad", "@scope/util", "nested-dep"]
        assert result.unresolved == []


class TestMergeRecords:
    def test_duplicates_fold_parents(self):
        merged = merge_records(
            [
                _record("b", "1.0.0", "MIT", ["app1"]),
                _record("a", "1.0.0", "ISC", ["app1"]),
                _record("b", "1.0.0", "MIT", ["app2"]),
                _record("b", "1.0.0", "MIT", ["app1"]),
            ]
        )
        assert [(r.name, r.parents) for r in merged] == [
            ("a", ["app1"]),
            ("b", ["app1", "app2"]),
        ]

    def test_different_versions_kept(self):
        merged = merge_records(
            [_record("a", "1.0.0", "MIT", ["x"]), _record("a", "2.0.0", "MIT", ["y"])]
        )
        assert [r.version for r in merged] == ["1.0.0", "2.0.0"]

    def test_different_licenses_kept(self):
        merged = merge_records(
            [_record("a", "1.0.0", "MIT", ["x"]), _record("a", "1.0.0", "ISC", ["y"])]
        )
        assert len(merged) == 2

    def test_empty(self):
        assert merge_records([]) == []
