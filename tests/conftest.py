"""Shared pytest fixtures for licaudit tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest


def write_package(
    directory: Path,
    manifest: dict | None = None,
    files: dict[str, str] | None = None,
) -> Path:
    """Create *directory* with a package.json and any extra *files*."""
    directory.mkdir(parents=True, exist_ok=True)
    if manifest is not None:
        (directory / "package.json").write_text(json.dumps(manifest))
    for relative, content in (files or {}).items():
        path = directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return directory


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small installed npm project.

    ``@scope/util``, ``left-pad`` and the nested ``nested-dep`` are
    production dependencies; ``jest`` is a dev dependency and ``mystery``
    declares no license anywhere.
    """
    root = tmp_path / "app"
    write_package(
        root,
        {
            "name": "app",
            "version": "1.0.0",
            "dependencies": {"left-pad": "^1.3.0", "@scope/util": "^2.0.0"},
            "devDependencies": {"jest": "^29.0.0"},
        },
    )
    modules = root / "node_modules"
    write_package(
        modules / "left-pad",
        {
            "name": "left-pad",
            "version": "1.3.0",
            "license": "WTFPL",
            "repository": "github:stevemao/left-pad",
        },
    )
    write_package(
        modules / "@scope" / "util",
        {
            "name": "@scope/util",
            "version": "2.0.0",
            "license": "MIT",
            "repository": {"type": "git", "url": "git+https://github.com/scope/util.git"},
            "dependencies": {"nested-dep": "^0.1.0"},
        },
        files={"LICENSE": "MIT License\n\nCopyright (c) 2020 Scope\n"},
    )
    write_package(
        modules / "@scope" / "util" / "node_modules" / "nested-dep",
        {
            "name": "nested-dep",
            "version": "0.1.0",
            "licenses": [{"type": "ISC", "url": "https://opensource.org/licenses/ISC"}],
        },
    )
    write_package(modules / "jest", {"name": "jest", "version": "29.0.0", "license": "MIT"})
    write_package(modules / "mystery", {"name": "mystery", "version": "0.0.1"})
    write_package(modules / ".bin", files={"jest": "#!/usr/bin/env node\n"})
    return root


@pytest.fixture
def make_package():
    return write_package
