"""Tests for the licaudit CLI — real fixture projects, npm never invoked."""

from __future__ import annotations

import json
import os
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from licaudit import __version__
from licaudit.cli import (
    EXIT_ERROR,
    EXIT_LICENSE_MATCH,
    EXIT_MISSING,
    EXIT_OK,
    EXIT_WHITELIST,
    _env_int,
    main,
)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _whitelist(tmp_path, rules) -> str:
    path = tmp_path / "whitelist.json"
    path.write_text(json.dumps(rules))
    return str(path)


# ── env defaults ──


class TestEnvInt:
    def test_unset(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("LICAUDIT_TEST_INT", None)
            assert _env_int("LICAUDIT_TEST_INT", 8) == 8

    def test_value(self):
        with patch.dict(os.environ, {"LICAUDIT_TEST_INT": "3"}):
            assert _env_int("LICAUDIT_TEST_INT", 8) == 3

    def test_garbage_falls_back(self):
        with patch.dict(os.environ, {"LICAUDIT_TEST_INT": "many"}):
            assert _env_int("LICAUDIT_TEST_INT", 8) == 8

    def test_clamped_to_one(self):
        with patch.dict(os.environ, {"LICAUDIT_TEST_INT": "0"}):
            assert _env_int("LICAUDIT_TEST_INT", 8) == 1


# ── single project ──


class TestScan:
    def test_success(self, runner, project):
        result = runner.invoke(main, ["-d", str(project)])
        assert result.exit_code == EXIT_OK, result.output
        assert "Inspecting node_modules of app@1.0.0 ..." in result.output

    def test_unresolved_warning(self, runner, project):
        result = runner.invoke(main, ["-d", str(project)])
        assert "WARNING:" in result.output
        assert "mystery@0.0.1" in result.output

    def test_quiet_json_to_stdout(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-p", "-q", "-j", "-"])
        assert result.exit_code == EXIT_OK, result.output
        data = json.loads(result.output)
        assert [r["name"] for r in data] == ["left-pad", "@scope/util", "nested-dep"]
        assert data[1]["url"] == "https://github.com/scope/util/blob/master/LICENSE"
        assert all(r["parents"] == ["app"] for r in data)

    def test_csv_to_stdout_names_parent(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-p", "-q", "-c", "-"])
        assert result.exit_code == EXIT_OK, result.output
        rows = result.output.strip().split("\n")[1:]
        assert len(rows) == 3
        assert all(row.endswith(',"app"') for row in rows)

    def test_csv_file(self, runner, project, tmp_path):
        target = tmp_path / "out.csv"
        result = runner.invoke(main, ["-d", str(project), "-q", "-c", str(target)])
        assert result.exit_code == EXIT_OK, result.output
        lines = target.read_text().split("\n")
        assert lines[0].startswith('"module name"')
        assert len(lines) == 5

    def test_report_and_license_list(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-r", "short", "-l"])
        assert result.exit_code == EXIT_OK, result.output
        assert "MIT (2)" in result.output
        assert "   @scope/util, jest" in result.output
        assert "Used licenses (3): MIT, WTFPL, ISC" in result.output

    def test_invalid_dir(self, runner, tmp_path):
        result = runner.invoke(main, ["-d", str(tmp_path / "nope")])
        assert result.exit_code == EXIT_ERROR
        assert "not existing or not a NodeJS project" in result.output

    def test_prod_with_missing_dependency(self, runner, project):
        manifest = json.loads((project / "package.json").read_text())
        manifest["dependencies"]["ghost"] = "1.0.0"
        (project / "package.json").write_text(json.dumps(manifest))

        result = runner.invoke(main, ["-d", str(project), "-p"])
        assert result.exit_code == EXIT_ERROR
        assert "ghost" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert __version__ in result.output


# ── failure policies ──


class TestExitCodes:
    def test_fail_regex_matches_case_insensitive(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-f", "wtfpl"])
        assert result.exit_code == EXIT_LICENSE_MATCH
        assert 'the license "WTFPL" conflicts with the given regex!' in result.output

    def test_fail_regex_no_match(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-f", "^GPL"])
        assert result.exit_code == EXIT_OK

    def test_fail_regex_invalid(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-f", "("])
        assert result.exit_code == 2
        assert "invalid regular expression" in result.output

    def test_fail_on_missing(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-z"])
        assert result.exit_code == EXIT_MISSING
        assert "1 modules cannot be inspected!" in result.output

    def test_fail_on_missing_prod_only_passes(self, runner, project):
        result = runner.invoke(main, ["-d", str(project), "-z", "-p"])
        assert result.exit_code == EXIT_OK, result.output

    def test_whitelist_violation(self, runner, project, tmp_path):
        wl = _whitelist(tmp_path, [{"license": "MIT", "modules": []}])
        result = runner.invoke(main, ["-d", str(project), "-p", "-w", wl])
        assert result.exit_code == EXIT_WHITELIST
        assert "2 modules are not covered by the whitelist" in result.output
        assert "left-pad@1.3.0 (WTFPL)" in result.output
        assert "nested-dep@0.1.0 (ISC)" in result.output

    def test_whitelist_violation_logged(self, runner, project, tmp_path):
        wl = _whitelist(tmp_path, [{"license": "MIT", "modules": []}])
        with patch("licaudit.whitelist.reconciler.log") as mock_log:
            result = runner.invoke(main, ["-d", str(project), "-p", "-w", wl])
        assert result.exit_code == EXIT_WHITELIST
        events = [c.args[0] for c in mock_log.warning.call_args_list]
        assert events == ["whitelist.violation", "whitelist.violation"]
        packages = {c.kwargs["package"] for c in mock_log.warning.call_args_list}
        assert packages == {"left-pad", "nested-dep"}

    def test_linked_package_violates_whitelist(self, runner, project, tmp_path, make_package):
        target = make_package(
            tmp_path / "packages" / "linked",
            {"name": "linked", "version": "1.0.0", "license": "GPL-3.0"},
        )
        os.symlink(target, project / "node_modules" / "linked", target_is_directory=True)
        wl = _whitelist(
            tmp_path,
            [{"license": name, "modules": []} for name in ("MIT", "ISC", "WTFPL")],
        )
        result = runner.invoke(main, ["-d", str(project), "-w", wl])
        assert result.exit_code == EXIT_WHITELIST
        assert "linked@1.0.0 (GPL-3.0)" in result.output

    def test_linked_prod_dependency_is_audited(self, runner, project, tmp_path, make_package):
        target = make_package(
            tmp_path / "packages" / "linked",
            {"name": "linked", "version": "1.0.0", "license": "GPL-3.0"},
        )
        os.symlink(target, project / "node_modules" / "linked", target_is_directory=True)
        manifest = json.loads((project / "package.json").read_text())
        manifest["dependencies"]["linked"] = "file:../packages/linked"
        (project / "package.json").write_text(json.dumps(manifest))

        result = runner.invoke(main, ["-d", str(project), "-p", "-l"])
        assert result.exit_code == EXIT_OK, result.output
        assert "GPL-3.0" in result.output

    def test_whitelist_with_exception(self, runner, project, tmp_path):
        wl = _whitelist(
            tmp_path,
            [
                {"license": "MIT", "modules": []},
                {"license": "ISC", "modules": []},
                {"license": "WTFPL", "modules": ["left-pad"]},
            ],
        )
        result = runner.invoke(main, ["-d", str(project), "-p", "-w", wl])
        assert result.exit_code == EXIT_OK, result.output
        assert "1 modules are allowed by an explicit exception" in result.output

    def test_broken_whitelist(self, runner, project, tmp_path):
        path = tmp_path / "whitelist.json"
        path.write_text("[{")
        result = runner.invoke(main, ["-d", str(project), "-w", str(path)])
        assert result.exit_code == EXIT_ERROR
        assert "not valid JSON" in result.output
        assert "Inspecting" not in result.output


# ── whitelist generation ──


class TestCreateNewWhitelist:
    def test_writes_sample(self, runner, tmp_path):
        target = tmp_path / "whitelist.json"
        result = runner.invoke(main, ["--create-new-whitelist", str(target)])
        assert result.exit_code == EXIT_OK, result.output
        rows = json.loads(target.read_text())
        assert {"license": "MIT", "modules": []} in rows

    def test_ignores_other_flags(self, runner, tmp_path):
        target = tmp_path / "whitelist.json"
        result = runner.invoke(
            main, ["--create-new-whitelist", str(target), "-d", str(tmp_path / "nope"), "-z"]
        )
        assert result.exit_code == EXIT_OK
        assert target.exists()


# ── several projects from stdin ──


class TestInputMode:
    def test_merges_projects(self, runner, project, tmp_path):
        target = tmp_path / "all.json"
        result = runner.invoke(
            main,
            ["-d", "-", "-p", "-j", str(target)],
            input=f"{project}\n\n{project}\n",
        )
        assert result.exit_code == EXIT_OK, result.output
        assert f"1/2: {project}" in result.output
        assert "-" * 46 in result.output
        assert "Found 6 and reduced them to 3 modules." in result.output

        data = json.loads(target.read_text())
        assert [r["name"] for r in data] == ["@scope/util", "left-pad", "nested-dep"]
        assert all(r["parents"] == ["app"] for r in data)

    def test_empty_stdin(self, runner):
        result = runner.invoke(main, ["-d", "-"], input="")
        assert result.exit_code == EXIT_ERROR
        assert "no directory list provided" in result.output

    def test_invalid_dir_in_list(self, runner, project, tmp_path):
        result = runner.invoke(main, ["-d", "-"], input=f"{project}\n{tmp_path / 'nope'}\n")
        assert result.exit_code == EXIT_ERROR
        assert "not existing or not a NodeJS project" in result.output

    def test_policy_failure_stops_early(self, runner, project):
        result = runner.invoke(main, ["-d", "-", "-z"], input=f"{project}\n{project}\n")
        assert result.exit_code == EXIT_MISSING
        assert "2/2" not in result.output
