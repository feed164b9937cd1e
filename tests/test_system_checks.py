"""
Tests for host toolchain checks, driven by a fake runner.
"""

from conftest import FakeRunner
from stackforge.system_checks import (
    check_git,
    check_node,
    check_system_requirements,
    parse_version,
)

HEALTHY = {
    "node --version": (0, "v20.11.1\n"),
    "pnpm --version": (0, "9.1.0\n"),
    "git --version": (0, "git version 2.43.0\n"),
}


class TestParseVersion:
    def test_parses_prefixed_versions(self):
        assert parse_version("v20.11.1") == (20, 11, 1)
        assert parse_version("git version 2.39.3 (Apple Git-146)") == (2, 39, 3)
        assert parse_version("1.2") == (1, 2)

    def test_no_version(self):
        assert parse_version("command not found") is None


class TestChecks:
    def test_all_healthy(self):
        report = check_system_requirements(FakeRunner(outputs=HEALTHY))
        assert report.valid
        assert report.errors == ()
        assert report.warnings == ()
        assert report.to_dict()["checks"]["node"]["version"] == "v20.11.1"

    def test_old_node_is_an_error(self):
        check = check_node(FakeRunner(outputs={"node --version": (0, "v16.20.0")}))
        assert not check.valid
        assert "too old" in check.error

    def test_missing_package_manager_is_an_error(self):
        outputs = dict(HEALTHY)
        outputs["pnpm --version"] = (127, "")
        report = check_system_requirements(FakeRunner(outputs=outputs))
        assert not report.valid
        assert "npm install -g pnpm" in report.errors[0]

    def test_other_package_manager(self):
        outputs = dict(HEALTHY)
        outputs["bun --version"] = (0, "1.1.0")
        report = check_system_requirements(FakeRunner(outputs=outputs), package_manager="bun")
        assert report.valid
        assert "bun" in report.to_dict()["checks"]

    def test_old_git_is_only_a_warning(self):
        outputs = dict(HEALTHY)
        outputs["git --version"] = (0, "git version 2.20.1")
        report = check_system_requirements(FakeRunner(outputs=outputs))
        assert report.valid
        assert report.warnings[0].endswith("Git hooks will be skipped.")

    def test_missing_git(self):
        check = check_git(FakeRunner(fail_on="git"))
        assert not check.valid
        assert check.required is False
