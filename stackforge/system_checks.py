"""
System Requirement Checks
=========================

Verifies the host toolchain before an install:

- Node.js 18 or newer (required by Next.js 15)           -> error
- the configured package manager is available            -> error
- Git 2.31 or newer (required by Lefthook hooks)          -> warning only

Checks run through the same CommandRunner as feature steps, so tests can
substitute a fake runner.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from stackforge.config import DEFAULT_PACKAGE_MANAGER
from stackforge.executor import Runner

MIN_NODE_MAJOR = 18
MIN_GIT_VERSION = (2, 31)

_VERSION_RE = re.compile(r"(\d+)\.(\d+)(?:\.(\d+))?")


@dataclass(frozen=True)
class RequirementCheck:
    """
    Result of one tool check.

    Attributes:
        name: Tool name ("node", "pnpm", "git")
        valid: Whether the requirement is met
        version: Detected version string, if any
        error: Why the requirement is not met
        required: False for checks that only produce warnings
    """
    name: str
    valid: bool
    version: str | None = None
    error: str | None = None
    required: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "valid": self.valid,
            "version": self.version,
            "error": self.error,
            "required": self.required,
        }


@dataclass(frozen=True)
class SystemCheckReport:
    checks: tuple[RequirementCheck, ...]
    errors: tuple[str, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "checks": {c.name: c.to_dict() for c in self.checks},
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def parse_version(text: str) -> tuple[int, ...] | None:
    """First dotted version in text, e.g. 'git version 2.43.0' -> (2, 43, 0)."""
    match = _VERSION_RE.search(text)
    if not match:
        return None
    return tuple(int(part) for part in match.groups() if part is not None)


def check_node(runner: Runner, cwd: str = ".") -> RequirementCheck:
    result = runner.run("node --version", cwd)
    if not result.succeeded:
        return RequirementCheck("node", False, error="Node.js not found or not accessible")
    raw = result.stdout.strip()
    version = parse_version(raw)
    if version is None:
        return RequirementCheck("node", False, error=f"Could not parse Node.js version: {raw!r}")
    if version[0] < MIN_NODE_MAJOR:
        return RequirementCheck(
            "node",
            False,
            version=raw,
            error=f"Node.js version {raw} is too old. Next.js 15 requires Node.js {MIN_NODE_MAJOR} or newer.",
        )
    return RequirementCheck("node", True, version=raw)


def check_package_manager(runner: Runner, package_manager: str = DEFAULT_PACKAGE_MANAGER, cwd: str = ".") -> RequirementCheck:
    result = runner.run(f"{package_manager} --version", cwd)
    if not result.succeeded:
        hint = "npm install -g pnpm" if package_manager == "pnpm" else f"install {package_manager}"
        return RequirementCheck(
            package_manager, False, error=f"{package_manager} not found. Please install it: {hint}"
        )
    return RequirementCheck(package_manager, True, version=result.stdout.strip())


def check_git(runner: Runner, cwd: str = ".") -> RequirementCheck:
    result = runner.run("git --version", cwd)
    if not result.succeeded:
        return RequirementCheck("git", False, error="Git not found or not accessible.", required=False)
    version = parse_version(result.stdout)
    if version is None or len(version) < 2:
        return RequirementCheck("git", False, error="Could not parse Git version.", required=False)
    text = ".".join(str(part) for part in version)
    if version[:2] < MIN_GIT_VERSION:
        return RequirementCheck(
            "git",
            False,
            version=text,
            error=f"Git version {text} is too old. Lefthook requires Git 2.31.0 or newer.",
            required=False,
        )
    return RequirementCheck("git", True, version=text, required=False)


def check_system_requirements(
    runner: Runner,
    package_manager: str = DEFAULT_PACKAGE_MANAGER,
) -> SystemCheckReport:
    """Run every check; failed required checks are errors, the rest warnings."""
    checks = (
        check_node(runner),
        check_package_manager(runner, package_manager),
        check_git(runner),
    )
    errors = [c.error for c in checks if not c.valid and c.required]
    warnings = [f"{c.error} Git hooks will be skipped." for c in checks if not c.valid and not c.required]
    return SystemCheckReport(checks=checks, errors=tuple(errors), warnings=tuple(warnings))
