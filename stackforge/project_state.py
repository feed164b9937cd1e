"""
Project State Detection
=======================

Derives which features are active in a target directory from the traces
earlier installs left behind: packages declared in package.json, marker
files, and generated directories.

Each flag has one or more Evidence predicates. A predicate holds when every
package, file and directory it lists is present; a flag is true when ANY of
its predicates holds. This lets a feature be detected either through the
packages it installed or through the files it generated.

Scanning is read-only and best-effort:
- a missing project root yields all flags False;
- a package.json that exists but cannot be read or parsed yields all flags
  False (logged at warning level);
- an absent package.json contributes no package evidence, marker files are
  still checked.

ProjectState values are immutable and created fresh by every scan. Callers
re-scan instead of patching a previous snapshot.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from stackforge.manifest import DEPENDENCIES_KEY, DEV_DEPENDENCIES_KEY, manifest_path

_logger = logging.getLogger(__name__)


# =============================================================================
# Flag Names
# =============================================================================

HAS_BASE_PROJECT = "has_base_project"
HAS_LINTING = "has_linting"
HAS_EDITOR_CONFIG = "has_editor_config"
HAS_ENV_CONFIG = "has_env_config"
HAS_DATABASE = "has_database"
HAS_AUTHENTICATION = "has_authentication"
HAS_PROTECTED_ROUTES = "has_protected_routes"
HAS_PAYMENTS = "has_payments"
HAS_PAYMENT_WEBHOOKS = "has_payment_webhooks"
HAS_TEAM_MANAGEMENT = "has_team_management"
HAS_FORM_HANDLING = "has_form_handling"
HAS_TESTING = "has_testing"
HAS_GIT_WORKFLOW = "has_git_workflow"
HAS_I18N = "has_i18n"


# =============================================================================
# Evidence
# =============================================================================

@dataclass(frozen=True)
class Evidence:
    """
    One way of detecting a feature. Holds when all listed items are present.

    Attributes:
        packages: Package names that must be declared (dependencies or devDependencies)
        files: Files (relative to the project root) that must exist
        directories: Directories (relative to the project root) that must exist
    """
    packages: tuple[str, ...] = ()
    files: tuple[str, ...] = ()
    directories: tuple[str, ...] = ()

    def holds(self, root: Path, declared: set[str]) -> bool:
        if not (self.packages or self.files or self.directories):
            return False
        return (
            all(name in declared for name in self.packages)
            and all((root / f).is_file() for f in self.files)
            and all((root / d).is_dir() for d in self.directories)
        )


def _pkg(*names: str) -> Evidence:
    return Evidence(packages=names)


def _file(*paths: str) -> Evidence:
    return Evidence(files=paths)


# Declaration order here is the order of ProjectState.to_dict().
FLAG_EVIDENCE: dict[str, tuple[Evidence, ...]] = {
    HAS_BASE_PROJECT: (
        _pkg("next"),
        _file("next.config.ts"),
        _file("next.config.mjs"),
        _file("next.config.js"),
    ),
    HAS_LINTING: (_pkg("@biomejs/biome"), _file("biome.json")),
    HAS_EDITOR_CONFIG: (_file(".vscode/settings.json"),),
    HAS_ENV_CONFIG: (_file(".env.example"),),
    HAS_DATABASE: (_pkg("drizzle-orm"), _file("drizzle.config.ts")),
    HAS_AUTHENTICATION: (_pkg("jose", "bcryptjs"), _file("lib/auth/session.ts")),
    HAS_PROTECTED_ROUTES: (_file("middleware.ts"),),
    HAS_PAYMENTS: (_pkg("stripe"), _file("lib/payments/stripe.ts")),
    HAS_PAYMENT_WEBHOOKS: (_file("app/api/webhooks/stripe/route.ts"),),
    HAS_TEAM_MANAGEMENT: (
        _file("models/team.ts"),
        _file("actions/team.ts", "lib/db/team-queries.ts"),
    ),
    HAS_FORM_HANDLING: (_pkg("react-hook-form"), _file("lib/forms/hooks.ts")),
    HAS_TESTING: (
        _pkg("vitest", "@playwright/test"),
        _file("vitest.config.ts", "playwright.config.ts"),
    ),
    HAS_GIT_WORKFLOW: (_pkg("lefthook"), _file("lefthook.yml")),
    HAS_I18N: (_pkg("next-intl"), _file("i18n.ts")),
}

ALL_FLAGS: tuple[str, ...] = tuple(FLAG_EVIDENCE)


# =============================================================================
# Project State
# =============================================================================

class ProjectState(Mapping):
    """
    Immutable snapshot of feature flags for one project directory.

    Every known flag is present; looking up an unknown flag returns False.
    """

    __slots__ = ("_flags",)

    def __init__(self, flags: Mapping[str, bool] | None = None):
        values = {flag: False for flag in ALL_FLAGS}
        if flags:
            for flag, value in flags.items():
                values[flag] = bool(value)
        self._flags = MappingProxyType(values)

    @classmethod
    def empty(cls) -> "ProjectState":
        return cls()

    @classmethod
    def from_flags(cls, *active: str, **flags: bool) -> "ProjectState":
        """Build a state from active flag names and/or keyword flags."""
        values: dict[str, bool] = {flag: True for flag in active}
        values.update(flags)
        return cls(values)

    def __getitem__(self, flag: str) -> bool:
        return self._flags.get(flag, False)

    def __contains__(self, flag: object) -> bool:
        return flag in self._flags

    def __iter__(self) -> Iterator[str]:
        return iter(self._flags)

    def __len__(self) -> int:
        return len(self._flags)

    def __repr__(self) -> str:
        active = ", ".join(self.active_flags()) or "none"
        return f"ProjectState(active: {active})"

    def active_flags(self) -> list[str]:
        return [flag for flag, value in self._flags.items() if value]

    def to_dict(self) -> dict[str, bool]:
        """Flags in declaration order."""
        return dict(self._flags)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


# =============================================================================
# Scanner
# =============================================================================

class ProjectStateScanner:
    """
    Reads a project directory and returns a fresh ProjectState.

    Args:
        evidence: Flag evidence table (defaults to FLAG_EVIDENCE)
    """

    def __init__(self, evidence: Mapping[str, tuple[Evidence, ...]] | None = None):
        self.evidence = dict(evidence) if evidence is not None else FLAG_EVIDENCE

    def scan(self, project_path: str | Path) -> ProjectState:
        root = Path(project_path)
        if not root.is_dir():
            _logger.debug("Project root %s does not exist; all flags false", root)
            return ProjectState.empty()

        declared = self._read_declared_packages(root)
        if declared is None:
            return ProjectState.empty()

        flags = {
            flag: any(e.holds(root, declared) for e in predicates)
            for flag, predicates in self.evidence.items()
        }
        return ProjectState(flags)

    def _read_declared_packages(self, root: Path) -> set[str] | None:
        """
        Package names from dependencies and devDependencies.

        Returns an empty set when package.json is absent and None when it
        exists but cannot be used.
        """
        path = manifest_path(root)
        if not path.exists():
            return set()
        try:
            data: Any = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            _logger.warning("Ignoring unreadable manifest %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            _logger.warning("Ignoring manifest %s: not a JSON object", path)
            return None

        declared: set[str] = set()
        for key in (DEPENDENCIES_KEY, DEV_DEPENDENCIES_KEY):
            section = data.get(key)
            if isinstance(section, dict):
                declared.update(section)
        return declared


_default_scanner = ProjectStateScanner()


def scan_project(project_path: str | Path) -> ProjectState:
    """Scan a project directory with the default evidence table."""
    return _default_scanner.scan(project_path)
