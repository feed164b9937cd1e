"""
Installer Facade
================

Public entry points: scan a project, install one feature, install a chain of
features, or plan a chain without side effects.

Installs into the same directory are serialized by a per-directory lock
(keyed by resolved path) held for the whole install or chain. Different
directories proceed independently.

Usage:
    from stackforge import installer

    state = installer.scan("./my-app")
    result = installer.install("database", "./my-app", {"provider": "sqlite"})
    chain = installer.install_all(["core", "database", "auth"], "./my-app")
"""
from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from pydantic import BaseModel

from stackforge.artifacts import ArtifactWriter
from stackforge.catalog import default_registry
from stackforge.command_runner import CommandRunner
from stackforge.config import InstallerSettings, load_settings
from stackforge.executor import (
    ExecutionResult,
    Runner,
    StepCallback,
    StepExecutor,
    TransitionCallback,
)
from stackforge.features import FeatureRegistry
from stackforge.manifest import ManifestStore
from stackforge.orchestrator import ChainOrchestrator, ChainResult
from stackforge.project_state import ProjectState, ProjectStateScanner
from stackforge.system_checks import SystemCheckReport, check_system_requirements
from stackforge.validator import PreconditionValidator

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanEntry:
    """
    One feature of a planned chain.

    Attributes:
        feature_name: Feature
        installed: Its conflict flag is already true
        missing: Required flags that are false now and not provided earlier in the plan
    """
    feature_name: str
    installed: bool
    missing: tuple[str, ...] = ()

    @property
    def ready(self) -> bool:
        return not self.installed and not self.missing

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_name": self.feature_name,
            "installed": self.installed,
            "missing": list(self.missing),
            "ready": self.ready,
        }


@dataclass(frozen=True)
class InstallPlan:
    order: tuple[str, ...]
    state: ProjectState
    entries: tuple[PlanEntry, ...]

    @property
    def runnable(self) -> bool:
        """True if the chain would pass every precondition as planned."""
        return all(entry.ready for entry in self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": list(self.order),
            "state": self.state.to_dict(),
            "entries": [entry.to_dict() for entry in self.entries],
            "runnable": self.runnable,
        }


class _DirectoryLocks:
    """
    Lazily created lock per resolved directory.

    Entries are weak: a lock nobody holds or waits on is dropped, so a
    long-running server does not accumulate one lock per path ever seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def get(self, project_path: str | Path) -> threading.Lock:
        key = str(Path(project_path).resolve())
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


class Installer:
    """
    Wires the registry, scanner, validator, executor and orchestrator.

    Args:
        registry: Feature registry (built-in catalogue by default)
        runner: Command runner (configured from settings by default)
        writer: Artifact writer
        settings: InstallerSettings (loaded from the environment by default)
    """

    def __init__(
        self,
        registry: FeatureRegistry | None = None,
        runner: Runner | None = None,
        writer: ArtifactWriter | None = None,
        settings: InstallerSettings | None = None,
    ):
        self.settings = settings or load_settings()
        self.registry = registry or default_registry()
        self.runner = runner or CommandRunner(
            timeout_seconds=self.settings.command_timeout_seconds,
            max_output_chars=self.settings.max_output_chars,
        )
        self.scanner = ProjectStateScanner()
        self.validator = PreconditionValidator(self.registry)
        self.executor = StepExecutor(
            self.registry,
            runner=self.runner,
            writer=writer or ArtifactWriter(),
            manifest_store=ManifestStore(),
            scanner=self.scanner,
            validator=self.validator,
            package_manager=self.settings.package_manager,
        )
        self.orchestrator = ChainOrchestrator(self.executor, self.registry)
        self._locks = _DirectoryLocks()

    @contextmanager
    def lock(self, project_path: str | Path) -> Iterator[None]:
        """Hold the directory lock for project_path."""
        lock = self._locks.get(project_path)
        if not lock.acquire(blocking=False):
            _logger.info("Waiting for another install in %s to finish", project_path)
            lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def features(self) -> list[dict[str, Any]]:
        return self.registry.describe()

    def scan(self, project_path: str | Path) -> ProjectState:
        return self.scanner.scan(project_path)

    def install(
        self,
        feature_name: str,
        project_path: str | Path,
        options: Mapping[str, Any] | BaseModel | None = None,
        on_step: StepCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> ExecutionResult:
        """
        Install one feature.

        Raises:
            UnknownFeatureError: If the feature is not registered
            InvalidOptionsError: If the options are invalid
        """
        descriptor = self.registry.get(feature_name)
        parsed = descriptor.parse_options(options)
        with self.lock(project_path):
            return self.executor.execute(
                descriptor, project_path, parsed, on_step=on_step, on_transition=on_transition
            )

    def install_all(
        self,
        feature_names: Iterable[str],
        project_path: str | Path,
        options: Mapping[str, Mapping[str, Any] | BaseModel] | None = None,
        on_step: StepCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> ChainResult:
        """Install features in dependency order; see ChainOrchestrator.run_chain."""
        names = list(feature_names)
        with self.lock(project_path):
            return self.orchestrator.run_chain(
                names, project_path, options, on_transition=on_transition, on_step=on_step
            )

    def plan(self, feature_names: Iterable[str], project_path: str | Path) -> InstallPlan:
        """
        Order features and report what each would need, without side effects.

        A requirement counts as satisfied when it is true now or is provided
        by a feature earlier in the plan.

        Raises:
            UnknownFeatureError: If any feature is not registered
        """
        order = self.registry.topological_order(feature_names)
        state = self.scanner.scan(project_path)
        provided = {flag for flag in state.active_flags()}
        entries = []
        for name in order:
            descriptor = self.registry.get(name)
            installed = state[descriptor.conflict_flag]
            missing = tuple(flag for flag in descriptor.requires if flag not in provided)
            entries.append(PlanEntry(name, installed=installed, missing=missing))
            provided.add(descriptor.provides)
        return InstallPlan(order=tuple(order), state=state, entries=tuple(entries))

    def check_system(self) -> SystemCheckReport:
        return check_system_requirements(self.runner, self.settings.package_manager)


# =============================================================================
# Module-level convenience API
# =============================================================================

_default_installer: Installer | None = None
_default_lock = threading.Lock()


def get_installer() -> Installer:
    """Process-wide Installer with the built-in catalogue and env settings."""
    global _default_installer
    with _default_lock:
        if _default_installer is None:
            _default_installer = Installer()
        return _default_installer


def scan(project_path: str | Path) -> ProjectState:
    return get_installer().scan(project_path)


def install(
    feature_name: str,
    project_path: str | Path,
    options: Mapping[str, Any] | None = None,
) -> ExecutionResult:
    return get_installer().install(feature_name, project_path, options)


def install_all(
    feature_names: Iterable[str],
    project_path: str | Path,
    options: Mapping[str, Mapping[str, Any]] | None = None,
) -> ChainResult:
    return get_installer().install_all(feature_names, project_path, options)
