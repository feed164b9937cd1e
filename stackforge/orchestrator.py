"""
Chain Orchestrator
==================

Installs several features in one run.

All names are resolved and all options validated before anything happens,
so an unknown feature or bad option aborts the chain with zero side effects.
Features then run in the registry's topological order. The first feature
whose outcome is not success halts the chain: every later feature is
recorded as SkippedFeature(reason="earlier-failure") without being scanned,
validated or run. A chain therefore holds at most one non-skipped failure.

Per-feature states: not_started -> validating -> {rejected | running} ->
{succeeded | failed}, or skipped.
Chain states: pending -> running -> {completed | halted_on_failure}.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping, Union

from pydantic import BaseModel

from stackforge.errors import UnknownFeatureError
from stackforge.executor import (
    ExecutionResult,
    FeatureStatus,
    StepCallback,
    StepExecutor,
    TransitionCallback,
)
from stackforge.features import FeatureRegistry
from stackforge.reporting import log_chain_result

_logger = logging.getLogger(__name__)

SKIP_REASON_EARLIER_FAILURE = "earlier-failure"


class ChainStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    HALTED_ON_FAILURE = "halted_on_failure"


@dataclass(frozen=True)
class SkippedFeature:
    """A feature never attempted because an earlier one failed."""
    feature_name: str
    reason: str = SKIP_REASON_EARLIER_FAILURE

    @property
    def status(self) -> FeatureStatus:
        return FeatureStatus.SKIPPED

    @property
    def succeeded(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "feature_name": self.feature_name,
            "status": self.status.value,
            "reason": self.reason,
        }


ChainEntry = Union[ExecutionResult, SkippedFeature]


@dataclass(frozen=True)
class ChainResult:
    """
    Result of a chain run.

    Attributes:
        ordered_features: Features in the order they were (or would have been) run
        per_feature: ExecutionResult or SkippedFeature per feature, same order
        status: completed or halted_on_failure
        total_elapsed_ms: Wall-clock duration of the whole chain
    """
    ordered_features: tuple[str, ...]
    per_feature: tuple[ChainEntry, ...]
    status: ChainStatus
    total_elapsed_ms: float = 0.0

    @property
    def failed_entry(self) -> ExecutionResult | None:
        """The ExecutionResult that halted the chain, if any."""
        for entry in self.per_feature:
            if isinstance(entry, ExecutionResult) and not entry.succeeded:
                return entry
        return None

    @property
    def skipped(self) -> list[str]:
        return [e.feature_name for e in self.per_feature if isinstance(e, SkippedFeature)]

    @property
    def succeeded(self) -> list[str]:
        return [e.feature_name for e in self.per_feature if e.succeeded]

    def entry(self, feature_name: str) -> ChainEntry:
        for entry in self.per_feature:
            if entry.feature_name == feature_name:
                return entry
        raise KeyError(feature_name)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        failed = self.failed_entry
        return {
            "status": self.status.value,
            "ordered_features": list(self.ordered_features),
            "per_feature": [e.to_dict() for e in self.per_feature],
            "failed_feature": failed.feature_name if failed else None,
            "skipped": self.skipped,
            "total_elapsed_ms": round(self.total_elapsed_ms, 3),
        }


class ChainOrchestrator:
    """
    Args:
        executor: StepExecutor used for every feature
        registry: Feature registry (defaults to the executor's)
    """

    def __init__(self, executor: StepExecutor, registry: FeatureRegistry | None = None):
        self.executor = executor
        self.registry = registry or executor.registry

    def run_chain(
        self,
        feature_names: Iterable[str],
        project_path: str | Path,
        options: Mapping[str, Mapping[str, Any] | BaseModel] | None = None,
        on_transition: TransitionCallback | None = None,
        on_step: StepCallback | None = None,
    ) -> ChainResult:
        """
        Install features in dependency order, stopping at the first failure.

        Args:
            feature_names: Features to install (order and duplicates don't matter)
            project_path: Target project directory
            options: Per-feature options keyed by feature name

        Raises:
            UnknownFeatureError: If a feature name (or an options key) is not registered
            InvalidOptionsError: If any feature's options are invalid
        """
        names = list(feature_names)
        options = options or {}
        for key in options:
            if key not in self.registry:
                raise UnknownFeatureError(key, known=self.registry.names())

        order = self.registry.topological_order(names)
        prepared = []
        for name in order:
            descriptor = self.registry.get(name)
            prepared.append((descriptor, descriptor.parse_options(options.get(name))))

        start = time.perf_counter()
        _logger.debug("Chain %s -> %s", ChainStatus.PENDING.value, ChainStatus.RUNNING.value)
        entries: list[ChainEntry] = []
        halted = False
        for descriptor, parsed in prepared:
            if halted:
                entries.append(SkippedFeature(descriptor.name))
                if on_transition:
                    on_transition(descriptor.name, FeatureStatus.SKIPPED)
                continue

            result = self.executor.execute(
                descriptor, project_path, parsed, on_step=on_step, on_transition=on_transition
            )
            entries.append(result)
            if not result.succeeded:
                halted = True

        chain = ChainResult(
            ordered_features=tuple(order),
            per_feature=tuple(entries),
            status=ChainStatus.HALTED_ON_FAILURE if halted else ChainStatus.COMPLETED,
            total_elapsed_ms=(time.perf_counter() - start) * 1000,
        )
        log_chain_result(chain)
        return chain
