"""
Step Executor
=============

Installs one feature into a project directory:

1. Resolve the feature and validate its options (raises UnknownFeatureError
   or InvalidOptionsError, nothing touched yet).
2. Scan the project and run the PreconditionValidator. A conflict or missing
   requirement is returned as an ExecutionResult with no steps attempted.
3. Run the steps in declared order, timing each one. The first failing step
   stops the feature; its StepResult becomes `failed_step` and everything
   before it is in `completed_steps`.

Nothing is retried and nothing is rolled back. Files and manifest changes
from completed steps (and whatever the failing step managed to do) stay in
place, and the returned result says exactly how far the feature got.

Step dispatch by kind:
- install_packages: each rendered command goes to the CommandRunner; a
  non-zero exit, timeout or spawn failure raises CommandExecutionError
- write_artifact: each enabled Artifact is rendered and handed to the
  ArtifactWriter (ArtifactWriteError)
- patch_manifest: package.json is read, patched and written back
  (ManifestPatchError)

Any other exception raised while a step runs (a renderer bug, a runner that
raises) is converted to the error of that step's kind, so a failed step
always comes back as a result carrying the steps completed before it.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

from pydantic import BaseModel

from stackforge.artifacts import ArtifactWriter, resolve_artifact_path
from stackforge.command_runner import CommandResult, CommandRunner
from stackforge.config import DEFAULT_PACKAGE_MANAGER
from stackforge.errors import (
    EXECUTION_ERRORS,
    ArtifactWriteError,
    CommandExecutionError,
    ManifestPatchError,
    StackforgeError,
)
from stackforge.features import FeatureDescriptor, FeatureRegistry, StepContext, StepKind, StepSpec
from stackforge.manifest import ManifestStore, manifest_path
from stackforge.project_state import ProjectStateScanner
from stackforge.reporting import log_execution_result
from stackforge.validator import PreconditionValidator

_logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================

class Outcome(str, Enum):
    """Terminal outcome of one feature install."""

    SUCCESS = "success"
    PRECONDITION_FAILED = "precondition_failed"
    CONFLICT = "conflict"
    STEP_FAILED = "step_failed"


class FeatureStatus(str, Enum):
    """Per-feature state within a run."""

    NOT_STARTED = "not_started"
    VALIDATING = "validating"
    REJECTED = "rejected"       # precondition or conflict, nothing attempted
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"           # a step failed
    SKIPPED = "skipped"         # never attempted, an earlier feature failed


_STATUS_BY_OUTCOME = {
    Outcome.SUCCESS: FeatureStatus.SUCCEEDED,
    Outcome.PRECONDITION_FAILED: FeatureStatus.REJECTED,
    Outcome.CONFLICT: FeatureStatus.REJECTED,
    Outcome.STEP_FAILED: FeatureStatus.FAILED,
}


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class StepResult:
    """
    Record of one executed step.

    Attributes:
        step_index: 1-based position in the feature's declared steps
        step_name: StepSpec name
        succeeded: Whether the step completed
        elapsed_ms: Wall-clock duration
        error: Failure message, None on success
        error_type: Error class name (e.g. "CommandExecutionError"), None on success
    """
    step_index: int
    step_name: str
    succeeded: bool
    elapsed_ms: float
    error: str | None = None
    error_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_index": self.step_index,
            "step_name": self.step_name,
            "succeeded": self.succeeded,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass(frozen=True)
class ExecutionResult:
    """
    Result of installing one feature.

    Attributes:
        feature_name: Feature that was attempted
        outcome: success, precondition_failed, conflict or step_failed
        completed_steps: Passing steps 1..k, in execution order
        failed_step: The step that stopped the feature, if any
        total_elapsed_ms: Scan, validation and all executed steps
        error: Taxonomy error for any non-success outcome
        total_steps: Number of declared steps
    """
    feature_name: str
    outcome: Outcome
    completed_steps: tuple[StepResult, ...] = ()
    failed_step: StepResult | None = None
    total_elapsed_ms: float = 0.0
    error: StackforgeError | None = None
    total_steps: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @property
    def status(self) -> FeatureStatus:
        return _STATUS_BY_OUTCOME[self.outcome]

    @property
    def steps(self) -> tuple[StepResult, ...]:
        """All executed steps, the failing one last."""
        if self.failed_step is None:
            return self.completed_steps
        return self.completed_steps + (self.failed_step,)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "feature_name": self.feature_name,
            "outcome": self.outcome.value,
            "status": self.status.value,
            "completed_steps": [s.to_dict() for s in self.completed_steps],
            "failed_step": self.failed_step.to_dict() if self.failed_step else None,
            "total_steps": self.total_steps,
            "total_elapsed_ms": round(self.total_elapsed_ms, 3),
            "error": self.error.to_dict() if self.error else None,
        }


# =============================================================================
# Executor
# =============================================================================

class Runner(Protocol):
    def run(self, command: str, cwd: str | Path) -> CommandResult: ...


StepCallback = Callable[[str, StepResult], None]
TransitionCallback = Callable[[str, FeatureStatus], None]


class StepExecutor:
    """
    Runs a single feature against a project directory.

    Args:
        registry: Feature lookup
        runner: Command runner (CommandRunner by default)
        writer: Artifact writer (ArtifactWriter by default)
        manifest_store: package.json access (ManifestStore by default)
        scanner: ProjectStateScanner used before validation
        validator: PreconditionValidator
        package_manager: Used to render install commands
    """

    def __init__(
        self,
        registry: FeatureRegistry,
        runner: Runner | None = None,
        writer: ArtifactWriter | None = None,
        manifest_store: ManifestStore | None = None,
        scanner: ProjectStateScanner | None = None,
        validator: PreconditionValidator | None = None,
        package_manager: str = DEFAULT_PACKAGE_MANAGER,
    ):
        self.registry = registry
        self.runner = runner or CommandRunner()
        self.writer = writer or ArtifactWriter()
        self.manifest_store = manifest_store or ManifestStore()
        self.scanner = scanner or ProjectStateScanner()
        self.validator = validator or PreconditionValidator(registry)
        self.package_manager = package_manager

    def resolve(self, feature: str | FeatureDescriptor) -> FeatureDescriptor:
        if isinstance(feature, FeatureDescriptor):
            return feature
        return self.registry.get(feature)

    def run(
        self,
        feature: str | FeatureDescriptor,
        project_path: str | Path,
        options: Mapping[str, Any] | BaseModel | None = None,
        on_step: StepCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> ExecutionResult:
        """
        Install one feature.

        Raises:
            UnknownFeatureError: If the feature name is not registered
            InvalidOptionsError: If options fail the feature's options model
        """
        descriptor = self.resolve(feature)
        parsed = descriptor.parse_options(options)
        return self.execute(descriptor, project_path, parsed, on_step, on_transition)

    def execute(
        self,
        feature: FeatureDescriptor,
        project_path: str | Path,
        options: BaseModel,
        on_step: StepCallback | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> ExecutionResult:
        """Scan, validate and run steps for an already resolved feature and options."""
        notify = on_transition or _ignore
        start = time.perf_counter()
        root = Path(project_path)

        notify(feature.name, FeatureStatus.VALIDATING)
        state = self.scanner.scan(root)
        validation = self.validator.validate(feature, state)
        if not validation.ok:
            result = ExecutionResult(
                feature_name=feature.name,
                outcome=Outcome.CONFLICT if validation.is_conflict else Outcome.PRECONDITION_FAILED,
                total_elapsed_ms=_elapsed_ms(start),
                error=validation.error,
                total_steps=len(feature.steps),
            )
            return self._finish(result, notify)

        notify(feature.name, FeatureStatus.RUNNING)
        context = StepContext(
            project_path=root,
            options=options,
            state=state,
            package_manager=self.package_manager,
        )
        completed: list[StepResult] = []
        for index, step in enumerate(feature.steps, start=1):
            step_start = time.perf_counter()
            try:
                self._dispatch(step, context)
            except EXECUTION_ERRORS as e:
                error: StackforgeError | None = e
            except Exception as e:
                _logger.exception("Unexpected error in step '%s' of %s", step.name, feature.name)
                error = _step_error(step, context, e)
            else:
                error = None

            if error is not None:
                failed = StepResult(
                    step_index=index,
                    step_name=step.name,
                    succeeded=False,
                    elapsed_ms=_elapsed_ms(step_start),
                    error=error.message,
                    error_type=type(error).__name__,
                )
                if on_step:
                    on_step(feature.name, failed)
                result = ExecutionResult(
                    feature_name=feature.name,
                    outcome=Outcome.STEP_FAILED,
                    completed_steps=tuple(completed),
                    failed_step=failed,
                    total_elapsed_ms=_elapsed_ms(start),
                    error=error,
                    total_steps=len(feature.steps),
                )
                return self._finish(result, notify)

            passed = StepResult(
                step_index=index,
                step_name=step.name,
                succeeded=True,
                elapsed_ms=_elapsed_ms(step_start),
            )
            completed.append(passed)
            if on_step:
                on_step(feature.name, passed)

        result = ExecutionResult(
            feature_name=feature.name,
            outcome=Outcome.SUCCESS,
            completed_steps=tuple(completed),
            total_elapsed_ms=_elapsed_ms(start),
            total_steps=len(feature.steps),
        )
        return self._finish(result, notify)

    def _finish(self, result: ExecutionResult, notify: TransitionCallback) -> ExecutionResult:
        notify(result.feature_name, result.status)
        log_execution_result(result)
        return result

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _dispatch(self, step: StepSpec, context: StepContext) -> None:
        if step.kind == StepKind.INSTALL_PACKAGES:
            self._run_commands(step, context)
        elif step.kind == StepKind.WRITE_ARTIFACT:
            self._write_artifacts(step, context)
        elif step.kind == StepKind.PATCH_MANIFEST:
            self._patch_manifest(step, context)
        else:
            raise ValueError(f"Unsupported step kind: {step.kind}")

    def _run_commands(self, step: StepSpec, context: StepContext) -> None:
        try:
            commands = step.payload.render(context)
        except Exception as e:
            raise CommandExecutionError(
                step.name, None, message=f"Could not render commands for '{step.name}': {_describe(e)}"
            ) from e
        if not commands:
            return
        try:
            context.project_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArtifactWriteError(str(context.project_path), e.strerror or str(e)) from e

        for command in commands:
            try:
                result = self.runner.run(command, context.project_path)
            except Exception as e:
                raise CommandExecutionError(
                    command, None, message=f"Command '{command}' failed: {_describe(e)}"
                ) from e
            if not result.succeeded:
                message = None
                if result.error_message:
                    message = f"Command '{command}' failed: {result.error_message}"
                raise CommandExecutionError(command, result.exit_code, result.output, message=message)

    def _write_artifacts(self, step: StepSpec, context: StepContext) -> None:
        for artifact in step.payload:
            try:
                if not artifact.enabled(context):
                    continue
                target = resolve_artifact_path(context.project_path, artifact.path)
                self.writer.write(target, artifact.render(context))
            except StackforgeError:
                raise
            except Exception as e:
                raise ArtifactWriteError(artifact.path, _describe(e)) from e

    def _patch_manifest(self, step: StepSpec, context: StepContext) -> None:
        doc = self.manifest_store.read(context.project_path)
        manifest_patch = step.payload
        try:
            manifest_patch.apply(doc, context)
        except StackforgeError:
            raise
        except Exception as e:
            raise ManifestPatchError(
                str(manifest_path(context.project_path)),
                f"{manifest_patch.description}: {_describe(e)}",
            ) from e
        self.manifest_store.write(context.project_path, doc)


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


def _step_error(step: StepSpec, context: StepContext, exc: Exception) -> StackforgeError:
    """Map an unexpected exception to the taxonomy error for the step kind."""
    if step.kind == StepKind.WRITE_ARTIFACT:
        return ArtifactWriteError(str(context.project_path), _describe(exc))
    if step.kind == StepKind.PATCH_MANIFEST:
        return ManifestPatchError(str(manifest_path(context.project_path)), _describe(exc))
    return CommandExecutionError(step.name, None, message=f"Step '{step.name}' failed: {_describe(exc)}")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _ignore(feature_name: str, status: FeatureStatus) -> None:
    pass
