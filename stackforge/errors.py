"""
Installer Error Taxonomy
========================

Exception classes raised or recorded by the installation orchestrator.

Validation-time errors (zero side effects):
- UnknownFeatureError: feature name not in the registry (raised)
- InvalidOptionsError: feature options failed validation (raised)
- PreconditionError: a required flag is false (returned as an outcome)
- ConflictError: the feature's own marker flag is already true (returned)

Execution-time errors (captured into the failing StepResult):
- CommandExecutionError: package-manager/shell command exited non-zero
- ArtifactWriteError: a generated file could not be written
- ManifestPatchError: package.json unreadable, malformed or unwritable

Every error carries a machine-readable error_code, a message and optional
details, and serializes with to_dict() for the CLI and HTTP layers.
"""
from __future__ import annotations

from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCode:
    """Machine-readable identifiers for installer errors."""
    UNKNOWN_FEATURE = "UNKNOWN_FEATURE"
    INVALID_OPTIONS = "INVALID_OPTIONS"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    CONFLICT = "CONFLICT"
    COMMAND_FAILED = "COMMAND_FAILED"
    ARTIFACT_WRITE_FAILED = "ARTIFACT_WRITE_FAILED"
    MANIFEST_PATCH_FAILED = "MANIFEST_PATCH_FAILED"
    REGISTRY_ERROR = "REGISTRY_ERROR"


# =============================================================================
# Base Exception
# =============================================================================

class StackforgeError(Exception):
    """
    Base class for all installer errors.

    Attributes:
        error_code: Machine-readable code from ErrorCode
        message: Human-readable message
        details: Optional structured context (feature, step, path, ...)
    """

    error_code: str = "STACKFORGE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": dict(self.details),
        }


class RegistryError(StackforgeError):
    """Raised when the static feature graph is malformed (cycle, duplicate, dangling flag)."""

    error_code = ErrorCode.REGISTRY_ERROR


# =============================================================================
# Validation-time Errors
# =============================================================================

class UnknownFeatureError(StackforgeError):
    """Raised for a feature name that is not in the registry."""

    error_code = ErrorCode.UNKNOWN_FEATURE

    def __init__(self, feature_name: str, known: list[str] | None = None):
        self.feature_name = feature_name
        details: dict[str, Any] = {"feature": feature_name}
        if known:
            details["known_features"] = list(known)
        super().__init__(f"Unknown feature: '{feature_name}'", details)


class InvalidOptionsError(StackforgeError):
    """Raised when options passed to a feature fail its options model."""

    error_code = ErrorCode.INVALID_OPTIONS

    def __init__(self, feature_name: str, errors: list[dict[str, Any]]):
        self.feature_name = feature_name
        self.errors = errors
        if len(errors) == 1:
            message = f"Invalid option for '{feature_name}': {errors[0].get('message')}"
        else:
            message = f"Invalid options for '{feature_name}' ({len(errors)} errors)"
        super().__init__(message, {"feature": feature_name, "errors": errors})


class PreconditionError(StackforgeError):
    """
    A flag required by the feature is false in the current project state.

    Only the first missing requirement is reported.
    """

    error_code = ErrorCode.PRECONDITION_FAILED

    def __init__(self, feature_name: str, missing: str, provided_by: str | None = None):
        self.feature_name = feature_name
        self.missing = missing
        self.provided_by = provided_by
        message = f"Cannot install '{feature_name}': requires {missing}"
        if provided_by:
            message += f" (install '{provided_by}' first)"
        super().__init__(
            message,
            {"feature": feature_name, "missing": missing, "provided_by": provided_by},
        )


class ConflictError(StackforgeError):
    """The feature's conflict flag is already true: it is already installed."""

    error_code = ErrorCode.CONFLICT

    def __init__(self, feature_name: str, conflict_flag: str):
        self.feature_name = feature_name
        self.conflict_flag = conflict_flag
        super().__init__(
            f"'{feature_name}' is already installed ({conflict_flag} is set)",
            {"feature": feature_name, "conflict_flag": conflict_flag},
        )


# =============================================================================
# Execution-time Errors
# =============================================================================

class CommandExecutionError(StackforgeError):
    """A command exited non-zero, timed out, or could not be spawned."""

    error_code = ErrorCode.COMMAND_FAILED

    def __init__(
        self,
        command: str,
        exit_code: int | None,
        output: str = "",
        message: str | None = None,
    ):
        self.command = command
        self.exit_code = exit_code
        self.output = output
        if message is None:
            message = f"Command '{command}' failed with exit code {exit_code}"
        super().__init__(
            message,
            {"command": command, "exit_code": exit_code, "output": output[-2000:]},
        )


class ArtifactWriteError(StackforgeError):
    """A generated artifact could not be rendered or written."""

    error_code = ErrorCode.ARTIFACT_WRITE_FAILED

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}", {"path": path})


class ManifestPatchError(StackforgeError):
    """package.json could not be read, parsed, patched or written."""

    error_code = ErrorCode.MANIFEST_PATCH_FAILED

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to patch {path}: {reason}", {"path": path})


VALIDATION_ERRORS: tuple[type[StackforgeError], ...] = (
    UnknownFeatureError,
    InvalidOptionsError,
    PreconditionError,
    ConflictError,
)

EXECUTION_ERRORS: tuple[type[StackforgeError], ...] = (
    CommandExecutionError,
    ArtifactWriteError,
    ManifestPatchError,
)
