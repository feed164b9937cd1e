"""
stackforge
==========

Feature-by-feature installer for Next.js SaaS projects.
"""

__version__ = "0.1.0"

from stackforge.errors import (
    ArtifactWriteError,
    CommandExecutionError,
    ConflictError,
    InvalidOptionsError,
    ManifestPatchError,
    PreconditionError,
    RegistryError,
    StackforgeError,
    UnknownFeatureError,
)
from stackforge.project_state import ProjectState, ProjectStateScanner, scan_project
from stackforge.features import FeatureDescriptor, FeatureRegistry, StepKind, StepSpec
from stackforge.executor import (
    ExecutionResult,
    FeatureStatus,
    Outcome,
    StepExecutor,
    StepResult,
)
from stackforge.orchestrator import ChainOrchestrator, ChainResult, ChainStatus, SkippedFeature
from stackforge.installer import Installer, install, install_all, scan

__all__ = [
    "__version__",
    # Errors
    "StackforgeError",
    "RegistryError",
    "UnknownFeatureError",
    "InvalidOptionsError",
    "PreconditionError",
    "ConflictError",
    "CommandExecutionError",
    "ArtifactWriteError",
    "ManifestPatchError",
    # State
    "ProjectState",
    "ProjectStateScanner",
    "scan_project",
    # Features
    "FeatureDescriptor",
    "FeatureRegistry",
    "StepKind",
    "StepSpec",
    # Execution
    "ExecutionResult",
    "FeatureStatus",
    "Outcome",
    "StepExecutor",
    "StepResult",
    "ChainOrchestrator",
    "ChainResult",
    "ChainStatus",
    "SkippedFeature",
    # Facade
    "Installer",
    "install",
    "install_all",
    "scan",
]
