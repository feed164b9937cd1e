"""
Precondition Validator
======================

Gates a feature install on the current ProjectState:

1. the feature's conflict flag is already true -> ConflictError
2. the first required flag (declaration order) that is false -> PreconditionError
3. otherwise ok

The check is pure: it reads the ProjectState it is given and nothing else,
so it can be called any number of times with identical results.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stackforge.errors import ConflictError, PreconditionError
from stackforge.features import FeatureDescriptor, FeatureRegistry
from stackforge.project_state import ProjectState


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating one feature against a state.

    Attributes:
        ok: True when the feature may be installed
        error: ConflictError or PreconditionError when not ok
    """
    ok: bool
    error: ConflictError | PreconditionError | None = None

    @property
    def is_conflict(self) -> bool:
        return isinstance(self.error, ConflictError)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "error": self.error.to_dict() if self.error else None,
        }


_OK = ValidationResult(ok=True)


class PreconditionValidator:
    """
    Args:
        registry: Used only to name the feature that provides a missing flag
    """

    def __init__(self, registry: FeatureRegistry | None = None):
        self.registry = registry

    def validate(self, feature: FeatureDescriptor, state: ProjectState) -> ValidationResult:
        if state[feature.conflict_flag]:
            return ValidationResult(ok=False, error=ConflictError(feature.name, feature.conflict_flag))

        for flag in feature.requires:
            if not state[flag]:
                provider = self.registry.provider_of(flag) if self.registry else None
                return ValidationResult(
                    ok=False,
                    error=PreconditionError(feature.name, missing=flag, provided_by=provider),
                )
        return _OK

    def missing_requirements(self, feature: FeatureDescriptor, state: ProjectState) -> list[str]:
        """Every required flag that is false, in declaration order."""
        return [flag for flag in feature.requires if not state[flag]]
