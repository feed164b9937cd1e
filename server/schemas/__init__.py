"""
Pydantic Schemas Package
========================

Request/response schemas for the stackforge HTTP API.

Install results are returned as the installer's own `to_dict()` payloads;
the models here cover request validation and the small fixed responses.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# Requests
# =============================================================================

class ProjectRequest(BaseModel):
    """Identifies a target project directory."""

    project_path: str = Field(..., min_length=1, description="Project directory on the server host")


class PlanRequest(ProjectRequest):
    features: list[str] = Field(..., min_length=1, description="Features to plan")


class InstallRequest(ProjectRequest):
    feature: str = Field(..., min_length=1, description="Feature name")
    options: dict[str, Any] = Field(default_factory=dict, description="Feature options")


class InstallAllRequest(ProjectRequest):
    features: list[str] = Field(..., min_length=1, description="Features to install")
    options: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Options per feature, keyed by feature name",
    )


# =============================================================================
# Responses
# =============================================================================

class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str


class ScanResponse(BaseModel):
    project_path: str
    flags: dict[str, bool]
    active: list[str]


__all__ = [
    "ProjectRequest",
    "PlanRequest",
    "InstallRequest",
    "InstallAllRequest",
    "HealthResponse",
    "ScanResponse",
]
