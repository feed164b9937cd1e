"""
Projects Router
===============

API endpoints that scan and modify a project directory.

Endpoints are plain `def` so FastAPI runs them in its threadpool; installs
into the same directory are serialized by the installer's directory lock.

`project_path` must be absolute and must not name an existing file; anything
else is a 400. The directory itself may not exist yet (`core` creates it).

Precondition, conflict and step failures return 200 with the structured
result. Unknown features and invalid options are raised and mapped to
404/422 by the exception handlers.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends

from stackforge.installer import Installer

from ..dependencies import get_installer
from ..exceptions import BadRequestError, ErrorResponse
from ..schemas import (
    InstallAllRequest,
    InstallRequest,
    PlanRequest,
    ProjectRequest,
    ScanResponse,
)

_logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


def validate_project_path(project_path: str) -> Path:
    """
    Check a requested project directory.

    Raises:
        BadRequestError: If the path is relative or points at a file
    """
    path = Path(project_path).expanduser()
    if not path.is_absolute():
        raise BadRequestError(
            f"project_path must be absolute: '{project_path}'",
            details={"project_path": project_path},
        )
    if path.exists() and not path.is_dir():
        raise BadRequestError(
            f"project_path is not a directory: '{project_path}'",
            details={"project_path": project_path},
        )
    return path


@router.post("/scan", response_model=ScanResponse)
def scan_project(request: ProjectRequest, installer: Installer = Depends(get_installer)):
    """Detect which features the project already has."""
    path = validate_project_path(request.project_path)
    state = installer.scan(path)
    return ScanResponse(
        project_path=request.project_path,
        flags=state.to_dict(),
        active=list(state.active_flags()),
    )


@router.post("/plan", response_model=dict[str, Any])
def plan_features(request: PlanRequest, installer: Installer = Depends(get_installer)):
    """Order the requested features and report unmet requirements."""
    path = validate_project_path(request.project_path)
    return installer.plan(request.features, path).to_dict()


@router.post("/install", response_model=dict[str, Any])
def install_feature(request: InstallRequest, installer: Installer = Depends(get_installer)):
    """Install a single feature."""
    path = validate_project_path(request.project_path)
    _logger.info("Install requested: %s in %s", request.feature, path)
    result = installer.install(request.feature, path, request.options)
    return result.to_dict()


@router.post("/install-all", response_model=dict[str, Any])
def install_features(request: InstallAllRequest, installer: Installer = Depends(get_installer)):
    """Install several features in dependency order, halting at the first failure."""
    path = validate_project_path(request.project_path)
    _logger.info("Chain install requested: %s in %s", request.features, path)
    chain = installer.install_all(request.features, path, request.options)
    return chain.to_dict()
