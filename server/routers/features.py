"""
Features Router
===============

Read-only view of the feature catalogue.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from stackforge.installer import Installer

from ..dependencies import get_installer

router = APIRouter(prefix="/api/features", tags=["features"])


@router.get("", response_model=list[dict[str, Any]])
def list_features(installer: Installer = Depends(get_installer)):
    """List registered features in install order, with requirements and options."""
    return installer.features()


@router.get("/{feature_name}", response_model=dict[str, Any])
def get_feature(feature_name: str, installer: Installer = Depends(get_installer)):
    """Describe one feature. Unknown names return 404."""
    return installer.registry.get(feature_name).to_dict()
