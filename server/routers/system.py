"""
System Router
=============

Host toolchain checks (Node.js, package manager, Git).
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from stackforge.installer import Installer

from ..dependencies import get_installer

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("", response_model=dict[str, Any])
def check_system(installer: Installer = Depends(get_installer)):
    """Run the system requirement checks. Always 200; see `valid` in the body."""
    return installer.check_system().to_dict()
