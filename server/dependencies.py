"""
Request Dependencies
====================

FastAPI dependencies shared by the routers. Tests replace the installer with
`app.dependency_overrides[get_installer] = lambda: fake_installer`.
"""
from __future__ import annotations

from stackforge.installer import Installer
from stackforge.installer import get_installer as _process_installer


def get_installer() -> Installer:
    """Process-wide installer built from the environment settings."""
    return _process_installer()
