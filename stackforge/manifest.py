"""
Project Manifest (package.json)
===============================

Read-modify-write access to the project's package.json.

ManifestDoc exposes the `dependencies`, `devDependencies` and `scripts`
sections as ordered dicts and keeps every other key, in its original order,
so a patch only changes what it touches. Documents are written back with
two-space indentation and a trailing newline, the layout npm and pnpm use.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from stackforge.errors import ManifestPatchError

_logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"

DEPENDENCIES_KEY = "dependencies"
DEV_DEPENDENCIES_KEY = "devDependencies"
SCRIPTS_KEY = "scripts"

_SECTION_KEYS = (DEPENDENCIES_KEY, DEV_DEPENDENCIES_KEY, SCRIPTS_KEY)


@dataclass
class ManifestDoc:
    """
    In-memory package.json.

    Attributes:
        data: Full document, key order preserved. Section dicts live inside it.
    """
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ManifestDoc":
        for key in _SECTION_KEYS:
            if key in data and not isinstance(data[key], dict):
                raise ValueError(f"'{key}' must be an object")
        return cls(data=data)

    def _section(self, key: str) -> dict[str, Any]:
        section = self.data.get(key)
        if section is None:
            section = {}
            self.data[key] = section
        return section

    @property
    def dependencies(self) -> dict[str, Any]:
        return self._section(DEPENDENCIES_KEY)

    @property
    def dev_dependencies(self) -> dict[str, Any]:
        return self._section(DEV_DEPENDENCIES_KEY)

    @property
    def scripts(self) -> dict[str, Any]:
        return self._section(SCRIPTS_KEY)

    def declared_packages(self) -> set[str]:
        """Names declared under dependencies or devDependencies (read-only, no sections created)."""
        names: set[str] = set()
        for key in (DEPENDENCIES_KEY, DEV_DEPENDENCIES_KEY):
            section = self.data.get(key)
            if isinstance(section, dict):
                names.update(section)
        return names

    def has_package(self, name: str) -> bool:
        return name in self.declared_packages()

    def add_scripts(self, scripts: dict[str, str]) -> None:
        """Merge scripts; existing entries with the same name are replaced."""
        self.scripts.update(scripts)

    def to_json(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"


def manifest_path(project_path: str | Path) -> Path:
    return Path(project_path) / MANIFEST_FILE


class ManifestStore:
    """Loads and saves ManifestDoc for a project directory."""

    def read(self, project_path: str | Path) -> ManifestDoc:
        """
        Load package.json.

        Raises:
            ManifestPatchError: If the file is missing, unreadable or malformed
        """
        path = manifest_path(project_path)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ManifestPatchError(str(path), "manifest not found") from e
        except UnicodeDecodeError as e:
            raise ManifestPatchError(str(path), f"not valid UTF-8: {e.reason}") from e
        except OSError as e:
            raise ManifestPatchError(str(path), e.strerror or str(e)) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ManifestPatchError(str(path), f"invalid JSON: {e.msg} (line {e.lineno})") from e
        if not isinstance(data, dict):
            raise ManifestPatchError(str(path), "manifest must be a JSON object")

        try:
            return ManifestDoc.from_dict(data)
        except ValueError as e:
            raise ManifestPatchError(str(path), str(e)) from e

    def write(self, project_path: str | Path, doc: ManifestDoc) -> None:
        """
        Save package.json, replacing the existing file.

        Raises:
            ManifestPatchError: On any filesystem failure
        """
        path = manifest_path(project_path)
        try:
            path.write_text(doc.to_json(), encoding="utf-8")
        except OSError as e:
            raise ManifestPatchError(str(path), e.strerror or str(e)) from e
        _logger.debug("Wrote %s", path)
