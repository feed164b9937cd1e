"""
Shared fixtures: fake command runner, spy artifact writer and temporary
project directories.

The fake runner never spawns a process. It records every command and, for
`create-next-app`, writes a minimal package.json declaring `next`, which is
what the real scaffolder leaves behind for the scanner to detect.
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path
root = Path(__file__).parent.parent
sys.path.insert(0, str(root))

from stackforge.artifacts import ArtifactWriter
from stackforge.command_runner import CommandResult
from stackforge.config import InstallerSettings
from stackforge.errors import ArtifactWriteError
from stackforge.installer import Installer


class FakeRunner:
    """Records commands; fails any command containing `fail_on` with exit code 1."""

    def __init__(self, fail_on=None, outputs=None):
        self.fail_on = fail_on
        self.outputs = outputs or {}
        self.calls = []

    @property
    def commands(self):
        return [command for command, _ in self.calls]

    def run(self, command, cwd):
        self.calls.append((command, str(cwd)))
        if self.fail_on and self.fail_on in command:
            return CommandResult(command=command, cwd=str(cwd), exit_code=1, stderr="simulated failure")
        if command in self.outputs:
            exit_code, stdout = self.outputs[command]
            return CommandResult(command=command, cwd=str(cwd), exit_code=exit_code, stdout=stdout)
        if "create-next-app" in command:
            write_manifest(Path(cwd), {"name": "app", "dependencies": {"next": "15.0.0"}})
        return CommandResult(command=command, cwd=str(cwd), exit_code=0)


class SpyWriter(ArtifactWriter):
    """Real writer that records paths and can fail on a path fragment."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.paths = []

    def write(self, path, content):
        self.paths.append(Path(path))
        if self.fail_on and self.fail_on in Path(path).as_posix():
            raise ArtifactWriteError(str(path), "simulated disk failure")
        super().write(path, content)


def write_manifest(project: Path, data) -> Path:
    path = project / "package.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def read_manifest(project: Path):
    return json.loads((project / "package.json").read_text(encoding="utf-8"))


@pytest.fixture
def project(tmp_path):
    """An empty directory for a new project."""
    path = tmp_path / "app"
    path.mkdir()
    return path


@pytest.fixture
def base_project(project):
    """A project that already has Next.js (has_base_project only)."""
    write_manifest(project, {"name": "app", "dependencies": {"next": "15.0.0"}})
    return project


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def writer():
    return SpyWriter()


@pytest.fixture
def settings():
    return InstallerSettings()


@pytest.fixture
def installer(runner, writer, settings):
    return Installer(runner=runner, writer=writer, settings=settings)
