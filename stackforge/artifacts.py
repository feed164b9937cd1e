"""
Generated Artifacts
===================

Separates *what* to generate from *when* to write it:

- Artifact: a typed descriptor (relative path + renderer) whose content is
  produced from a StepContext. Rendering touches no filesystem, so templates
  are unit-testable on their own.
- ArtifactWriter: writes bytes to a path, creating parent directories and
  always overwriting. I/O failures surface as ArtifactWriteError.

The executor's write_artifact step renders each enabled Artifact and hands the
bytes to the writer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Union

from stackforge.errors import ArtifactWriteError

if TYPE_CHECKING:
    from stackforge.features import StepContext

_logger = logging.getLogger(__name__)

RenderedContent = Union[str, bytes]


@dataclass(frozen=True)
class Artifact:
    """
    A file to generate under the project root.

    Attributes:
        path: POSIX path relative to the project root
        renderer: Callable producing the file content from a StepContext
        condition: Optional predicate; the artifact is skipped when it returns False
    """
    path: str
    renderer: Callable[["StepContext"], RenderedContent]
    condition: Callable[["StepContext"], bool] | None = None

    def enabled(self, context: "StepContext") -> bool:
        return self.condition is None or bool(self.condition(context))

    def render(self, context: "StepContext") -> bytes:
        """Render the artifact content as UTF-8 bytes."""
        content = self.renderer(context)
        if isinstance(content, str):
            return content.encode("utf-8")
        return content


def static(content: str) -> Callable[["StepContext"], str]:
    """Renderer that ignores the context and returns fixed content."""
    def _render(context: "StepContext") -> str:
        return content
    return _render


def resolve_artifact_path(project_root: str | Path, relative_path: str) -> Path:
    """
    Resolve an artifact path under the project root.

    Raises:
        ArtifactWriteError: If the path is absolute or escapes the root
    """
    root = Path(project_root).resolve()
    if Path(relative_path).is_absolute():
        raise ArtifactWriteError(relative_path, "artifact paths must be relative")
    target = (root / relative_path).resolve()
    if target != root and root not in target.parents:
        raise ArtifactWriteError(relative_path, "path escapes the project root")
    return target


class ArtifactWriter:
    """Writes generated files; parents are created, existing files replaced."""

    def write(self, path: str | Path, content: RenderedContent) -> None:
        """
        Write content to path.

        Args:
            path: Absolute destination path
            content: Text (encoded as UTF-8) or bytes

        Raises:
            ArtifactWriteError: On any filesystem failure
        """
        target = Path(path)
        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise ArtifactWriteError(str(target), e.strerror or str(e)) from e
        _logger.debug("Wrote %s (%d bytes)", target, len(data))


def describe(artifact: Artifact) -> dict[str, Any]:
    """Serializable description of an artifact (path and whether it is conditional)."""
    return {"path": artifact.path, "conditional": artifact.condition is not None}
