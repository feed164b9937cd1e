"""
Feature Definitions and Registry
================================

Static description of what each feature needs and does:

- StepSpec: one unit of work (`install_packages`, `write_artifact` or
  `patch_manifest`) with a payload that is opaque to the executor.
- FeatureDescriptor: name, required flags, conflict flag, ordered steps and
  the pydantic model that validates the feature's options.
- FeatureRegistry: lookup by name plus a deterministic topological order over
  the `requires` graph.

The order is computed once with Kahn's algorithm. An edge runs from the
feature that provides a flag (its conflict flag) to every feature requiring
that flag. When several features are ready at the same time the one declared
first wins, so chain output never depends on dict or set ordering.
"""
from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from stackforge.artifacts import Artifact, describe as describe_artifact
from stackforge.errors import InvalidOptionsError, RegistryError, UnknownFeatureError
from stackforge.project_state import ProjectState

if TYPE_CHECKING:
    from stackforge.manifest import ManifestDoc

_logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================

class StepKind(str, Enum):
    """How the executor dispatches a step."""

    INSTALL_PACKAGES = "install_packages"
    WRITE_ARTIFACT = "write_artifact"
    PATCH_MANIFEST = "patch_manifest"


# =============================================================================
# Step Context
# =============================================================================

class FeatureOptions(BaseModel):
    """Base class for per-feature options. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", frozen=True)


@dataclass(frozen=True)
class StepContext:
    """
    Everything a payload may consult while rendering.

    Attributes:
        project_path: Target project root
        options: Validated options for the feature being installed
        state: ProjectState snapshot that passed validation
        package_manager: Package manager used to render install commands
    """
    project_path: Path
    options: BaseModel
    state: ProjectState
    package_manager: str = "pnpm"


# =============================================================================
# Step Payloads
# =============================================================================

_ADD_COMMANDS = {
    "pnpm": "pnpm add",
    "npm": "npm install",
    "yarn": "yarn add",
    "bun": "bun add",
}

_DEV_FLAGS = {
    "pnpm": "-D",
    "npm": "--save-dev",
    "yarn": "--dev",
    "bun": "--dev",
}

PackageList = Union[Sequence[str], Callable[[StepContext], Sequence[str]]]
CommandItem = Union[str, Callable[[StepContext], "str | None"]]


@dataclass(frozen=True)
class PackageInstall:
    """
    Add packages with the configured package manager.

    `packages` is either a fixed list or a callable deriving it from the
    context (e.g. database drivers depend on the selected provider). An empty
    list renders no command.
    """
    packages: PackageList
    dev: bool = False

    def resolve_packages(self, context: StepContext) -> list[str]:
        if callable(self.packages):
            return list(self.packages(context))
        return list(self.packages)

    def render(self, context: StepContext) -> list[str]:
        packages = self.resolve_packages(context)
        if not packages:
            return []
        manager = context.package_manager
        parts = [_ADD_COMMANDS.get(manager, f"{manager} add")]
        if self.dev:
            parts.append(_DEV_FLAGS.get(manager, "-D"))
        parts.extend(packages)
        return [" ".join(parts)]


@dataclass(frozen=True)
class ShellCommands:
    """
    Literal commands run in order.

    Strings may use `{package_manager}`. Callables receive the context and may
    return None to skip the command.
    """
    commands: tuple[CommandItem, ...]

    def render(self, context: StepContext) -> list[str]:
        rendered: list[str] = []
        for item in self.commands:
            if callable(item):
                command = item(context)
                if command is None:
                    continue
            else:
                command = item.format(package_manager=context.package_manager)
            rendered.append(command)
        return rendered


@dataclass(frozen=True)
class ManifestPatch:
    """A read-modify-write change to package.json."""
    description: str
    apply: Callable[["ManifestDoc", StepContext], None]


def add_scripts(scripts: Mapping[str, str] | Callable[[StepContext], Mapping[str, str]]) -> ManifestPatch:
    """ManifestPatch merging scripts into package.json."""
    def _apply(doc: "ManifestDoc", context: StepContext) -> None:
        values = scripts(context) if callable(scripts) else scripts
        doc.add_scripts(dict(values))

    names = "" if callable(scripts) else ": " + ", ".join(scripts)
    return ManifestPatch(description=f"add scripts{names}", apply=_apply)


_PAYLOAD_TYPES: dict[StepKind, tuple[type, ...]] = {
    StepKind.INSTALL_PACKAGES: (PackageInstall, ShellCommands),
    StepKind.WRITE_ARTIFACT: (tuple,),
    StepKind.PATCH_MANIFEST: (ManifestPatch,),
}


@dataclass(frozen=True)
class StepSpec:
    """
    One step of a feature.

    Attributes:
        name: Human-readable step name, unique within the feature
        kind: Dispatch kind
        payload: PackageInstall/ShellCommands, tuple of Artifact, or ManifestPatch
    """
    name: str
    kind: StepKind
    payload: Any

    def __post_init__(self) -> None:
        expected = _PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            raise RegistryError(
                f"Step '{self.name}' of kind {self.kind.value} has payload of type "
                f"{type(self.payload).__name__}",
                {"step": self.name, "kind": self.kind.value},
            )
        if self.kind == StepKind.WRITE_ARTIFACT and not all(
            isinstance(a, Artifact) for a in self.payload
        ):
            raise RegistryError(
                f"Step '{self.name}' must contain only Artifact descriptors",
                {"step": self.name},
            )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if self.kind == StepKind.WRITE_ARTIFACT:
            data["artifacts"] = [describe_artifact(a) for a in self.payload]
        elif self.kind == StepKind.PATCH_MANIFEST:
            data["patch"] = self.payload.description
        return data


def install(name: str, packages: PackageList, dev: bool = False) -> StepSpec:
    return StepSpec(name, StepKind.INSTALL_PACKAGES, PackageInstall(packages, dev=dev))


def run_commands(name: str, *commands: CommandItem) -> StepSpec:
    return StepSpec(name, StepKind.INSTALL_PACKAGES, ShellCommands(tuple(commands)))


def write(name: str, *artifacts: Artifact) -> StepSpec:
    return StepSpec(name, StepKind.WRITE_ARTIFACT, tuple(artifacts))


def patch(name: str, manifest_patch: ManifestPatch) -> StepSpec:
    return StepSpec(name, StepKind.PATCH_MANIFEST, manifest_patch)


# =============================================================================
# Feature Descriptor
# =============================================================================

@dataclass(frozen=True)
class FeatureDescriptor:
    """
    Static definition of a feature.

    Attributes:
        name: Registry key (e.g. "database")
        title: Display name
        requires: Flags that must be true, in reporting order
        conflict_flag: Flag that means "already installed"; also what the feature provides
        steps: Ordered steps
        options_model: pydantic model validating install options
        description: One-line summary
    """
    name: str
    title: str
    requires: tuple[str, ...]
    conflict_flag: str
    steps: tuple[StepSpec, ...]
    options_model: type[BaseModel] = FeatureOptions
    description: str = ""

    @property
    def provides(self) -> str:
        return self.conflict_flag

    def parse_options(self, options: Mapping[str, Any] | BaseModel | None = None) -> BaseModel:
        """
        Validate options against the feature's model.

        Raises:
            InvalidOptionsError: If validation fails
        """
        if isinstance(options, self.options_model):
            return options
        if isinstance(options, BaseModel):
            options = options.model_dump()
        try:
            return self.options_model.model_validate(dict(options or {}))
        except ValidationError as e:
            errors = [
                {
                    "field": ".".join(str(part) for part in err["loc"]),
                    "message": err["msg"],
                    "type": err["type"],
                }
                for err in e.errors()
            ]
            raise InvalidOptionsError(self.name, errors) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "requires": list(self.requires),
            "conflict_flag": self.conflict_flag,
            "steps": [step.to_dict() for step in self.steps],
            "options": self.options_model.model_json_schema().get("properties", {}),
        }


# =============================================================================
# Registry
# =============================================================================

class FeatureRegistry:
    """
    Ordered collection of FeatureDescriptors.

    Declaration order (registration order) breaks ties in the topological
    order.
    """

    def __init__(self, features: Iterable[FeatureDescriptor] = ()):
        self._features: dict[str, FeatureDescriptor] = {}
        self._providers: dict[str, str] = {}
        self._order: list[str] | None = None
        for feature in features:
            self.register(feature)

    def register(self, feature: FeatureDescriptor) -> None:
        """
        Add a feature.

        Raises:
            RegistryError: On a duplicate name or conflict flag
        """
        if feature.name in self._features:
            raise RegistryError(
                f"Feature '{feature.name}' is already registered",
                {"feature": feature.name},
            )
        owner = self._providers.get(feature.conflict_flag)
        if owner is not None:
            raise RegistryError(
                f"Conflict flag '{feature.conflict_flag}' of '{feature.name}' "
                f"is already provided by '{owner}'",
                {"feature": feature.name, "conflict_flag": feature.conflict_flag},
            )
        self._features[feature.name] = feature
        self._providers[feature.conflict_flag] = feature.name
        self._order = None

    def get(self, name: str) -> FeatureDescriptor:
        try:
            return self._features[name]
        except KeyError:
            raise UnknownFeatureError(name, known=self.names()) from None

    def names(self) -> list[str]:
        return list(self._features)

    def provider_of(self, flag: str) -> str | None:
        """Name of the feature whose conflict flag is `flag`."""
        return self._providers.get(flag)

    def __contains__(self, name: object) -> bool:
        return name in self._features

    def __iter__(self) -> Iterator[FeatureDescriptor]:
        return iter(self._features.values())

    def __len__(self) -> int:
        return len(self._features)

    def full_order(self) -> list[str]:
        """
        Topological order over every registered feature.

        Raises:
            RegistryError: If a required flag has no provider or the graph has a cycle
        """
        if self._order is None:
            self._order = self._compute_order()
        return list(self._order)

    def topological_order(self, names: Iterable[str]) -> list[str]:
        """
        Order the requested features consistently with their requirements.

        Duplicates are dropped. Features are not added implicitly: a requested
        feature whose provider is not requested is still ordered, and its
        precondition decides at run time.

        Raises:
            UnknownFeatureError: If any name is not registered
        """
        requested = set()
        for name in names:
            self.get(name)
            requested.add(name)
        return [name for name in self.full_order() if name in requested]

    def _compute_order(self) -> list[str]:
        index = {name: i for i, name in enumerate(self._features)}
        dependents: dict[str, list[str]] = {name: [] for name in self._features}
        in_degree = {name: 0 for name in self._features}

        for feature in self._features.values():
            for flag in dict.fromkeys(feature.requires):
                provider = self.provider_of(flag)
                if provider is None:
                    raise RegistryError(
                        f"'{feature.name}' requires {flag}, which no feature provides",
                        {"feature": feature.name, "flag": flag},
                    )
                dependents[provider].append(feature.name)
                in_degree[feature.name] += 1

        ready = [(index[name], name) for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: list[str] = []
        while ready:
            _, name = heapq.heappop(ready)
            order.append(name)
            for dependent in dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (index[dependent], dependent))

        if len(order) != len(self._features):
            remaining = [name for name in self._features if name not in order]
            raise RegistryError(
                f"Cycle detected among features: {', '.join(remaining)}",
                {"features": remaining},
            )
        _logger.debug("Feature order: %s", order)
        return order

    def describe(self) -> list[dict[str, Any]]:
        """All features in topological order, serialized."""
        return [self._features[name].to_dict() for name in self.full_order()]
