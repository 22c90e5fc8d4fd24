"""Resolved dependency graph model for plugpack.

The graph is produced by an external resolver and handed to plugpack as a
JSON or YAML document. Each artifact carries its dependency trail, the
chain of ancestors from the root project down to (not including) the
artifact, which is what lets the classpath resolver tell *how* a library
was pulled in.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import pathlib
from dataclasses import dataclass
from typing import (
    Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union, overload
)

import pydantic
import structlog
import yaml
from pydantic import Field

from plugpack.utils.exceptions import GraphError

logger = structlog.get_logger(__name__)


class ArtifactScope(str, enum.Enum):
    """Dependency scopes as reported by the resolver."""

    COMPILE = "compile"
    RUNTIME = "runtime"
    TEST = "test"
    PROVIDED = "provided"
    SYSTEM = "system"


class ArtifactKind(str, enum.Enum):
    """Classification of an artifact relative to the host."""

    ORDINARY = "ordinary"  # Plain library
    SIBLING_PLUGIN = "sibling-plugin"  # Another plugin of the same host
    HOST_CORE = "host-core"  # The host's shared core library


@dataclass(frozen=True)
class ArtifactId:
    """Stable identity of an artifact.

    The string form is ``group:name:type[:classifier]:version``.
    """

    group: str
    name: str
    version: str
    type: str = "jar"
    classifier: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> ArtifactId:
        """Parse ``group:name:version``, ``group:name:type:version`` or
        ``group:name:type:classifier:version``.

        Raises:
            GraphError: If the text has another shape or an empty part.
        """
        parts = str(text).strip().split(":")
        if any(not part for part in parts):
            raise GraphError(f"Invalid artifact identity: {text!r}", artifact_id=str(text))
        if len(parts) == 3:
            group, name, version = parts
            return cls(group=group, name=name, version=version)
        if len(parts) == 4:
            group, name, type_, version = parts
            return cls(group=group, name=name, version=version, type=type_)
        if len(parts) == 5:
            group, name, type_, classifier, version = parts
            return cls(group=group, name=name, version=version, type=type_, classifier=classifier)
        raise GraphError(f"Invalid artifact identity: {text!r}", artifact_id=str(text))

    @property
    def key(self) -> str:
        """Versionless ``group:name`` key."""
        return f"{self.group}:{self.name}"

    def __str__(self) -> str:
        if self.classifier:
            return f"{self.group}:{self.name}:{self.type}:{self.classifier}:{self.version}"
        return f"{self.group}:{self.name}:{self.type}:{self.version}"


class DependencyTrail(Sequence[ArtifactId]):
    """Ordered ancestor chain of an artifact.

    Index 0 is the root project, index 1 the root's direct dependency that
    pulled the artifact in, and so on. The artifact itself is not part of
    its trail.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Iterable[Union[ArtifactId, str]] = ()) -> None:
        self._entries: Tuple[ArtifactId, ...] = tuple(
            entry if isinstance(entry, ArtifactId) else ArtifactId.parse(entry)
            for entry in entries
        )

    @property
    def root(self) -> Optional[ArtifactId]:
        return self.get(0)

    @property
    def introduced_by(self) -> Optional[ArtifactId]:
        """The root's direct dependency through which the artifact was reached.

        None for direct dependencies of the root (trail of length 1).
        """
        return self.get(1)

    def get(self, index: int) -> Optional[ArtifactId]:
        """Bounds-checked access; None when ``index`` is out of range."""
        if 0 <= index < len(self._entries):
            return self._entries[index]
        return None

    @overload
    def __getitem__(self, index: int) -> ArtifactId: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[ArtifactId, ...]: ...

    def __getitem__(self, index):
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ArtifactId]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DependencyTrail):
            return self._entries == other._entries
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"DependencyTrail({[str(entry) for entry in self._entries]!r})"


@dataclass(frozen=True)
class Artifact:
    """One resolved dependency."""

    id: ArtifactId
    file: pathlib.Path
    scope: ArtifactScope
    dependency_trail: DependencyTrail
    optional: bool = False
    is_plugin: bool = False

    def __post_init__(self) -> None:
        if len(self.dependency_trail) == 0:
            raise GraphError(
                f"Dependency trail of {self.id} is empty; the root project must be present",
                artifact_id=str(self.id),
            )

    def with_optional(self, optional: bool) -> Artifact:
        return dataclasses.replace(self, optional=optional)


@dataclass(frozen=True)
class TaggedArtifact:
    """An artifact together with its classification.

    Attributes:
        artifact: The classified artifact
        kind: What the artifact itself is
        introduced_by_kind: Kind of ``trail[1]``, None for direct dependencies
        through_core: Whether any trail entry is the host core
    """

    artifact: Artifact
    kind: ArtifactKind
    introduced_by_kind: Optional[ArtifactKind]
    through_core: bool


class ArtifactRecord(pydantic.BaseModel):
    """Schema of one artifact entry in a graph document."""

    id: Union[str, Dict[str, Optional[str]]]
    file: str
    scope: ArtifactScope = ArtifactScope.COMPILE
    optional: bool = False
    plugin: bool = False
    trail: List[str] = Field(default_factory=list)

    @pydantic.field_validator("scope", mode="before")
    @classmethod
    def normalize_scope(cls, v: Any) -> Any:
        if v is None:
            return ArtifactScope.COMPILE
        return str(v).lower() if isinstance(v, str) else v

    def to_artifact(self) -> Artifact:
        if isinstance(self.id, str):
            artifact_id = ArtifactId.parse(self.id)
        else:
            try:
                artifact_id = ArtifactId(
                    group=self.id["group"],
                    name=self.id["name"],
                    version=self.id["version"],
                    type=self.id.get("type") or "jar",
                    classifier=self.id.get("classifier"),
                )
            except KeyError as e:
                raise GraphError(
                    f"Artifact identity is missing {e.args[0]!r}: {self.id}"
                ) from e

        return Artifact(
            id=artifact_id,
            file=pathlib.Path(self.file),
            scope=self.scope,
            dependency_trail=self._parse_trail(artifact_id),
            optional=self.optional,
            is_plugin=self.plugin,
        )

    def _parse_trail(self, artifact_id: ArtifactId) -> DependencyTrail:
        """Parse the trail, cutting it at the first malformed entry.

        A shorter trail can only exclude less, so the artifact is kept
        rather than wrongly dropped.
        """
        entries = []
        for position, entry in enumerate(self.trail):
            try:
                entries.append(ArtifactId.parse(entry))
            except GraphError:
                logger.warning(
                    "malformed_trail_entry",
                    artifact=str(artifact_id),
                    position=position,
                    entry=entry,
                )
                break
        return DependencyTrail(entries)


class ArtifactGraph:
    """Resolved artifacts in resolution order."""

    def __init__(self, artifacts: Iterable[Artifact] = ()) -> None:
        self._artifacts: Tuple[Artifact, ...] = tuple(artifacts)

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)

    def __repr__(self) -> str:
        return f"ArtifactGraph({len(self._artifacts)} artifacts)"

    @property
    def artifacts(self) -> Tuple[Artifact, ...]:
        return self._artifacts

    def plugin_ids(self) -> FrozenSet[ArtifactId]:
        """Identities of every artifact flagged as a sibling plugin."""
        return frozenset(a.id for a in self._artifacts if a.is_plugin)

    def with_optional_overrides(self, overrides: Dict[str, bool]) -> ArtifactGraph:
        """Return a graph with ``optional`` replaced for overridden artifacts.

        Args:
            overrides: Mapping of versionless ``group:name`` key to optional flag
        """
        if not overrides:
            return self

        artifacts = []
        for artifact in self._artifacts:
            flag = overrides.get(artifact.id.key)
            if flag is not None and flag != artifact.optional:
                logger.debug(
                    "optional_override", artifact=str(artifact.id), optional=flag
                )
                artifact = artifact.with_optional(flag)
            artifacts.append(artifact)
        return ArtifactGraph(artifacts)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ArtifactGraph:
        """Build a graph from a parsed graph document.

        Raises:
            GraphError: If the document does not describe a valid graph
        """
        if not isinstance(data, dict) or not isinstance(data.get("artifacts", []), list):
            raise GraphError("Graph document must be a mapping with an 'artifacts' list")

        artifacts = []
        for index, entry in enumerate(data.get("artifacts", [])):
            try:
                record = ArtifactRecord(**entry) if isinstance(entry, dict) else None
            except pydantic.ValidationError as e:
                raise GraphError(
                    f"Invalid artifact entry #{index}: {e}",
                    details={"index": index},
                ) from e
            if record is None:
                raise GraphError(
                    f"Invalid artifact entry #{index}: expected a mapping",
                    details={"index": index},
                )
            artifacts.append(record.to_artifact())
        return cls(artifacts)

    @classmethod
    def load(cls, path: Union[str, pathlib.Path]) -> ArtifactGraph:
        """Load a graph document from a JSON or YAML file.

        Raises:
            GraphError: If the file cannot be read or parsed
        """
        path = pathlib.Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise GraphError(f"Cannot read graph file {path}: {e}") from e

        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise GraphError(f"Cannot parse graph file {path}: {e}") from e

        graph = cls.from_dict(data or {})
        logger.debug("graph_loaded", path=str(path), artifacts=len(graph))
        return graph


class ArtifactClassifier:
    """Tags every artifact of a graph as ordinary, sibling plugin or host core.

    Host core identities are given as ``name`` or ``group:name``.
    """

    def __init__(self, core_artifacts: Iterable[str] = ("jenkins-core", "hudson-core")) -> None:
        self._core: List[Tuple[Optional[str], str]] = []
        for identity in core_artifacts:
            if ":" in identity:
                group, name = identity.split(":", 1)
                self._core.append((group, name))
            else:
                self._core.append((None, identity))

    def is_core(self, artifact_id: ArtifactId) -> bool:
        for group, name in self._core:
            if artifact_id.name == name and (group is None or artifact_id.group == group):
                return True
        return False

    def kind_of(self, artifact_id: ArtifactId, plugin_ids: FrozenSet[ArtifactId]) -> ArtifactKind:
        if artifact_id in plugin_ids:
            return ArtifactKind.SIBLING_PLUGIN
        if self.is_core(artifact_id):
            return ArtifactKind.HOST_CORE
        return ArtifactKind.ORDINARY

    def classify(self, graph: ArtifactGraph) -> List[TaggedArtifact]:
        """Classify every artifact, preserving graph order."""
        plugin_ids = graph.plugin_ids()
        tagged = []
        for artifact in graph:
            trail = artifact.dependency_trail
            introduced_by = trail.introduced_by
            tagged.append(
                TaggedArtifact(
                    artifact=artifact,
                    kind=self.kind_of(artifact.id, plugin_ids),
                    introduced_by_kind=(
                        self.kind_of(introduced_by, plugin_ids)
                        if introduced_by is not None
                        else None
                    ),
                    through_core=any(self.is_core(entry) for entry in trail),
                )
            )
        return tagged
