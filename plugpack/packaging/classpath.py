"""Runtime classpath resolution for plugin packaging.

The resolver reduces the resolved artifact graph to the LibrarySet: the
library files a plugin has to bundle (bundle mode) or reference (link
mode). Both modes go through the same filtering so the host sees the same
libraries whichever way the plugin is deployed; link mode only prepends the
local build output directories.
"""

from __future__ import annotations

import enum
import pathlib
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import structlog

from plugpack.packaging.artifact import (
    Artifact,
    ArtifactClassifier,
    ArtifactGraph,
    ArtifactKind,
    ArtifactScope,
    TaggedArtifact,
)

logger = structlog.get_logger(__name__)

LIBRARIES_DELIMITER = ","


class ScopeFilter:
    """Decides which dependency scopes are visible at a given stage."""

    RUNTIME_SCOPES: FrozenSet[ArtifactScope] = frozenset(
        {ArtifactScope.COMPILE, ArtifactScope.RUNTIME}
    )

    def __init__(self, included: Iterable[ArtifactScope] = RUNTIME_SCOPES) -> None:
        self._included = frozenset(included)

    @classmethod
    def runtime(cls) -> ScopeFilter:
        """Compile and runtime scopes; provided, test and system are excluded."""
        return cls(cls.RUNTIME_SCOPES)

    def include(self, scope: ArtifactScope) -> bool:
        return scope in self._included


class ExclusionReason(str, enum.Enum):
    """Why an artifact was left out of the LibrarySet."""

    SIBLING_PLUGIN = "sibling-plugin"  # The host loads it as a plugin on its own
    VIA_SIBLING_PLUGIN = "via-sibling-plugin"  # Only reached through a sibling plugin
    HOST_CORE = "host-core"  # The host provides it itself
    VIA_HOST_CORE = "via-host-core"  # Already visible through the host core
    OPTIONAL = "optional"
    SCOPE = "scope"  # Not visible at runtime


@dataclass(frozen=True)
class Exclusion:
    artifact: Artifact
    reason: ExclusionReason


class LibrarySet(Sequence[pathlib.Path]):
    """Ordered, de-duplicated, immutable sequence of classpath entries.

    Local build output entries (link mode only) come first so that
    unpackaged sources shadow anything of the same name inside a packaged
    library; external library files follow in resolution order.
    """

    __slots__ = ("_local_entries", "_library_files", "_entries")

    def __init__(
            self,
            library_files: Iterable[Union[str, pathlib.Path]] = (),
            local_entries: Iterable[Union[str, pathlib.Path]] = (),
    ) -> None:
        self._local_entries = self._dedupe(local_entries)
        self._library_files = self._dedupe(library_files)
        self._entries = self._dedupe(self._local_entries + self._library_files)

    @staticmethod
    def _dedupe(paths: Iterable[Union[str, pathlib.Path]]) -> Tuple[pathlib.Path, ...]:
        seen = set()
        result = []
        for path in paths:
            path = pathlib.Path(path)
            if path not in seen:
                seen.add(path)
                result.append(path)
        return tuple(result)

    @property
    def entries(self) -> Tuple[pathlib.Path, ...]:
        return self._entries

    @property
    def local_entries(self) -> Tuple[pathlib.Path, ...]:
        return self._local_entries

    @property
    def library_files(self) -> Tuple[pathlib.Path, ...]:
        """External library files only, without the local build output."""
        return self._library_files

    def to_manifest_value(self, delimiter: str = LIBRARIES_DELIMITER) -> str:
        """Entries joined for the manifest ``Libraries`` attribute."""
        return delimiter.join(str(entry) for entry in self._entries)

    def __getitem__(self, index):
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[pathlib.Path]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LibrarySet):
            return (
                self._local_entries == other._local_entries
                and self._library_files == other._library_files
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self._local_entries, self._library_files))

    def __repr__(self) -> str:
        return f"LibrarySet({[str(entry) for entry in self._entries]!r})"


@dataclass(frozen=True)
class ResolutionReport:
    """Outcome of one resolution: the LibrarySet plus what was dropped and why."""

    library_set: LibrarySet
    included: Tuple[Artifact, ...]
    exclusions: Tuple[Exclusion, ...]


class ClasspathResolver:
    """Computes the LibrarySet of a plugin from its resolved artifact graph.

    An artifact is excluded when it is a sibling plugin, when the root's
    direct dependency that introduced it is a sibling plugin, when it is the
    host core or its trail passes through the host core, when it is
    optional, or when its scope is not visible at runtime. Everything else
    contributes its file, in graph order.
    """

    def __init__(
            self,
            classifier: Optional[ArtifactClassifier] = None,
            scope_filter: Optional[ScopeFilter] = None,
    ) -> None:
        self.classifier = classifier or ArtifactClassifier()
        self.scope_filter = scope_filter or ScopeFilter.runtime()

    def exclusion_reason(self, tagged: TaggedArtifact) -> Optional[ExclusionReason]:
        """Return why ``tagged`` must not be on the classpath, or None to keep it."""
        if tagged.kind is ArtifactKind.SIBLING_PLUGIN:
            return ExclusionReason.SIBLING_PLUGIN
        # introduced_by_kind is None for direct dependencies: never excluded here
        if tagged.introduced_by_kind is ArtifactKind.SIBLING_PLUGIN:
            return ExclusionReason.VIA_SIBLING_PLUGIN
        if tagged.kind is ArtifactKind.HOST_CORE:
            return ExclusionReason.HOST_CORE
        if tagged.through_core:
            return ExclusionReason.VIA_HOST_CORE
        if tagged.artifact.optional:
            return ExclusionReason.OPTIONAL
        if not self.scope_filter.include(tagged.artifact.scope):
            return ExclusionReason.SCOPE
        return None

    def resolve(
            self,
            graph: ArtifactGraph,
            local_entries: Iterable[Union[str, pathlib.Path]] = (),
    ) -> ResolutionReport:
        """Resolve the classpath of ``graph``.

        Args:
            graph: The resolved artifact graph
            local_entries: Build output directories to put first (link mode)

        Returns:
            The resolution report holding the LibrarySet
        """
        included: List[Artifact] = []
        exclusions: List[Exclusion] = []

        for tagged in self.classifier.classify(graph):
            reason = self.exclusion_reason(tagged)
            if reason is None:
                included.append(tagged.artifact)
            else:
                exclusions.append(Exclusion(tagged.artifact, reason))
                logger.debug(
                    "artifact_excluded",
                    artifact=str(tagged.artifact.id),
                    reason=reason.value,
                )

        library_set = LibrarySet(
            library_files=(artifact.file for artifact in included),
            local_entries=local_entries,
        )
        logger.info(
            "classpath_resolved",
            artifacts=len(graph),
            libraries=len(library_set.library_files),
            local_entries=len(library_set.local_entries),
            excluded=len(exclusions),
        )
        return ResolutionReport(
            library_set=library_set,
            included=tuple(included),
            exclusions=tuple(exclusions),
        )

    def resolve_libraries(
            self,
            graph: ArtifactGraph,
            local_entries: Iterable[Union[str, pathlib.Path]] = (),
    ) -> LibrarySet:
        return self.resolve(graph, local_entries).library_set


def link_local_entries(
        classes_dir: Union[str, pathlib.Path],
        resource_dirs: Iterable[Union[str, pathlib.Path]],
        base_dir: Union[str, pathlib.Path] = ".",
) -> List[pathlib.Path]:
    """Local build output for link mode.

    The compiled classes directory comes first, then every declared resource
    directory that exists on disk, in declaration order. Relative paths are
    resolved against ``base_dir``.
    """
    base_dir = pathlib.Path(base_dir)

    def absolute(path: Union[str, pathlib.Path]) -> pathlib.Path:
        path = pathlib.Path(path)
        return (path if path.is_absolute() else base_dir / path).absolute()

    entries = [absolute(classes_dir)]
    for resource_dir in resource_dirs:
        path = absolute(resource_dir)
        if path.exists():
            entries.append(path)
        else:
            logger.debug("resource_dir_missing", path=str(path))
    return entries
