"""Classpath resolution, manifest assembly and output writing."""

from plugpack.packaging.archive import ArchiveBuilder, ProjectArtifacts
from plugpack.packaging.artifact import (
    Artifact,
    ArtifactClassifier,
    ArtifactGraph,
    ArtifactId,
    ArtifactKind,
    ArtifactScope,
    DependencyTrail,
)
from plugpack.packaging.classpath import ClasspathResolver, LibrarySet, ResolutionReport
from plugpack.packaging.link import LinkDescriptor, LinkEmitter
from plugpack.packaging.manifest import Manifest, ManifestBuilder, assemble_manifest
