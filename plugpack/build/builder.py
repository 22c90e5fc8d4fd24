"""Builder for packaging plugins.

This module contains the Builder class that runs one packaging invocation:
resolving the runtime classpath, assembling the manifest, and producing
either the bundle archives or a link descriptor.
"""

from __future__ import annotations

from typing import Optional, Union

import structlog

from plugpack.build.config import BuildMode, PackagingConfig
from plugpack.packaging.archive import ArchiveBuilder, ProjectArtifacts
from plugpack.packaging.artifact import ArtifactClassifier, ArtifactGraph
from plugpack.packaging.classpath import ClasspathResolver, ResolutionReport, link_local_entries
from plugpack.packaging.link import LinkDescriptor, LinkEmitter
from plugpack.packaging.manifest import Manifest, assemble_manifest
from plugpack.utils.exceptions import PackagingError, PlugpackError

logger = structlog.get_logger(__name__)

BuildResult = Union[ProjectArtifacts, LinkDescriptor]


class Builder:
    """Packages a plugin according to its configuration.

    Both build modes go through the same ClasspathResolver, so the external
    libraries of a bundle and of a link descriptor are always the same.

    Attributes:
        config: Packaging configuration
        resolver: Classpath resolver shared by both modes
        artifacts: Outputs registered by the last bundle build
    """

    def __init__(
            self, config: PackagingConfig, resolver: Optional[ClasspathResolver] = None
    ) -> None:
        """Initialize the Builder with the given configuration.

        Args:
            config: Packaging configuration
            resolver: Classpath resolver, one honoring ``config.core_artifacts`` by default
        """
        self.config = config
        self.resolver = resolver or ClasspathResolver(
            classifier=ArtifactClassifier(config.core_artifacts)
        )
        self.artifacts = ProjectArtifacts()
        self.logger = logger.bind(plugin=config.effective_final_name)

    def resolve(self, graph: ArtifactGraph, mode: Optional[BuildMode] = None) -> ResolutionReport:
        """Resolve the classpath of ``graph`` for ``mode`` (the configured one by default)."""
        mode = mode or self.config.mode
        graph = graph.with_optional_overrides(self.config.optional_overrides)

        local_entries = []
        if mode == BuildMode.LINK:
            local_entries = link_local_entries(
                self.config.classes_dir,
                self.config.resource_dirs,
                base_dir=self.config.base_dir,
            )
        return self.resolver.resolve(graph, local_entries)

    def assemble_manifest(self, report: ResolutionReport, mode: Optional[BuildMode] = None) -> Manifest:
        mode = mode or self.config.mode
        resource_path = None
        if mode == BuildMode.LINK:
            resource_path = self.config.resolve_path(self.config.resource_source_dir)
        return assemble_manifest(
            self.config.effective_metadata().to_attributes(),
            report.library_set,
            resource_path=resource_path,
        )

    def bundle(self, graph: ArtifactGraph) -> ProjectArtifacts:
        """Produce the bundle and code archives.

        Returns:
            The registered project artifacts
        """
        report = self.resolve(graph, BuildMode.BUNDLE)
        manifest = self.assemble_manifest(report, BuildMode.BUNDLE)

        archive_builder = ArchiveBuilder(
            staging_dir=self.config.get_staging_dir(),
            classes_dir=self.config.resolve_path(self.config.classes_dir),
            includes=self.config.includes,
            excludes=self.config.excludes,
        )
        artifacts = ProjectArtifacts()
        archive_builder.build(
            manifest,
            report.library_set,
            code_archive_path=self.config.get_output_path(self.config.code_extension),
            bundle_path=self.config.get_output_path(self.config.bundle_extension),
            resource_source_dir=self.config.resolve_path(self.config.resource_source_dir),
            artifacts=artifacts,
        )
        self.artifacts = artifacts
        return artifacts

    def link(self, graph: ArtifactGraph) -> LinkDescriptor:
        """Produce the link descriptor.

        Raises:
            ConfigurationError: If ``host_home`` is not set; nothing is resolved or written
        """
        link_path = self.config.get_link_path()
        report = self.resolve(graph, BuildMode.LINK)
        manifest = self.assemble_manifest(report, BuildMode.LINK)
        return LinkEmitter().emit(manifest, link_path)

    def build(self, graph: ArtifactGraph) -> Optional[BuildResult]:
        """Package the plugin in the configured mode.

        This is the main entry point for a packaging run.

        Returns:
            ProjectArtifacts in bundle mode, a LinkDescriptor in link mode,
            or None when the project is not a plugin

        Raises:
            PlugpackError: If packaging fails for any reason
        """
        if self.config.packaging != "hpi":
            self.logger.info("packaging_skipped", packaging=self.config.packaging)
            return None

        self.logger.info(
            "build_started", version=self.config.version, mode=self.config.mode.value
        )
        try:
            if self.config.mode == BuildMode.LINK:
                result: BuildResult = self.link(graph)
                self.logger.info("build_completed", output=str(result.path))
            else:
                result = self.bundle(graph)
                self.logger.info("build_completed", output=str(result.primary))
            return result

        except PlugpackError as e:
            self.logger.error("build_failed", error=str(e), **e.details)
            raise

        except OSError as e:
            self.logger.error("build_failed", error=str(e))
            raise PackagingError(
                f"Build failed: {e}",
                file_path=getattr(e, "filename", None),
                operation="build",
            ) from e


def build_plugin(config: PackagingConfig, graph: ArtifactGraph) -> Optional[BuildResult]:
    """Package a plugin with a fresh Builder.

    This is a convenience function for one-shot packaging.
    """
    return Builder(config).build(graph)
