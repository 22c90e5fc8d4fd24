"""Bundle and code archive creation.

The bundle is a zip laid out like an exploded web application: staged
resources at the root, ``META-INF/MANIFEST.MF`` and every library under
``WEB-INF/lib/``. The companion code archive holds the compiled classes
and the same manifest.
"""

from __future__ import annotations

import os
import pathlib
import shutil
import zipfile
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

import structlog

from plugpack.packaging.classpath import LibrarySet
from plugpack.packaging.manifest import Manifest
from plugpack.utils.exceptions import FileError, PackagingError
from plugpack.utils.files import collect_files, copy_tree

logger = structlog.get_logger(__name__)

MANIFEST_PATH = "META-INF/MANIFEST.MF"
LIB_DIR = "WEB-INF/lib"


@dataclass(frozen=True)
class AttachedArtifact:
    """A secondary output registered next to the primary artifact."""

    type: str
    path: pathlib.Path
    classifier: Optional[str] = None


@dataclass
class ProjectArtifacts:
    """Outputs a packaging run registers for the project.

    Attributes:
        primary: The bundle, None until it is completely written
        attached: Secondary outputs, the code archive among them
    """

    primary: Optional[pathlib.Path] = None
    attached: List[AttachedArtifact] = field(default_factory=list)

    def set_primary(self, path: Union[str, pathlib.Path]) -> None:
        self.primary = pathlib.Path(path)

    def attach(self, type: str, path: Union[str, pathlib.Path], classifier: Optional[str] = None) -> None:
        self.attached.append(AttachedArtifact(type=type, path=pathlib.Path(path), classifier=classifier))

    def get_attached(self, type: str) -> Optional[AttachedArtifact]:
        for artifact in self.attached:
            if artifact.type == type:
                return artifact
        return None


class ArchiveBuilder:
    """Stages a plugin and writes its bundle and code archives.

    Attributes:
        staging_dir: Exploded bundle directory
        classes_dir: Compiled classes directory
        includes: Glob patterns of staged files to put in the bundle
        excludes: Glob patterns of staged files to keep out of the bundle
    """

    def __init__(
            self,
            staging_dir: Union[str, pathlib.Path],
            classes_dir: Union[str, pathlib.Path],
            includes: Optional[List[str]] = None,
            excludes: Optional[List[str]] = None,
    ) -> None:
        self.staging_dir = pathlib.Path(staging_dir)
        self.classes_dir = pathlib.Path(classes_dir)
        self.includes = list(includes or ["**/*"])
        self.excludes = list(excludes or [])

    @property
    def manifest_file(self) -> pathlib.Path:
        return self.staging_dir / MANIFEST_PATH

    @property
    def lib_dir(self) -> pathlib.Path:
        return self.staging_dir / LIB_DIR

    def write_manifest(self, manifest: Manifest) -> Manifest:
        """Write the manifest into the staging directory and read it back.

        Archives are fed from the file on disk, which is closed before
        anything reads it.
        """
        try:
            manifest.write(self.manifest_file)
            return Manifest.read(self.manifest_file)
        except FileError as e:
            raise PackagingError(
                f"Cannot stage manifest: {e}",
                file_path=e.file_path,
                operation=e.operation,
            ) from e

    def stage_resources(self, resource_source_dir: Union[str, pathlib.Path]) -> int:
        """Copy the webapp-style resource tree into the staging directory."""
        resource_source_dir = pathlib.Path(resource_source_dir)
        if not resource_source_dir.is_dir():
            logger.debug("resource_source_missing", path=str(resource_source_dir))
            return 0
        try:
            count = copy_tree(resource_source_dir, self.staging_dir)
        except OSError as e:
            raise PackagingError(
                f"Cannot stage resources from {resource_source_dir}: {e}",
                file_path=str(resource_source_dir),
                operation="stage resources",
            ) from e
        logger.debug("resources_staged", source=str(resource_source_dir), files=count)
        return count

    def stage_libraries(
            self, library_set: LibrarySet, extra_files: Iterable[pathlib.Path] = ()
    ) -> List[pathlib.Path]:
        """Copy the library files, then ``extra_files``, into ``WEB-INF/lib``.

        The lib directory is emptied first so that libraries left over from
        an earlier run never reach the bundle.

        Raises:
            PackagingError: On I/O failure or when two files share a name
        """
        sources: Dict[str, pathlib.Path] = {}
        for source in list(library_set.library_files) + list(extra_files):
            previous = sources.get(source.name)
            if previous is not None and previous != source:
                raise PackagingError(
                    f"Libraries {previous} and {source} would both be staged as {source.name}",
                    file_path=str(source),
                    operation="stage library",
                )
            sources[source.name] = source

        staged = []
        current: Optional[pathlib.Path] = None
        try:
            if self.lib_dir.exists():
                shutil.rmtree(self.lib_dir)
            self.lib_dir.mkdir(parents=True)
            for name, source in sources.items():
                current = source
                target = self.lib_dir / name
                shutil.copy2(source, target)
                staged.append(target)
        except OSError as e:
            raise PackagingError(
                f"Cannot stage library {current or self.lib_dir}: {e}",
                file_path=str(current or self.lib_dir),
                operation="stage library",
            ) from e

        logger.debug("libraries_staged", lib_dir=str(self.lib_dir), files=len(staged))
        return staged

    def create_code_archive(self, manifest: Manifest, archive_path: Union[str, pathlib.Path]) -> pathlib.Path:
        """Write the code archive: the manifest, then the classes directory."""
        archive_path = pathlib.Path(archive_path)
        if self.classes_dir.is_dir():
            files = collect_files(self.classes_dir)
        else:
            logger.warning("classes_dir_missing", path=str(self.classes_dir))
            files = []
        self._write_archive(archive_path, manifest, files)
        logger.info("code_archive_written", path=str(archive_path), entries=len(files) + 1)
        return archive_path

    def create_bundle_archive(self, manifest: Manifest, archive_path: Union[str, pathlib.Path]) -> pathlib.Path:
        """Write the bundle: the manifest, then the filtered staging tree."""
        archive_path = pathlib.Path(archive_path)
        files = collect_files(self.staging_dir, self.includes, self.excludes)
        self._write_archive(archive_path, manifest, files)
        logger.info("bundle_written", path=str(archive_path), entries=len(files) + 1)
        return archive_path

    def build(
            self,
            manifest: Manifest,
            library_set: LibrarySet,
            code_archive_path: Union[str, pathlib.Path],
            bundle_path: Union[str, pathlib.Path],
            resource_source_dir: Optional[Union[str, pathlib.Path]] = None,
            artifacts: Optional[ProjectArtifacts] = None,
    ) -> ProjectArtifacts:
        """Stage the plugin and write both archives.

        Artifacts are registered only once the bundle is complete; on
        failure nothing is registered.

        Args:
            manifest: Assembled bundle-mode manifest
            library_set: Resolved libraries to bundle
            code_archive_path: Where to write the code archive
            bundle_path: Where to write the bundle
            resource_source_dir: Resource tree to stage at the bundle root
            artifacts: Registry to update, a new one by default

        Returns:
            The updated project artifacts

        Raises:
            PackagingError: If staging or archiving fails
        """
        artifacts = artifacts if artifacts is not None else ProjectArtifacts()
        code_archive_path = pathlib.Path(code_archive_path)
        bundle_path = pathlib.Path(bundle_path)

        logger.info("staging_started", staging_dir=str(self.staging_dir))
        if resource_source_dir is not None:
            self.stage_resources(resource_source_dir)
        staged_manifest = self.write_manifest(manifest)

        self.create_code_archive(staged_manifest, code_archive_path)
        self.stage_libraries(library_set, extra_files=[code_archive_path])
        self.create_bundle_archive(staged_manifest, bundle_path)

        artifacts.attach("jar", code_archive_path)
        artifacts.set_primary(bundle_path)
        return artifacts

    def _write_archive(
            self,
            archive_path: pathlib.Path,
            manifest: Manifest,
            files: List[Tuple[pathlib.Path, str]],
    ) -> None:
        """Write a zip with the manifest as its first entry.

        A partially written archive is removed before the error propagates.
        """
        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as zf:
                zf.writestr("META-INF/", b"")
                zf.writestr(MANIFEST_PATH, manifest.to_text().encode("utf-8"))
                for file_path, arcname in files:
                    if arcname.upper() == MANIFEST_PATH:
                        continue
                    zf.write(file_path, arcname)
        except (OSError, zipfile.BadZipFile) as e:
            if archive_path.is_file():
                os.remove(archive_path)
                logger.debug("partial_archive_removed", path=str(archive_path))
            raise PackagingError(
                f"Failed to create archive {archive_path}: {e}",
                file_path=str(archive_path),
                operation="write archive",
            ) from e
