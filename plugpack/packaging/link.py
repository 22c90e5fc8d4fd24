"""Link descriptor emission.

A link descriptor is a bare manifest the host reads from its plugins
directory in place of an installed bundle. It points at the build output
of the plugin, so edits are picked up without repackaging.
"""

from __future__ import annotations

import pathlib
from dataclasses import dataclass
from typing import Union

import structlog

from plugpack.packaging.manifest import Manifest
from plugpack.utils.exceptions import FileError, PackagingError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LinkDescriptor:
    """A written link descriptor."""

    path: pathlib.Path
    manifest: Manifest


class LinkEmitter:
    """Writes link-mode manifests into a host plugins directory."""

    def emit(self, manifest: Manifest, link_path: Union[str, pathlib.Path]) -> LinkDescriptor:
        """Write ``manifest`` to ``link_path``.

        The plugins directory is created when it does not exist yet.

        Raises:
            PackagingError: If the descriptor cannot be written
        """
        link_path = pathlib.Path(link_path)
        try:
            manifest.write(link_path)
        except FileError as e:
            raise PackagingError(
                f"Cannot write link descriptor {link_path}: {e}",
                file_path=str(link_path),
                operation="write link descriptor",
            ) from e
        logger.info("link_descriptor_written", path=str(link_path))
        return LinkDescriptor(path=link_path, manifest=manifest)
