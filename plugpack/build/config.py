"""Packaging configuration for plugpack.

This module contains the configuration classes that describe the project
being packaged, where its build output lives, and which artifact form a
packaging run should produce.
"""

from __future__ import annotations

import enum
import json
import pathlib
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

import pydantic
from pydantic import Field

from plugpack.utils.exceptions import ConfigurationError


class BuildMode(str, enum.Enum):
    """Artifact forms a packaging run can produce."""

    BUNDLE = "bundle"  # Installable archive with bundled libraries
    LINK = "link"  # Development descriptor pointing at build output


class PluginMetadata(pydantic.BaseModel):
    """Host-required manifest metadata for the plugin.

    Every field left unset is omitted from the manifest. ``extra`` carries
    additional attributes verbatim, after the well-known ones.
    """

    short_name: Optional[str] = None
    long_name: Optional[str] = None
    group_id: Optional[str] = None
    version: Optional[str] = None
    host_version: Optional[str] = None
    plugin_class: Optional[str] = None
    url: Optional[str] = None
    extra: Dict[str, str] = Field(default_factory=dict)

    # Manifest attribute name for each well-known field, in emission order
    ATTRIBUTE_NAMES: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("plugin_class", "Plugin-Class"),
        ("group_id", "Group-Id"),
        ("short_name", "Short-Name"),
        ("long_name", "Long-Name"),
        ("url", "Url"),
        ("version", "Plugin-Version"),
        ("host_version", "Jenkins-Version"),
    )

    def to_attributes(self) -> List[Tuple[str, str]]:
        """Return the manifest attributes as ordered (name, value) pairs."""
        attributes = []
        for field_name, attribute in self.ATTRIBUTE_NAMES:
            value = getattr(self, field_name)
            if value is not None:
                attributes.append((attribute, str(value)))
        for name, value in self.extra.items():
            attributes.append((name, str(value)))
        return attributes


class PackagingConfig(pydantic.BaseModel):
    """Configuration for packaging a plugin.

    Relative paths are resolved against ``base_dir`` when used.

    Attributes:
        name: Artifact name of the plugin project
        version: Project version
        group_id: Project group identifier
        final_name: Base name of produced files (defaults to ``name``)
        packaging: Project packaging type; only ``hpi`` projects are packaged
        mode: Which artifact form to produce
        base_dir: Project base directory
        output_dir: Directory where archives are written
        classes_dir: Compiled classes directory
        resource_dirs: Declared resource source directories
        resource_source_dir: Webapp-style resource root staged into the bundle
        staging_dir: Exploded bundle directory (defaults to output_dir/final_name)
        host_home: Host home directory; link descriptors go to its plugins dir
        includes: Glob patterns of staged files to put in the bundle
        excludes: Glob patterns of staged files to keep out of the bundle
        optional_overrides: ``group:name`` to optional flag, applied to the graph
        core_artifacts: Identities of the host core library
        metadata: Host-required manifest metadata
        logging: Logging settings (level, format, file)
    """

    name: str = "plugin"
    version: str = "1.0-SNAPSHOT"
    group_id: Optional[str] = None
    final_name: Optional[str] = None
    packaging: str = "hpi"
    mode: BuildMode = BuildMode.BUNDLE
    base_dir: pathlib.Path = pathlib.Path(".")
    output_dir: pathlib.Path = pathlib.Path("target")
    classes_dir: pathlib.Path = pathlib.Path("target/classes")
    resource_dirs: List[pathlib.Path] = Field(
        default_factory=lambda: [pathlib.Path("src/main/resources")]
    )
    resource_source_dir: pathlib.Path = pathlib.Path("src/main/webapp")
    staging_dir: Optional[pathlib.Path] = None
    host_home: Optional[pathlib.Path] = None
    includes: List[str] = Field(default_factory=lambda: ["**/*"])
    excludes: List[str] = Field(default_factory=list)
    optional_overrides: Dict[str, bool] = Field(default_factory=dict)
    core_artifacts: List[str] = Field(
        default_factory=lambda: ["jenkins-core", "hudson-core"]
    )
    metadata: PluginMetadata = Field(default_factory=PluginMetadata)
    bundle_extension: str = ".hpi"
    code_extension: str = ".jar"
    link_extension: str = ".hpl"
    logging: Dict[str, Any] = Field(
        default_factory=lambda: {"level": "INFO", "format": "text"}
    )

    @pydantic.field_validator("bundle_extension", "code_extension", "link_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Extensions must carry their leading dot."""
        if not v.startswith(".") or len(v) < 2:
            raise ValueError(f"File extension must start with '.': {v!r}")
        return v

    @pydantic.field_validator("core_artifacts")
    @classmethod
    def validate_core_artifacts(cls, v: List[str]) -> List[str]:
        """Core identities are ``name`` or ``group:name``."""
        for identity in v:
            if not identity or identity.count(":") > 1:
                raise ValueError(
                    f"Core artifact must be 'name' or 'group:name': {identity!r}"
                )
        return v

    @property
    def effective_final_name(self) -> str:
        return self.final_name or self.name

    def resolve_path(self, path: Union[str, pathlib.Path]) -> pathlib.Path:
        """Resolve a configured path against the project base directory."""
        path = pathlib.Path(path)
        if not path.is_absolute():
            path = self.base_dir / path
        return path.absolute()

    def get_output_path(self, extension: str) -> pathlib.Path:
        """Get the path of an archive produced in the output directory."""
        return self.resolve_path(self.output_dir) / f"{self.effective_final_name}{extension}"

    def get_staging_dir(self) -> pathlib.Path:
        if self.staging_dir is not None:
            return self.resolve_path(self.staging_dir)
        return self.resolve_path(self.output_dir) / self.effective_final_name

    def get_link_path(self) -> pathlib.Path:
        """Determine where to write the link descriptor.

        Raises:
            ConfigurationError: If ``host_home`` is not configured.
        """
        if self.host_home is None:
            raise ConfigurationError(
                "Setting host_home needs to point at the host home directory. "
                "Pass --host-home, set PLUGPACK_HOST_HOME, or add host_home to "
                "the configuration file.",
                config_key="host_home",
            )
        plugins_dir = self.resolve_path(self.host_home) / "plugins"
        return plugins_dir / f"{self.effective_final_name}{self.link_extension}"

    def effective_metadata(self) -> PluginMetadata:
        """Metadata with project identity filled in where left unset."""
        return self.metadata.model_copy(
            update={
                "short_name": self.metadata.short_name or self.name,
                "version": self.metadata.version or self.version,
                "group_id": self.metadata.group_id or self.group_id,
            }
        )

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> PackagingConfig:
        """Create a PackagingConfig from a dictionary.

        Args:
            config_dict: Dictionary containing configuration values.

        Returns:
            PackagingConfig instance.
        """
        return cls(**config_dict)

    @classmethod
    def from_json_file(cls, json_path: Union[str, pathlib.Path]) -> PackagingConfig:
        """Load a PackagingConfig from a JSON file.

        Args:
            json_path: Path to the JSON configuration file.

        Returns:
            PackagingConfig instance.
        """
        with open(json_path, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the PackagingConfig to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    def to_json_file(self, json_path: Union[str, pathlib.Path]) -> None:
        """Save the PackagingConfig to a JSON file.

        Args:
            json_path: Path where the JSON configuration file will be saved.
        """
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
