"""Plugin manifest model and assembly.

Manifests use the JAR manifest text format: ``Name: value`` lines with CRLF
endings, wrapped at 72 bytes with single-space continuation lines, a main
section first and named sections after it, each introduced by a ``Name``
attribute and separated by a blank line.
"""

from __future__ import annotations

import pathlib
import re
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import structlog

from plugpack.packaging.classpath import LibrarySet
from plugpack.utils.exceptions import FileError, ManifestCollisionError, ManifestError

logger = structlog.get_logger(__name__)

MANIFEST_VERSION = "Manifest-Version"
DEFAULT_MANIFEST_VERSION = "1.0"
LIBRARIES = "Libraries"
RESOURCE_PATH = "Resource-Path"
SECTION_NAME = "Name"

MAX_LINE_LENGTH = 72
EOL = "\r\n"

_ATTRIBUTE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,69}$")

AttributeSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


class ManifestSection:
    """Ordered attributes of one manifest section.

    Attribute names are matched case-insensitively and may be added only once.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name
        self._attributes: Dict[str, Tuple[str, str]] = {}

    def add_attribute_and_check(self, name: str, value: str) -> None:
        """Add an attribute, refusing names already present.

        Raises:
            ManifestError: If the name is not a valid attribute name
            ManifestCollisionError: If the section already has the attribute
        """
        if not _ATTRIBUTE_NAME.match(name):
            raise ManifestError(f"Invalid manifest attribute name: {name!r}", section=self.name)
        if "\n" in str(value) or "\r" in str(value):
            raise ManifestError(
                f"Manifest attribute {name!r} must not contain line breaks",
                section=self.name,
            )
        key = name.lower()
        if key in self._attributes:
            raise ManifestCollisionError(name, section=self.name)
        self._attributes[key] = (name, str(value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._attributes.get(name.lower())
        return entry[1] if entry else default

    def __getitem__(self, name: str) -> str:
        return self._attributes[name.lower()][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._attributes

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._attributes.values())

    def __len__(self) -> int:
        return len(self._attributes)

    def items(self) -> List[Tuple[str, str]]:
        return list(self._attributes.values())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ManifestSection):
            return self.name == other.name and self.items() == other.items()
        return NotImplemented

    def __repr__(self) -> str:
        return f"ManifestSection({self.name!r}, {dict(self.items())!r})"


class Manifest:
    """A main section plus ordered named sections."""

    def __init__(self) -> None:
        self._main = ManifestSection()
        self._sections: Dict[str, ManifestSection] = {}

    @property
    def main_section(self) -> ManifestSection:
        return self._main

    @property
    def sections(self) -> List[ManifestSection]:
        return list(self._sections.values())

    def add_section(self, name: str) -> ManifestSection:
        """Create a named section.

        Raises:
            ManifestCollisionError: If a section with that name exists
        """
        if name in self._sections:
            raise ManifestCollisionError(SECTION_NAME, section=name)
        section = ManifestSection(name)
        self._sections[name] = section
        return section

    def get_section(self, name: str) -> Optional[ManifestSection]:
        return self._sections.get(name)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Manifest):
            return self._main == other._main and self.sections == other.sections
        return NotImplemented

    def to_text(self) -> str:
        """Serialize in JAR manifest format."""
        lines: List[str] = []
        if MANIFEST_VERSION not in self._main:
            lines.extend(_wrap(MANIFEST_VERSION, DEFAULT_MANIFEST_VERSION))
        for name, value in self._main.items():
            lines.extend(_wrap(name, value))
        lines.append("")

        for section in self._sections.values():
            lines.extend(_wrap(SECTION_NAME, section.name))
            for name, value in section.items():
                lines.extend(_wrap(name, value))
            lines.append("")

        return EOL.join(lines) + EOL

    def write(self, path: Union[str, pathlib.Path]) -> pathlib.Path:
        """Write the manifest to ``path``, creating parent directories.

        Raises:
            FileError: If the file cannot be written
        """
        path = pathlib.Path(path)
        logger.info("manifest_write", path=str(path))
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(self.to_text().encode("utf-8"))
        except OSError as e:
            raise FileError(
                f"Error writing manifest {path}: {e}",
                file_path=str(path),
                operation="write manifest",
            ) from e
        return path

    @classmethod
    def parse(cls, text: str) -> Manifest:
        """Parse JAR manifest text.

        Raises:
            ManifestError: On malformed lines or duplicate attributes
        """
        manifest = cls()
        current: Optional[ManifestSection] = manifest.main_section
        started_main = False

        for name, value in _logical_lines(text):
            if name is None:
                # Blank line: the current section is complete
                if current is manifest.main_section and not started_main:
                    continue
                current = None
                continue
            if current is None:
                if name.lower() != SECTION_NAME.lower():
                    raise ManifestError(
                        f"Manifest section must start with '{SECTION_NAME}', got {name!r}"
                    )
                current = manifest.add_section(value)
                continue
            started_main = True
            current.add_attribute_and_check(name, value)

        return manifest

    @classmethod
    def read(cls, path: Union[str, pathlib.Path]) -> Manifest:
        """Read a manifest file.

        Raises:
            FileError: If the file cannot be read
            ManifestError: If its content is malformed
        """
        path = pathlib.Path(path)
        try:
            with open(path, "rb") as f:
                content = f.read().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileError(
                f"Error reading manifest {path}: {e}",
                file_path=str(path),
                operation="read manifest",
            ) from e
        return cls.parse(content)


def _wrap(name: str, value: str) -> List[str]:
    """Split ``name: value`` into lines of at most MAX_LINE_LENGTH bytes.

    Continuation lines start with one space. Multi-byte characters are never
    split across lines.
    """
    lines: List[str] = []
    current = f"{name}: "
    current_size = len(current.encode("utf-8"))
    for char in value:
        size = len(char.encode("utf-8"))
        if current_size + size > MAX_LINE_LENGTH:
            lines.append(current)
            current = " "
            current_size = 1
        current += char
        current_size += size
    lines.append(current)
    return lines


def _logical_lines(text: str) -> Iterator[Tuple[Optional[str], str]]:
    """Yield (name, value) per logical line, (None, "") for blank lines."""
    pending: Optional[str] = None
    for raw in re.split(r"\r\n|\r|\n", text):
        if raw.startswith(" "):
            if pending is None:
                raise ManifestError("Manifest continuation line without an attribute")
            pending += raw[1:]
            continue
        if pending is not None:
            yield _split_attribute(pending)
            pending = None
        if raw == "":
            yield None, ""
        else:
            pending = raw
    if pending is not None:
        yield _split_attribute(pending)


def _split_attribute(line: str) -> Tuple[str, str]:
    name, sep, value = line.partition(": ")
    if not sep:
        # Empty values may have lost their trailing space
        if line.endswith(":") and ":" not in line[:-1]:
            return line[:-1], ""
        raise ManifestError(f"Malformed manifest line: {line!r}")
    return name, value


class ManifestBuilder:
    """Fluent assembly of a Manifest, validated when built.

    Attributes are recorded in call order and only applied to a fresh
    Manifest by ``build()``, so a collision is reported before anything is
    written anywhere.
    """

    def __init__(self) -> None:
        self._main: List[Tuple[str, str]] = []
        self._sections: List[Tuple[str, List[Tuple[str, str]]]] = []

    def with_attribute(self, name: str, value: str) -> ManifestBuilder:
        self._main.append((name, str(value)))
        return self

    def with_attributes(self, attributes: AttributeSource) -> ManifestBuilder:
        """Add main-section attributes from a mapping or (name, value) pairs."""
        items = attributes.items() if isinstance(attributes, Mapping) else attributes
        for name, value in items:
            self.with_attribute(name, value)
        return self

    def with_libraries(self, library_set: LibrarySet) -> ManifestBuilder:
        return self.with_attribute(LIBRARIES, library_set.to_manifest_value())

    def with_resource_path(self, resource_path: Union[str, pathlib.Path]) -> ManifestBuilder:
        return self.with_attribute(RESOURCE_PATH, str(pathlib.Path(resource_path).absolute()))

    def with_section(self, name: str, attributes: AttributeSource) -> ManifestBuilder:
        items = attributes.items() if isinstance(attributes, Mapping) else attributes
        self._sections.append((name, [(k, str(v)) for k, v in items]))
        return self

    def build(self) -> Manifest:
        """Create the Manifest.

        Raises:
            ManifestCollisionError: If an attribute name is used twice in a section
            ManifestError: If an attribute name or value is invalid
        """
        manifest = Manifest()
        for name, value in self._main:
            manifest.main_section.add_attribute_and_check(name, value)
        for section_name, attributes in self._sections:
            section = manifest.add_section(section_name)
            for name, value in attributes:
                section.add_attribute_and_check(name, value)
        return manifest


def assemble_manifest(
        metadata: AttributeSource,
        library_set: LibrarySet,
        resource_path: Optional[Union[str, pathlib.Path]] = None,
) -> Manifest:
    """Build the plugin manifest.

    Host metadata goes into the main section unchanged, followed by
    ``Libraries`` and, for link mode, ``Resource-Path``.

    Args:
        metadata: Host-required attributes
        library_set: The resolved LibrarySet
        resource_path: Un-staged resource source root (link mode only)

    Raises:
        ManifestCollisionError: If metadata already defines one of the attributes
    """
    builder = ManifestBuilder().with_attributes(metadata).with_libraries(library_set)
    if resource_path is not None:
        builder.with_resource_path(resource_path)
    return builder.build()
