"""Unit tests for the manifest model and assembler."""

from __future__ import annotations

from pathlib import Path

import pytest

from plugpack.packaging.classpath import LibrarySet
from plugpack.packaging.manifest import (
    EOL,
    MAX_LINE_LENGTH,
    Manifest,
    ManifestBuilder,
    ManifestSection,
    assemble_manifest,
)
from plugpack.utils.exceptions import FileError, ManifestCollisionError, ManifestError


class TestManifestSection:
    """Tests for ManifestSection attribute handling."""

    def test_case_insensitive_lookup(self):
        section = ManifestSection()
        section.add_attribute_and_check("Short-Name", "my-plugin")
        assert section["short-name"] == "my-plugin"
        assert "SHORT-NAME" in section
        assert section.get("Missing") is None
        assert list(section) == ["Short-Name"]

    def test_collision(self):
        """Test that a name differing only in case collides."""
        section = ManifestSection()
        section.add_attribute_and_check("Libraries", "a.jar")
        with pytest.raises(ManifestCollisionError) as excinfo:
            section.add_attribute_and_check("libraries", "b.jar")
        assert excinfo.value.attribute == "libraries"
        assert "main section" in str(excinfo.value)

    @pytest.mark.parametrize("name", ["", "Bad Name", "-leading", "x" * 71, "Colon:"])
    def test_invalid_names(self, name):
        with pytest.raises(ManifestError):
            ManifestSection().add_attribute_and_check(name, "value")

    def test_value_with_newline(self):
        with pytest.raises(ManifestError, match="line breaks"):
            ManifestSection("s").add_attribute_and_check("Key", "one\ntwo")


class TestManifestText:
    """Tests for JAR manifest serialization and parsing."""

    def test_version_first(self):
        manifest = ManifestBuilder().with_attribute("Short-Name", "my-plugin").build()
        assert manifest.to_text() == f"Manifest-Version: 1.0{EOL}Short-Name: my-plugin{EOL}{EOL}"

    def test_explicit_version_kept(self):
        manifest = (
            ManifestBuilder()
            .with_attribute("Manifest-Version", "2.0")
            .with_attribute("Url", "https://example.org")
            .build()
        )
        assert manifest.to_text().startswith(f"Manifest-Version: 2.0{EOL}Url:")
        assert manifest.to_text().count("Manifest-Version") == 1

    def test_long_lines_wrapped(self):
        """Test that no physical line exceeds 72 bytes and the value survives."""
        value = ",".join(f"/very/long/path/to/library-{i}.jar" for i in range(10))
        manifest = ManifestBuilder().with_attribute("Libraries", value).build()
        text = manifest.to_text()

        lines = text.split(EOL)
        assert all(len(line.encode("utf-8")) <= MAX_LINE_LENGTH for line in lines)
        assert any(line.startswith(" ") for line in lines)
        assert Manifest.parse(text).main_section["Libraries"] == value

    def test_multibyte_not_split(self):
        value = "é" * 100
        text = ManifestBuilder().with_attribute("Long-Name", value).build().to_text()
        for line in text.split(EOL):
            line.encode("utf-8").decode("utf-8")
            assert len(line.encode("utf-8")) <= MAX_LINE_LENGTH
        assert Manifest.parse(text).main_section["Long-Name"] == value

    def test_sections(self):
        manifest = (
            ManifestBuilder()
            .with_attribute("Short-Name", "my-plugin")
            .with_section("org/example/", {"Sealed": "true"})
            .build()
        )
        text = manifest.to_text()
        assert f"{EOL}{EOL}Name: org/example/{EOL}Sealed: true{EOL}{EOL}" in text

        parsed = Manifest.parse(text)
        assert parsed.to_text() == text
        assert [s.name for s in parsed.sections] == ["org/example/"]
        assert parsed.get_section("org/example/")["Sealed"] == "true"

    def test_parse_empty_value(self):
        parsed = Manifest.parse("Manifest-Version: 1.0\r\nUrl:\r\n\r\n")
        assert parsed.main_section["Url"] == ""

    @pytest.mark.parametrize("text", [
        " continuation first\r\n",
        "NoSeparator\r\n",
        "Manifest-Version: 1.0\r\n\r\nSealed: true\r\n",
    ])
    def test_parse_malformed(self, text):
        with pytest.raises(ManifestError):
            Manifest.parse(text)

    def test_parse_duplicate(self):
        with pytest.raises(ManifestCollisionError):
            Manifest.parse("Url: a\r\nURL: b\r\n")

    def test_duplicate_section(self):
        with pytest.raises(ManifestCollisionError):
            ManifestBuilder().with_section("a", {}).with_section("a", {}).build()


class TestManifestFile:
    """Tests for manifest file I/O."""

    def test_write_read(self, tmp_path):
        manifest = ManifestBuilder().with_attributes({"Short-Name": "p", "Long-Name": "Plugin"}).build()
        path = manifest.write(tmp_path / "META-INF" / "MANIFEST.MF")

        assert path.read_bytes().startswith(b"Manifest-Version: 1.0\r\n")
        assert Manifest.read(path) == Manifest.parse(manifest.to_text())

    def test_read_missing(self, tmp_path):
        with pytest.raises(FileError) as excinfo:
            Manifest.read(tmp_path / "missing.MF")
        assert excinfo.value.operation == "read manifest"

    def test_write_into_file_path(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(FileError) as excinfo:
            ManifestBuilder().build().write(blocker / "MANIFEST.MF")
        assert excinfo.value.operation == "write manifest"


class TestAssembleManifest:
    """Tests for assemble_manifest."""

    METADATA = [("Short-Name", "my-plugin"), ("Plugin-Version", "1.0")]

    def test_bundle_manifest(self):
        """Test that metadata comes first, then Libraries."""
        library_set = LibrarySet(["/repo/libx-1.0.jar"])
        manifest = assemble_manifest(self.METADATA, library_set)

        assert manifest.main_section.items() == [
            ("Short-Name", "my-plugin"),
            ("Plugin-Version", "1.0"),
            ("Libraries", str(Path("/repo/libx-1.0.jar"))),
        ]
        assert "Resource-Path" not in manifest.main_section

    def test_empty_libraries(self):
        manifest = assemble_manifest(self.METADATA, LibrarySet())
        assert manifest.main_section["Libraries"] == ""
        assert "Libraries: \r\n" in manifest.to_text()

    def test_link_manifest(self, tmp_path):
        library_set = LibrarySet(["/repo/libx-1.0.jar"], local_entries=[tmp_path / "classes"])
        manifest = assemble_manifest(self.METADATA, library_set, resource_path=tmp_path / "webapp")

        assert manifest.main_section["Resource-Path"] == str((tmp_path / "webapp").absolute())
        assert manifest.main_section["Libraries"].startswith(str(tmp_path / "classes"))

    def test_metadata_collision_before_write(self, tmp_path):
        """Test that metadata defining Libraries fails without touching disk."""
        metadata = self.METADATA + [("Libraries", "/elsewhere.jar")]
        with pytest.raises(ManifestCollisionError) as excinfo:
            assemble_manifest(metadata, LibrarySet(["/repo/libx-1.0.jar"]))
        assert excinfo.value.attribute == "Libraries"
        assert list(tmp_path.iterdir()) == []

    def test_resource_path_collision(self):
        metadata = self.METADATA + [("resource-path", "/x")]
        with pytest.raises(ManifestCollisionError):
            assemble_manifest(metadata, LibrarySet(), resource_path="/webapp")
