"""Unit tests for the link emitter."""

from __future__ import annotations

import pytest

from plugpack.packaging.classpath import LibrarySet
from plugpack.packaging.link import LinkEmitter
from plugpack.packaging.manifest import Manifest, assemble_manifest
from plugpack.utils.exceptions import PackagingError


class TestLinkEmitter:
    """Tests for LinkEmitter."""

    def test_emit_creates_plugins_dir(self, tmp_path):
        manifest = assemble_manifest(
            [("Short-Name", "my-plugin")],
            LibrarySet(["/repo/libx-1.0.jar"], local_entries=[tmp_path / "classes"]),
            resource_path=tmp_path / "webapp",
        )
        link_path = tmp_path / "host" / "plugins" / "my-plugin.hpl"

        descriptor = LinkEmitter().emit(manifest, link_path)

        assert descriptor.path == link_path
        assert link_path.is_file()
        written = Manifest.read(link_path)
        assert written.main_section["Resource-Path"] == str((tmp_path / "webapp").absolute())
        assert written.main_section["Libraries"] == manifest.main_section["Libraries"]

    def test_emit_overwrites(self, tmp_path):
        link_path = tmp_path / "plugins" / "p.hpl"
        link_path.parent.mkdir()
        link_path.write_text("stale", encoding="utf-8")

        LinkEmitter().emit(assemble_manifest([("Short-Name", "p")], LibrarySet()), link_path)
        assert Manifest.read(link_path).main_section["Short-Name"] == "p"

    def test_emit_failure(self, tmp_path):
        (tmp_path / "plugins").write_text("not a directory", encoding="utf-8")
        with pytest.raises(PackagingError) as excinfo:
            LinkEmitter().emit(Manifest(), tmp_path / "plugins" / "p.hpl")
        assert excinfo.value.operation == "write link descriptor"
