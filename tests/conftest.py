"""Pytest configuration and fixtures for plugpack tests."""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

import pytest
import structlog

from plugpack.build.config import PackagingConfig
from plugpack.packaging.artifact import (
    Artifact,
    ArtifactGraph,
    ArtifactId,
    ArtifactScope,
    DependencyTrail,
)

ROOT_ID = "org.example:my-plugin:hpi:1.0"


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo any logging setup a test performed."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a plugin project layout with build output on disk."""
    project = tmp_path / "project"
    classes = project / "target" / "classes" / "org" / "example"
    classes.mkdir(parents=True)
    (classes / "MyPlugin.class").write_bytes(b"\xca\xfe\xba\xbe")

    resources = project / "src" / "main" / "resources"
    resources.mkdir(parents=True)
    (resources / "index.jelly").write_text("<div/>", encoding="utf-8")

    webapp = project / "src" / "main" / "webapp"
    (webapp / "help").mkdir(parents=True)
    (webapp / "help" / "help.html").write_text("<p>Help</p>", encoding="utf-8")
    (webapp / "notes.tmp").write_text("scratch", encoding="utf-8")
    return project


@pytest.fixture
def repository(tmp_path: Path) -> Path:
    """Create a directory holding library files."""
    repo = tmp_path / "repository"
    repo.mkdir()
    for name in ("libx-1.0.jar", "liby-2.0.jar", "libz-3.0.jar", "libw-1.1.jar",
                 "plugin-a-1.0.hpi", "jenkins-core-2.0.jar", "core-dep-1.0.jar"):
        (repo / name).write_bytes(name.encode("utf-8"))
    return repo


@pytest.fixture
def make_artifact(repository: Path) -> Callable[..., Artifact]:
    """Return a factory building artifacts backed by files in the repository."""

    def factory(
            artifact_id: str,
            trail: Optional[List[str]] = None,
            scope: ArtifactScope = ArtifactScope.RUNTIME,
            optional: bool = False,
            is_plugin: bool = False,
            file_name: Optional[str] = None,
    ) -> Artifact:
        parsed = ArtifactId.parse(artifact_id)
        extension = "hpi" if parsed.type == "hpi" else "jar"
        return Artifact(
            id=parsed,
            file=repository / (file_name or f"{parsed.name}-{parsed.version}.{extension}"),
            scope=scope,
            dependency_trail=DependencyTrail(trail or [ROOT_ID]),
            optional=optional,
            is_plugin=is_plugin,
        )

    return factory


@pytest.fixture
def mixed_graph(make_artifact: Callable[..., Artifact]) -> ArtifactGraph:
    """A graph exercising every exclusion rule next to kept libraries."""
    return ArtifactGraph([
        make_artifact("org.example:libx:jar:1.0"),
        make_artifact("org.example:plugin-a:hpi:1.0", is_plugin=True),
        make_artifact("org.example:liby:jar:2.0", trail=[ROOT_ID, "org.example:plugin-a:hpi:1.0"]),
        make_artifact("org.jenkins-ci.main:jenkins-core:jar:2.0", scope=ArtifactScope.PROVIDED),
        make_artifact(
            "org.example:core-dep:jar:1.0",
            trail=[ROOT_ID, "org.jenkins-ci.main:jenkins-core:jar:2.0"],
        ),
        make_artifact("org.example:libz:jar:3.0", optional=True),
        make_artifact("org.example:libw:jar:1.1", scope=ArtifactScope.COMPILE),
    ])


@pytest.fixture
def graph_document(repository: Path) -> Dict[str, Any]:
    """The mixed graph as a graph document."""
    return {
        "artifacts": [
            {"id": "org.example:libx:jar:1.0", "file": str(repository / "libx-1.0.jar"),
             "scope": "runtime", "trail": [ROOT_ID]},
            {"id": "org.example:plugin-a:hpi:1.0", "file": str(repository / "plugin-a-1.0.hpi"),
             "scope": "compile", "plugin": True, "trail": [ROOT_ID]},
            {"id": "org.example:liby:jar:2.0", "file": str(repository / "liby-2.0.jar"),
             "scope": "runtime", "trail": [ROOT_ID, "org.example:plugin-a:hpi:1.0"]},
            {"id": {"group": "org.jenkins-ci.main", "name": "jenkins-core", "version": "2.0"},
             "file": str(repository / "jenkins-core-2.0.jar"), "scope": "provided", "trail": [ROOT_ID]},
            {"id": "org.example:core-dep:jar:1.0", "file": str(repository / "core-dep-1.0.jar"),
             "scope": "compile", "trail": [ROOT_ID, "org.jenkins-ci.main:jenkins-core:jar:2.0"]},
            {"id": "org.example:libz:jar:3.0", "file": str(repository / "libz-3.0.jar"),
             "scope": "runtime", "optional": True, "trail": [ROOT_ID]},
            {"id": "org.example:libw:jar:1.1", "file": str(repository / "libw-1.1.jar"),
             "scope": "compile", "trail": [ROOT_ID]},
        ]
    }


@pytest.fixture
def packaging_config(project_dir: Path, tmp_path: Path) -> PackagingConfig:
    """A configuration for the project fixture with a host home next to it."""
    return PackagingConfig(
        name="my-plugin",
        version="1.0",
        group_id="org.example",
        base_dir=project_dir,
        host_home=tmp_path / "host",
        metadata={"long_name": "My Plugin", "host_version": "2.0",
                  "plugin_class": "org.example.MyPlugin"},
    )
