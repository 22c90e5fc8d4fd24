"""Build orchestration for plugpack.

This package drives a packaging run from configuration to output files.

Modules:
    builder: Builder class that packages a plugin in bundle or link mode
    config: Packaging configuration classes
"""

from __future__ import annotations

from plugpack.build.builder import Builder, build_plugin
from plugpack.build.config import BuildMode, PackagingConfig, PluginMetadata

__all__ = [
    "Builder",
    "BuildMode",
    "PackagingConfig",
    "PluginMetadata",
    "build_plugin",
]
