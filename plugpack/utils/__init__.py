"""Utility functions and classes for plugpack."""

from plugpack.utils.exceptions import (
    ConfigurationError,
    FileError,
    GraphError,
    ManifestCollisionError,
    ManifestError,
    PackagingError,
    PlugpackError,
)
