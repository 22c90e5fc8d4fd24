from __future__ import annotations

from typing import Any, Optional


class PlugpackError(Exception):
    """Base exception for all plugpack errors."""

    def __init__(self, message: str, *args: Any, **kwargs: Any) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            *args: Additional positional arguments for Exception
            **kwargs: Additional error information
        """
        self.message = message
        self.details = kwargs.pop("details", {}) or {}
        self.details.update(kwargs)
        super().__init__(message, *args)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.message}"


class ConfigurationError(PlugpackError):
    """Exception raised for configuration-related errors."""

    def __init__(
            self, message: str, *args: Any, config_key: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a ConfigurationError.

        Args:
            message: A descriptive error message.
            *args: Additional positional arguments to pass to the parent Exception.
            config_key: The configuration key that caused the error.
            **kwargs: Additional keyword arguments to pass to the parent Exception.
        """
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, *args, details=details, **kwargs)
        self.config_key = config_key


class GraphError(PlugpackError):
    """Exception raised when a resolved dependency graph document is malformed."""

    def __init__(
            self, message: str, *args: Any, artifact_id: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a GraphError.

        Args:
            message: A descriptive error message.
            *args: Additional positional arguments to pass to the parent Exception.
            artifact_id: The artifact whose record is malformed.
            **kwargs: Additional keyword arguments to pass to the parent Exception.
        """
        details = kwargs.pop("details", {})
        if artifact_id:
            details["artifact_id"] = artifact_id
        super().__init__(message, *args, details=details, **kwargs)


class ManifestError(PlugpackError):
    """Exception raised for manifest parsing and assembly errors."""

    def __init__(
            self, message: str, *args: Any, section: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a ManifestError.

        Args:
            message: A descriptive error message.
            *args: Additional positional arguments to pass to the parent Exception.
            section: The manifest section involved, None for the main section.
            **kwargs: Additional keyword arguments to pass to the parent Exception.
        """
        details = kwargs.pop("details", {})
        if section:
            details["section"] = section
        super().__init__(message, *args, details=details, **kwargs)


class ManifestCollisionError(ManifestError):
    """Exception raised when an attribute is added twice to the same manifest section."""

    def __init__(
            self, attribute: str, section: Optional[str] = None, **kwargs: Any
    ) -> None:
        where = f"section '{section}'" if section else "the main section"
        details = kwargs.pop("details", {})
        details["attribute"] = attribute
        super().__init__(
            f"Manifest attribute '{attribute}' is already defined in {where}",
            section=section,
            details=details,
            **kwargs,
        )
        self.attribute = attribute


class FileError(PlugpackError):
    """Exception raised for file-related errors."""

    def __init__(
            self,
            message: str,
            *args: Any,
            file_path: Optional[str] = None,
            operation: Optional[str] = None,
            **kwargs: Any
    ) -> None:
        """Initialize a FileError.

        Args:
            message: A descriptive error message.
            *args: Additional positional arguments to pass to the parent Exception.
            file_path: The path of the file that caused the error.
            operation: What was being done to the file.
            **kwargs: Additional keyword arguments to pass to the parent Exception.
        """
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = str(file_path)
        if operation:
            details["operation"] = operation
        super().__init__(message, *args, details=details, **kwargs)
        self.file_path = str(file_path) if file_path else None
        self.operation = operation


class PackagingError(FileError):
    """Exception raised when staging or archiving a plugin fails."""

    pass
