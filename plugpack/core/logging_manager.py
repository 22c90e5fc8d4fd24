from __future__ import annotations

import logging
import pathlib
import sys
from typing import Any, Dict, List, Optional, Union

import structlog
from pythonjsonlogger import jsonlogger

from plugpack.utils.exceptions import ConfigurationError


class LoggingManager:
    """Configures logging for a packaging run.

    plugpack modules log through ``structlog.get_logger(__name__)``. This
    manager wires structlog onto the standard library root logger, with a
    console handler and an optional file handler, rendering either JSON
    lines or plain text depending on the ``format`` setting.
    """

    # Mapping from string log levels to logging module constants
    LOG_LEVELS = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    def __init__(self, logging_config: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the Logging Manager.

        Args:
            logging_config: The ``logging`` section of the configuration.
        """
        self._config = dict(logging_config or {})
        self._root_logger: Optional[logging.Logger] = None
        self._handlers: List[logging.Handler] = []
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Set up handlers and structlog according to the configuration.

        Raises:
            ConfigurationError: If the level or format is not recognised.
        """
        level_name = str(self._config.get("level", "INFO")).lower()
        if level_name not in self.LOG_LEVELS:
            raise ConfigurationError(
                f"Unknown log level: {level_name}", config_key="logging.level"
            )
        log_level = self.LOG_LEVELS[level_name]

        log_format = str(self._config.get("format", "text")).lower()
        if log_format == "json":
            formatter: logging.Formatter = self._create_json_formatter()
        elif log_format == "text":
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
        else:
            raise ConfigurationError(
                f"Unknown log format: {log_format}", config_key="logging.format"
            )

        self._root_logger = logging.getLogger()
        self._root_logger.setLevel(log_level)
        for handler in list(self._root_logger.handlers):
            self._root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        self._add_handler(console_handler)

        file_path = self._config.get("file")
        if file_path:
            path = pathlib.Path(file_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            self._add_handler(file_handler)

        self._configure_structlog()
        self._initialized = True

    def _add_handler(self, handler: logging.Handler) -> None:
        self._root_logger.addHandler(handler)
        self._handlers.append(handler)

    def _create_json_formatter(self) -> logging.Formatter:
        """Create a JSON formatter for log records.

        Returns:
            logging.Formatter: A formatter that outputs logs in JSON format.
        """
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
            json_ensure_ascii=False,
        )

    def _configure_structlog(self) -> None:
        """Configure structlog for structured logging."""
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.KeyValueRenderer(key_order=["event"]),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )

    def get_logger(self, name: str) -> Union[logging.Logger, Any]:
        """Get a logger for a specific component.

        Args:
            name: The name of the component requesting a logger.

        Returns:
            A structlog logger once initialized, a plain logger before.
        """
        if not self._initialized:
            return logging.getLogger(name)
        return structlog.get_logger(name)

    def shutdown(self) -> None:
        """Flush and detach every handler this manager installed."""
        if not self._initialized:
            return

        for handler in self._handlers:
            handler.flush()
            handler.close()
            if self._root_logger is not None:
                self._root_logger.removeHandler(handler)
        self._handlers.clear()
        self._initialized = False


def configure_logging(logging_config: Optional[Dict[str, Any]] = None) -> LoggingManager:
    """Create and initialize a LoggingManager in one call."""
    manager = LoggingManager(logging_config)
    manager.initialize()
    return manager
