from __future__ import annotations

import json
import os
import pathlib
from copy import deepcopy
from typing import Any, Dict, List, Optional, Set, Union

import structlog
import yaml
from pydantic import ValidationError

from plugpack.build.config import PackagingConfig
from plugpack.utils.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


class ConfigManager:
    """Loads the packaging configuration.

    Values are layered: schema defaults, then the configuration file (YAML
    or JSON), then environment variables, then explicit overrides (usually
    from the command line). The result is validated as a PackagingConfig.

    Attributes:
        _config_path: Path to the configuration file
        _env_prefix: Prefix for environment variables
        _overrides: Explicit values applied last
        _env_vars_applied: Set of applied environment variables
    """

    def __init__(
            self,
            config_path: Optional[Union[str, pathlib.Path]] = None,
            env_prefix: str = "PLUGPACK_",
            overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file, optional
            env_prefix: Prefix for environment variables
            overrides: Values that take precedence over file and environment
        """
        self._config_path = pathlib.Path(config_path) if config_path else None
        self._env_prefix = env_prefix
        self._overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        self._env_vars_applied: Set[str] = set()
        self._loaded_from_file = False

    @property
    def env_vars_applied(self) -> Set[str]:
        return set(self._env_vars_applied)

    @property
    def loaded_from_file(self) -> bool:
        return self._loaded_from_file

    def load(self) -> PackagingConfig:
        """Load, merge and validate the configuration.

        Returns:
            The validated packaging configuration.

        Raises:
            ConfigurationError: If the file cannot be read or parsed, or the
                merged values fail validation.
        """
        config: Dict[str, Any] = {}
        file_config = self._load_from_file()
        if file_config:
            self._merge_config(config, file_config)
            self._loaded_from_file = True
        self._apply_env_vars(config)
        self._merge_config(config, self._overrides)
        return self._validate_config(config)

    def _load_from_file(self) -> Dict[str, Any]:
        """Read and parse the configuration file.

        Raises:
            ConfigurationError: If the file is missing, unreadable or malformed
        """
        if self._config_path is None:
            return {}

        if not self._config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self._config_path}",
                config_key="config_path",
            )

        suffix = self._config_path.suffix.lower()
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                content = f.read()
            if suffix in (".yaml", ".yml"):
                file_config = yaml.safe_load(content)
            elif suffix == ".json":
                file_config = json.loads(content)
            else:
                raise ConfigurationError(
                    f"Unsupported config file format: {self._config_path.suffix}",
                    config_key="config_path",
                )
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Error parsing config file {self._config_path}: {str(e)}",
                config_key="config_path",
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Error reading config file {self._config_path}: {str(e)}",
                config_key="config_path",
            ) from e

        if file_config is None:
            return {}
        if not isinstance(file_config, dict):
            raise ConfigurationError(
                f"Config file {self._config_path} must contain a mapping",
                config_key="config_path",
            )

        # Relative paths in the file are relative to the file, not the cwd
        if "base_dir" not in file_config:
            file_config["base_dir"] = str(self._config_path.parent)
        else:
            base_dir = pathlib.Path(file_config["base_dir"])
            if not base_dir.is_absolute():
                file_config["base_dir"] = str(self._config_path.parent / base_dir)
        return file_config

    def _apply_env_vars(self, config: Dict[str, Any]) -> None:
        """Override configuration values with environment variables.

        ``PLUGPACK_HOST_HOME`` sets ``host_home``; a double underscore
        separates nested keys, as in ``PLUGPACK_LOGGING__LEVEL``.
        """
        for env_name, env_value in sorted(os.environ.items()):
            if not env_name.startswith(self._env_prefix):
                continue

            config_path = env_name[len(self._env_prefix):].lower().split("__")
            if not all(config_path):
                continue
            self._set_nested_value(config, config_path, self._parse_env_value(env_value))
            self._env_vars_applied.add(env_name)
            logger.debug("config_env_override", variable=env_name)

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable values into appropriate types.

        Only booleans are converted. Numbers stay strings so that values
        such as versions (``1.10``) reach the schema unchanged.

        Args:
            value: The string value from the environment

        Returns:
            The parsed value (bool or string)
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False
        return value

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any) -> None:
        """Set a nested value in the configuration dictionary.

        Args:
            config: The configuration dictionary
            path: List of keys forming the path to the value
            value: The value to set
        """
        if not path:
            return

        if len(path) == 1:
            config[path[0]] = value
            return

        key = path[0]
        if not isinstance(config.get(key), dict):
            config[key] = {}

        self._set_nested_value(config[key], path[1:], value)

    def _merge_config(self, target: Dict[str, Any], source: Dict[str, Any]) -> None:
        """Deep-merge ``source`` into ``target``."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge_config(target[key], value)
            else:
                target[key] = deepcopy(value)

    def _validate_config(self, config: Dict[str, Any]) -> PackagingConfig:
        """Validate the configuration against the schema.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        try:
            return PackagingConfig(**config)
        except ValidationError as e:
            errors = e.errors()
            error_details = ", ".join(
                f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
                for error in errors
            )
            raise ConfigurationError(
                f"Invalid configuration: {error_details}",
                details={"validation_errors": errors},
            ) from e


def load_config(
        config_path: Optional[Union[str, pathlib.Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
        env_prefix: str = "PLUGPACK_",
) -> PackagingConfig:
    """Load a PackagingConfig from file, environment and overrides."""
    return ConfigManager(config_path, env_prefix=env_prefix, overrides=overrides).load()
