"""Core package containing the configuration and logging managers."""

from plugpack.core.config_manager import ConfigManager, load_config
from plugpack.core.logging_manager import LoggingManager, configure_logging
