"""Configuration for wordguard"""

from .config import Config, ConfigError, CONFIG_NAME
from .schema import AnalyzerConfig, LoggingConfig, ServerConfig

__all__ = [
    "Config",
    "ConfigError",
    "CONFIG_NAME",
    "AnalyzerConfig",
    "LoggingConfig",
    "ServerConfig",
]
