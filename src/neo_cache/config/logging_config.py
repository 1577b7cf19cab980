"""Centralized logging configuration for neo-cache.

Provides consistent, configurable logging with environment-based control
over verbosity, format, and the noise level of backend client libraries.
"""

import logging
import logging.config
import os
from typing import Any, Dict, Optional
from enum import Enum


class LogLevel(str, Enum):
    """Supported log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogVerbosity(str, Enum):
    """Log verbosity modes."""
    QUIET = "QUIET"      # Only errors and critical
    NORMAL = "NORMAL"    # Standard logging (warnings and above)
    VERBOSE = "VERBOSE"  # Info level logging
    DEBUG = "DEBUG"      # Full debug logging


class LogFormat(str, Enum):
    """Log format options."""
    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"


FORMAT_STRINGS = {
    LogFormat.SIMPLE: "%(asctime)s - %(levelname)s - %(message)s",
    LogFormat.DETAILED: "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
    LogFormat.JSON: '{"time":"%(asctime)s","level":"%(levelname)s","module":"%(name)s","message":"%(message)s"}',
}


def get_log_level_from_verbosity(verbosity: str) -> str:
    """Map verbosity mode to log level."""
    verbosity_map = {
        LogVerbosity.QUIET: LogLevel.ERROR.value,
        LogVerbosity.NORMAL: LogLevel.WARNING.value,
        LogVerbosity.VERBOSE: LogLevel.INFO.value,
        LogVerbosity.DEBUG: LogLevel.DEBUG.value,
    }
    try:
        return verbosity_map[LogVerbosity(verbosity.upper())]
    except ValueError:
        return LogLevel.WARNING.value


class LoggingConfig:
    """Centralized logging configuration manager."""

    # Backend client libraries that should only log errors
    ERROR_ONLY_MODULES = [
        "redis",
        "pymemcache",
        "asyncio",
    ]

    @classmethod
    def build(
        cls,
        log_level: Optional[str] = None,
        log_verbosity: Optional[str] = None,
        log_format: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build a dictConfig mapping.

        Explicit arguments win over the LOG_LEVEL, LOG_VERBOSITY and
        LOG_FORMAT environment variables. An explicit level wins over the
        level derived from verbosity.
        """
        log_level = log_level or os.getenv("LOG_LEVEL")
        log_verbosity = log_verbosity or os.getenv("LOG_VERBOSITY", "NORMAL")
        log_format = (log_format or os.getenv("LOG_FORMAT", "simple")).lower()

        if log_level and log_level.upper() in LogLevel.__members__:
            effective_log_level = log_level.upper()
        else:
            effective_log_level = get_log_level_from_verbosity(log_verbosity)

        try:
            format_string = FORMAT_STRINGS[LogFormat(log_format)]
        except ValueError:
            format_string = FORMAT_STRINGS[LogFormat.SIMPLE]

        logging_config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": format_string,
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": effective_log_level,
                    "formatter": "default",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {
                "level": effective_log_level,
                "handlers": ["console"],
            },
            "loggers": {
                "neo_cache": {
                    "level": effective_log_level,
                },
            },
        }

        for module in cls.ERROR_ONLY_MODULES:
            logging_config["loggers"][module] = {
                "level": "ERROR",
                "handlers": ["console"],
                "propagate": False,
            }

        return logging_config

    @classmethod
    def configure(cls, **kwargs) -> None:
        """Configure logging based on arguments and environment variables."""
        logging_config = cls.build(**kwargs)
        logging.config.dictConfig(logging_config)

        logger = logging.getLogger(__name__)
        logger.debug(f"Logging configured: level={logging_config['root']['level']}")

    @classmethod
    def set_module_level(cls, module_name: str, level: str) -> None:
        """Set log level for a specific module.

        Args:
            module_name: Name of the module
            level: Log level to set
        """
        logging.getLogger(module_name).setLevel(getattr(logging, level.upper()))

    @classmethod
    def silence_module(cls, module_name: str) -> None:
        """Silence all logging from a module."""
        cls.set_module_level(module_name, "CRITICAL")


def setup_logging(**kwargs) -> None:
    """Setup logging configuration.

    This is the main entry point for configuring logging in an application
    embedding neo-cache. It should be called once at application startup.
    """
    LoggingConfig.configure(**kwargs)
