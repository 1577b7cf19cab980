"""Configuration module for neo-cache."""

from .logging_config import (
    setup_logging,
    LoggingConfig,
    LogFormat,
    LogLevel,
    LogVerbosity,
)

__all__ = [
    "setup_logging",
    "LoggingConfig",
    "LogFormat",
    "LogLevel",
    "LogVerbosity",
]
