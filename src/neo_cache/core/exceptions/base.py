"""Base exceptions for neo-cache.

This module defines the root of the neo-cache exception hierarchy. Every
exception carries an error code and a details mapping so callers can log
structured context without parsing messages.
"""

from typing import Any, Dict, Optional


class NeoCacheError(Exception):
    """Base exception for all neo-cache errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        *args,
        **kwargs
    ):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


def create_error_response(exception: NeoCacheError) -> Dict[str, Any]:
    """Create standardized error payload from exception.

    Args:
        exception: The neo-cache exception

    Returns:
        Error response dictionary
    """
    return {
        "error": {
            "code": exception.error_code,
            "message": exception.message,
            "details": exception.details,
            "type": exception.__class__.__name__,
        }
    }
