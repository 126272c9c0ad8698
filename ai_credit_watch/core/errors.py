"""
Error taxonomy for balance fetching.

ConfigurationError is quiet (it means "not bound"), the other two are
surfaced to consumers.
"""

from typing import Optional


class BalanceError(Exception):
    """Base class for all balance fetch failures."""


class ConfigurationError(BalanceError):
    """Raised when the endpoint or the secret is missing."""


class NetworkError(BalanceError):
    """Raised when the call cannot complete or returns a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(BalanceError):
    """Raised when a success body does not have the expected shape."""
