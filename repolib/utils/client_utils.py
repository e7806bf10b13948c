"""
Repository Client Utilities

Exception hierarchy and shared helper functions for the repository client.
"""

from typing import Optional


class RepoLibError(Exception):
    """Base exception for repository client errors."""
    pass


class NotFound(RepoLibError):
    """Raised when an identifier lookup matches no repository resource."""
    pass


class AmbiguousMatch(RepoLibError):
    """Raised when an identifier lookup matches more than one repository resource."""
    pass


class TransportFailure(RepoLibError):
    """Raised when a request to the repository fails or returns a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(RepoLibError):
    """Raised on an invalid configuration or an incompatible connection object."""
    pass


class ParseFailure(RepoLibError):
    """Raised when a response body can't be decoded as RDF metadata."""
    pass


def validate_required_params(**params):
    """
    Validate that required parameters are provided.

    Args:
        **params: Parameter name-value pairs to validate

    Raises:
        RepoLibError: If any required parameter is missing or None
    """
    for param_name, param_value in params.items():
        if param_value is None or param_value == "":
            raise RepoLibError(f"Required parameter '{param_name}' is missing or empty")
