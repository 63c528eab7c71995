"""
Error taxonomy for the dependency bumper.
"""

from .exceptions import (
    DependencyBumperError, ConfigError, ParameterResolutionError,
    DirectoryClientError, AuthError, TransportError,
    RepoOperationError, ManifestParseError
)

__all__ = [
    "DependencyBumperError",
    "ConfigError",
    "ParameterResolutionError",
    "DirectoryClientError",
    "AuthError",
    "TransportError",
    "RepoOperationError",
    "ManifestParseError"
]
