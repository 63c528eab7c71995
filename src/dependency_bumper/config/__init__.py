"""
Configuration management for the dependency bumper.
"""

from .config_manager import (
    ConfigManager, AppConfig, BitbucketConfig, WorkspaceConfig, GitConfig,
    ManifestConfig, CredentialsConfig, LoggingConfig, DEFAULT_COMMIT_MESSAGE
)
from .credential_store import CredentialStore

__all__ = [
    "ConfigManager",
    "AppConfig",
    "BitbucketConfig",
    "WorkspaceConfig",
    "GitConfig",
    "ManifestConfig",
    "CredentialsConfig",
    "LoggingConfig",
    "DEFAULT_COMMIT_MESSAGE",
    "CredentialStore"
]
