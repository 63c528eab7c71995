"""
Configuration management system for the dependency bumper.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, field, asdict
import logging

from ..error_handling import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Update {library} to version {version} (scripted update)"


@dataclass
class BitbucketConfig:
    """Bitbucket API configuration."""
    api_base_url: str = "https://api.bitbucket.org/2.0"
    timeout: int = 30
    max_retries: int = 3
    page_length: int = 100
    role: str = "member"


@dataclass
class WorkspaceConfig:
    """Scratch workspace configuration."""
    scratch_dir: str = "./temp-clones"


@dataclass
class GitConfig:
    """Git working-copy configuration."""
    remote: str = "origin"
    embed_credentials: bool = True
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    commit_message: str = DEFAULT_COMMIT_MESSAGE


@dataclass
class ManifestConfig:
    """Manifest file configuration."""
    filename: str = "package.json"
    indent: int = 2


@dataclass
class CredentialsConfig:
    """Credential store configuration."""
    file: str = str(Path.home() / ".bb-ndu" / "credentials.json")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_file_size: int = 10  # MB
    backup_count: int = 5
    structured: bool = False


@dataclass
class AppConfig:
    """Complete application configuration."""
    bitbucket: BitbucketConfig = field(default_factory=BitbucketConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    git: GitConfig = field(default_factory=GitConfig)
    manifest: ManifestConfig = field(default_factory=ManifestConfig)
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigManager:
    """
    Manages application configuration from multiple sources.

    Configuration is loaded in the following order (later sources override earlier):
    1. Default configuration
    2. Configuration file
    3. Environment variables
    4. Command-line arguments (when provided)
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to YAML configuration file
        """
        self.config_file = Path(config_file) if config_file else None
        self._env_var_mapping = self._create_env_var_mapping()

    def _create_env_var_mapping(self) -> Dict[str, str]:
        """Create mapping of environment variables to config paths."""
        return {
            # Bitbucket configuration
            "BITBUCKET_API_URL": "bitbucket.api_base_url",
            "BITBUCKET_TIMEOUT": "bitbucket.timeout",
            "BITBUCKET_MAX_RETRIES": "bitbucket.max_retries",
            "BITBUCKET_PAGE_LENGTH": "bitbucket.page_length",
            "BITBUCKET_ROLE": "bitbucket.role",

            # Workspace and git configuration
            "BB_NDU_SCRATCH_DIR": "workspace.scratch_dir",
            "BB_NDU_GIT_REMOTE": "git.remote",
            "BB_NDU_EMBED_CREDENTIALS": "git.embed_credentials",
            "BB_NDU_AUTHOR_NAME": "git.author_name",
            "BB_NDU_AUTHOR_EMAIL": "git.author_email",
            "BB_NDU_COMMIT_MESSAGE": "git.commit_message",

            # Manifest and credentials configuration
            "BB_NDU_MANIFEST": "manifest.filename",
            "BB_NDU_MANIFEST_INDENT": "manifest.indent",
            "BB_NDU_CREDENTIALS_FILE": "credentials.file",

            # Logging configuration
            "LOG_LEVEL": "logging.level",
            "LOG_FILE": "logging.file",
            "LOG_FORMAT": "logging.format",
            "LOG_MAX_SIZE": "logging.max_file_size",
            "LOG_BACKUP_COUNT": "logging.backup_count",
            "LOG_STRUCTURED": "logging.structured",
        }

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
        """
        Load configuration from all sources.

        Args:
            overrides: Dot-path overrides from the command line
                (e.g. ``{"logging.level": "DEBUG"}``)

        Returns:
            Complete application configuration

        Raises:
            ConfigError: If the configuration is invalid
        """
        # Start with default configuration
        config_dict = self._get_default_config()

        # Load from configuration file
        if self.config_file and self.config_file.exists():
            file_config = self._load_config_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config)

        # Override with environment variables
        env_config = self._load_env_config(config_dict)
        config_dict = self._merge_configs(config_dict, env_config)

        # Command-line overrides win over everything else
        for path, value in (overrides or {}).items():
            if value is not None:
                self._set_nested_value(config_dict, path, value)

        # Substitute environment variables in string values
        config_dict = self._substitute_env_vars(config_dict)

        self._validate_config(config_dict)

        return self._dict_to_config(config_dict)

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values."""
        return AppConfig().to_dict()

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to configuration file

        Returns:
            Configuration dictionary

        Raises:
            ConfigError: If the file cannot be parsed
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file {config_path}", cause=e)
        except OSError as e:
            logger.warning(f"Failed to load config file {config_path}: {e}")
            return {}

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Configuration file {config_path} must contain a mapping")
        for section, values in config.items():
            if not isinstance(values, dict):
                raise ConfigError(
                    f"Configuration section '{section}' in {config_path} must be a mapping, got {values!r}",
                    config_section=str(section)
                )

        logger.info(f"Loaded configuration from {config_path}")
        return config

    def _load_env_config(self, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """
        Load configuration from environment variables.

        Args:
            defaults: Configuration used to infer the type of each value

        Returns:
            Configuration dictionary from environment variables
        """
        env_config: Dict[str, Any] = {}

        for env_var, config_path in self._env_var_mapping.items():
            value = os.getenv(env_var)
            if value is not None:
                current = self._get_nested_value(defaults, config_path)
                self._set_nested_value(env_config, config_path, self._convert_env_value(value, current))

        return env_config

    def _convert_env_value(self, value: str, current: Any) -> Any:
        """
        Convert environment variable string to the type of the current value.

        Args:
            value: String value from environment variable
            current: Value the environment variable replaces

        Returns:
            Converted value
        """
        if isinstance(current, bool):
            if value.lower() in ('true', 'yes', '1', 'on'):
                return True
            if value.lower() in ('false', 'no', '0', 'off'):
                return False
            raise ConfigError(f"Expected a boolean value, got {value!r}")

        if isinstance(current, int):
            try:
                return int(value)
            except ValueError:
                raise ConfigError(f"Expected an integer value, got {value!r}")

        return value

    def _get_nested_value(self, config: Dict[str, Any], path: str) -> Any:
        current: Any = config
        for key in path.split('.'):
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        return current

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        """
        Set a nested configuration value using dot notation.

        Args:
            config: Configuration dictionary
            path: Dot-separated path (e.g., 'bitbucket.timeout')
            value: Value to set
        """
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _substitute_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Substitute ``${VAR}`` references in configuration values.

        Args:
            config: Configuration dictionary

        Returns:
            Configuration with environment variables substituted
        """
        def substitute_recursive(obj):
            if isinstance(obj, dict):
                return {k: substitute_recursive(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [substitute_recursive(item) for item in obj]
            elif isinstance(obj, str) and obj.startswith('${') and obj.endswith('}'):
                env_var = obj[2:-1]
                return os.getenv(env_var, obj)
            else:
                return obj

        return substitute_recursive(config)

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge two configuration dictionaries.

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """
        Validate configuration values.

        Args:
            config: Configuration dictionary

        Raises:
            ConfigError: If configuration is invalid
        """
        known_sections = set(AppConfig().to_dict())
        for section in config:
            if section not in known_sections:
                raise ConfigError(f"Unknown configuration section: {section}", config_section=section)
            if not isinstance(config[section], dict):
                raise ConfigError(f"Configuration section '{section}' must be a mapping", config_section=section)

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        log_level = str(config.get("logging", {}).get("level", "INFO")).upper()
        if log_level not in valid_levels:
            raise ConfigError(
                f"Invalid log level: {log_level}. Valid levels: {sorted(valid_levels)}",
                config_section="logging"
            )

        indent = config.get("manifest", {}).get("indent", 2)
        if not isinstance(indent, int) or isinstance(indent, bool) or indent < 1:
            raise ConfigError(f"Manifest indent must be a positive integer, got {indent!r}",
                              config_section="manifest")

        bitbucket = config.get("bitbucket", {})
        for key in ("timeout", "page_length"):
            value = bitbucket.get(key)
            if not isinstance(value, int) or value < 1:
                raise ConfigError(f"bitbucket.{key} must be a positive integer, got {value!r}",
                                  config_section="bitbucket")
        retries = bitbucket.get("max_retries")
        if not isinstance(retries, int) or retries < 0:
            raise ConfigError(f"bitbucket.max_retries must be zero or more, got {retries!r}",
                              config_section="bitbucket")

        message = config.get("git", {}).get("commit_message", "")
        try:
            message.format(library="lib", version="1.0.0")
        except (KeyError, IndexError, AttributeError, ValueError) as e:
            raise ConfigError(f"Invalid commit message template: {message!r}",
                              config_section="git", cause=e)

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> AppConfig:
        """
        Convert configuration dictionary to AppConfig object.

        Args:
            config_dict: Configuration dictionary

        Returns:
            AppConfig object
        """
        try:
            return AppConfig(
                bitbucket=BitbucketConfig(**config_dict.get("bitbucket", {})),
                workspace=WorkspaceConfig(**config_dict.get("workspace", {})),
                git=GitConfig(**config_dict.get("git", {})),
                manifest=ManifestConfig(**config_dict.get("manifest", {})),
                credentials=CredentialsConfig(**config_dict.get("credentials", {})),
                logging=LoggingConfig(**config_dict.get("logging", {}))
            )
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}", cause=e)
