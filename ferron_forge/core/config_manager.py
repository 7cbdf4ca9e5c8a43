from __future__ import annotations

import json
import os
import pathlib
from copy import deepcopy
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from ferron_forge.core.base import ForgeManager
from ferron_forge.utils.exceptions import ConfigurationError, ManagerInitializationError

DEFAULT_REPOSITORY = 'https://github.com/ferronweb/ferron.git'


class ConfigSchema(BaseModel):
    """Schema for validating Ferron Forge settings.

    Every value here is a default for the matching command-line flag; flags
    given on the command line always win.
    """
    forge: Dict[str, Any] = Field(
        default_factory=lambda: {
            'repository': DEFAULT_REPOSITORY,
            'reference': 'main',
            'output': 'ferron-custom.zip',
            'package': 'ferron',
            'asset_directory': 'wwwroot',
        },
        description='Build and packaging settings',
    )
    logging: Dict[str, Any] = Field(
        default_factory=lambda: {
            'level': 'INFO',
            'format': 'text',
            'file': {
                'enabled': False,
                'path': 'logs/ferron-forge.log',
                'rotation': '10 MB',
                'retention': '5 days',
            },
            'console': {
                'enabled': True,
                'level': 'INFO',
            },
        },
        description='Logging settings',
    )

    @model_validator(mode='after')
    def validate_forge(self) -> 'ConfigSchema':
        """Validate that the required build settings are non-empty strings."""
        for key in ('repository', 'reference', 'output', 'package', 'asset_directory'):
            value = self.forge.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f'forge.{key} must be a non-empty string.')
        return self

    @model_validator(mode='after')
    def validate_logging_format(self) -> 'ConfigSchema':
        """Validate the log output format."""
        if str(self.logging.get('format', 'text')).lower() not in ('text', 'json'):
            raise ValueError("logging.format must be either 'text' or 'json'.")
        return self


class ConfigManager(ForgeManager):
    """Configuration manager for Ferron Forge.

    Loads defaults from :class:`ConfigSchema`, merges an optional YAML or JSON
    settings file over them, then applies environment variable overrides.

    Attributes:
        _config_path: Path to the configuration file, if any
        _env_prefix: Prefix for environment variables
        _config: The loaded configuration
        _loaded_from_file: Whether configuration was loaded from a file
        _env_vars_applied: Set of applied environment variables
    """

    def __init__(
            self,
            config_path: Optional[Union[str, pathlib.Path]] = None,
            env_prefix: str = 'FERRON_FORGE_'
    ) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
            env_prefix: Prefix for environment variables
        """
        super().__init__(name='config_manager')
        self._config_path = pathlib.Path(config_path) if config_path else None
        self._env_prefix = env_prefix
        self._config: Dict[str, Any] = {}
        self._loaded_from_file = False
        self._env_vars_applied: Set[str] = set()

    def initialize(self) -> None:
        """Load configuration from the schema defaults, file and environment.

        Raises:
            ManagerInitializationError: If the configuration is unusable
        """
        try:
            self._config = ConfigSchema().model_dump()
            self._load_from_file()
            self._apply_env_vars()
            self._validate_config()

            self._initialized = True
            self._healthy = True
        except Exception as e:
            raise ManagerInitializationError(
                f'Failed to initialize ConfigManager: {str(e)}',
                manager_name=self.name
            ) from e

    def _load_from_file(self) -> None:
        """Load configuration from a file.

        Raises:
            ConfigurationError: If the file is missing or cannot be parsed
        """
        if self._config_path is None:
            return

        if not self._config_path.exists():
            raise ConfigurationError(
                f'Config file not found: {self._config_path}',
                config_key='config_path'
            )

        try:
            content = self._config_path.read_text(encoding='utf-8')

            if self._config_path.suffix.lower() in ('.yaml', '.yml'):
                file_config = yaml.safe_load(content)
            elif self._config_path.suffix.lower() == '.json':
                file_config = json.loads(content)
            else:
                raise ConfigurationError(
                    f'Unsupported config file format: {self._config_path.suffix}',
                    config_key='config_path'
                )
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f'Error parsing config file {self._config_path}: {str(e)}',
                config_key='config_path'
            ) from e

        if file_config:
            if not isinstance(file_config, dict):
                raise ConfigurationError(
                    f'Config file {self._config_path} must contain a mapping',
                    config_key='config_path'
                )
            self._merge_config(file_config)
            self._loaded_from_file = True

    def _merge_config(self, overrides: Dict[str, Any]) -> None:
        """Deep-merge ``overrides`` into the current configuration."""

        def merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
            result = deepcopy(base)
            for key, value in update.items():
                if isinstance(value, dict) and isinstance(result.get(key), dict):
                    result[key] = merge(result[key], value)
                else:
                    result[key] = value
            return result

        self._config = merge(self._config, overrides)

    def _apply_env_vars(self) -> None:
        """Apply environment variables to the configuration.

        ``FERRON_FORGE_FORGE_PACKAGE=ferron`` sets ``forge.package``. Only the
        first underscore after the section name separates path components, so
        keys containing underscores such as ``asset_directory`` stay intact.
        """
        for env_name, env_value in os.environ.items():
            if not env_name.startswith(self._env_prefix):
                continue

            remainder = env_name[len(self._env_prefix):].lower()
            section, _, key = remainder.partition('_')
            if not section or not key:
                continue

            path = self._env_key_path(section, key)
            if isinstance(self._get_nested_value(self._config, path), str):
                # String settings such as git references stay verbatim
                value: Any = env_value
            else:
                value = self._parse_env_value(env_value)
            self._set_nested_value(self._config, path, value)
            self._env_vars_applied.add(env_name)

    def _env_key_path(self, section: str, key: str) -> List[str]:
        """Split an environment key into a config path using known nested sections."""
        current = self._config.get(section)
        if isinstance(current, dict) and key not in current:
            head, _, tail = key.partition('_')
            if tail and isinstance(current.get(head), dict):
                return [section, head, tail]
        return [section, key]

    @staticmethod
    def _get_nested_value(config: Dict[str, Any], path: List[str]) -> Any:
        """Return the value at ``path``, or None when any key is missing."""
        current: Any = config
        for key in path:
            if not isinstance(current, dict) or key not in current:
                return None
            current = current[key]
        return current

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        """Parse environment variable values into appropriate types.

        Args:
            value: The string value from the environment

        Returns:
            The parsed value (bool, int, float, or string)
        """
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if value.isdigit() or (value.startswith('-') and value[1:].isdigit()):
                return int(value)
            return float(value)
        except ValueError:
            return value

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any) -> None:
        """Set a nested value in the configuration dictionary.

        Args:
            config: The configuration dictionary
            path: List of keys forming the path to the value
            value: The value to set
        """
        if not path:
            return

        if len(path) == 1:
            config[path[0]] = value
            return

        key = path[0]
        if key not in config or not isinstance(config[key], dict):
            config[key] = {}

        self._set_nested_value(config[key], path[1:], value)

    def _validate_config(self) -> None:
        """Validate the configuration against the schema.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        try:
            self._config = ConfigSchema(**self._config).model_dump()
        except ValidationError as e:
            errors = e.errors()
            error_details = ', '.join((
                f"{'.'.join((str(loc) for loc in error['loc']))}: {error['msg']}"
                for error in errors
            ))
            raise ConfigurationError(
                f'Invalid configuration: {error_details}',
                details={'validation_errors': errors}
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key.

        Args:
            key: The configuration key (dot-separated for nested values)
            default: Default value if the key doesn't exist

        Returns:
            The configuration value or default

        Raises:
            ConfigurationError: If the manager isn't initialized
        """
        if not self._initialized:
            raise ConfigurationError(
                'Cannot access configuration before initialization',
                config_key=key
            )

        result: Any = self._config
        try:
            for part in key.split('.'):
                result = result[part]
            return result
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by key and revalidate.

        Args:
            key: The configuration key (dot-separated for nested values)
            value: The value to set

        Raises:
            ConfigurationError: If the manager isn't initialized or the new
                value makes the configuration invalid
        """
        if not self._initialized:
            raise ConfigurationError(
                'Cannot modify configuration before initialization',
                config_key=key
            )

        previous = deepcopy(self._config)
        self._set_nested_value(self._config, key.split('.'), value)
        try:
            self._validate_config()
        except ConfigurationError:
            self._config = previous
            raise

    def shutdown(self) -> None:
        """Drop the loaded configuration."""
        self._config = {}
        self._initialized = False
        self._healthy = False

    def status(self) -> Dict[str, Any]:
        """Get the status of the configuration manager."""
        status = super().status()
        status.update({
            'config_path': str(self._config_path) if self._config_path else None,
            'loaded_from_file': self._loaded_from_file,
            'env_vars_applied': sorted(self._env_vars_applied),
        })
        return status
