# mergesurge/config.py
"""
Configuration management for database connections and global settings.
Supports YAML configuration files with environment variable substitution.
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, Any, Optional

from .defaults import settings
from .database import DRIVERS, Database, get_params_for_database

try:
    import yaml
except ImportError:
    raise ImportError("PyYAML is required. Install with: pip install PyYAML")

logger = logging.getLogger(__name__)

_ENV_PATTERN = re.compile(r'^\$\{(\w+)\}$')


class ConfigManager:
    """
    Manage mergesurge configuration from YAML files.

    Configuration File Structure
    ----------------------------
    ::

        # mergesurge.yml
        settings:
          default_inserts_per_thread: 5000
          staging_schema: dbo
          logging:
            level: DEBUG

        connections:
          warehouse:
            type: sqlserver
            host: sql01
            database: analytics
            user: loader
            password: ${WAREHOUSE_PASSWORD}

    Configuration Locations
    -----------------------
    1. File specified in config_file parameter
    2. ``./mergesurge.yml`` / ``./mergesurge.yaml``
    3. ``~/.config/mergesurge.yml`` / ``~/.config/mergesurge.yaml``

    Notes
    -----
    * Connections require a 'type' (sqlserver, postgres, sqlite) or 'driver' field
    * String values of the form ``${VAR_NAME}`` are read from the environment
    * Values in ``settings`` are merged into ``mergesurge.defaults.settings``
    """

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize config manager and load configuration.

        Raises
        ------
        FileNotFoundError
            If no config file found in any search location
        ValueError
            If config file is invalid or malformed
        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._apply_settings()

    def _find_config_file(self, config_file: Optional[str]) -> Path:
        """Find the configuration file."""
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            return path

        candidates = [
            Path("mergesurge.yml"),
            Path("mergesurge.yaml"),
            Path.home() / ".config" / "mergesurge.yml",
            Path.home() / ".config" / "mergesurge.yaml"
        ]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        raise FileNotFoundError(
            "No config file found. Looked in: " +
            ", ".join(str(c) for c in candidates)
        )

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate configuration file."""
        try:
            with open(self.config_file, 'r') as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to load config file {self.config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Invalid config file {self.config_file}.")

        connections = config.get('connections', {})
        if not isinstance(connections, dict):
            raise ValueError(f"Invalid config file {self.config_file}: 'connections' must be a dictionary")
        for name, conn in connections.items():
            if not isinstance(conn, dict) or ('type' not in conn and 'driver' not in conn):
                raise ValueError(f"Invalid connection '{name}' in {self.config_file}: 'type' or 'driver' is required")

        if 'settings' in config and not isinstance(config['settings'], dict):
            raise ValueError(f"Invalid config file {self.config_file}: 'settings' must be a dictionary")

        logger.info(f"Loaded config from {self.config_file}")
        return config

    def _apply_settings(self) -> None:
        """Merge the settings section into the global defaults."""
        for key, value in self.config.get('settings', {}).items():
            if isinstance(value, dict) and isinstance(settings.get(key), dict):
                settings[key] = {**settings[key], **value}
            else:
                settings[key] = value

    def get_connection_config(self, name: str) -> Dict[str, Any]:
        """Get configuration for a named connection with environment variables resolved."""
        connections = self.config.get('connections', {})

        if name not in connections:
            available = list(connections.keys())
            raise ValueError(
                f"Connection '{name}' not found in config. "
                f"Available connections: {available}"
            )

        config = connections[name].copy()
        for key, value in config.items():
            if isinstance(value, str):
                match = _ENV_PATTERN.match(value)
                if match:
                    env_value = os.environ.get(match.group(1))
                    if env_value is None:
                        raise ValueError(f"Environment variable {match.group(1)} not set")
                    config[key] = env_value
        return config


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def _get_manager(config_file: Optional[str] = None) -> ConfigManager:
    global _config_manager

    if config_file:
        return ConfigManager(config_file)
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def set_config_file(config_file: str) -> None:
    """Set the configuration file to use globally."""
    global _config_manager
    _config_manager = ConfigManager(config_file)


def connect(name: str, password: Optional[str] = None, config_file: Optional[str] = None) -> Database:
    """
    Connect to a named database from configuration.

    Args:
        name: Connection name from config file
        password: Optional password if not stored in config
        config_file: Optional path to config file

    Example:
        db = connect('warehouse')
    """
    config = _get_manager(config_file).get_connection_config(name)
    if password:
        config['password'] = password
    info = {key: val for key, val in config.items() if key != 'password'}
    logger.debug(f"Connecting to database {name} with config: {info}")

    db_type = config.pop('type', None)
    driver = config.pop('driver', None)
    if not db_type:
        db_type = DRIVERS.get(driver, {}).get('database_type') or settings.get('default_db_type', 'sqlserver')

    allowed_params = get_params_for_database(db_type)
    config = {key: val for key, val in config.items() if key in allowed_params}

    db = Database.create(db_type, driver=driver, **config)
    db.name = name
    return db


def get_setting(key: str, default: Any = None, config_file: Optional[str] = None) -> Any:
    """
    Get a setting value from configuration, falling back to the built-in defaults.

    Loading the config merges its settings into ``mergesurge.defaults.settings``,
    so the lookup always reads the merged values. Nested sections come back
    complete even when the config file overrides only part of them.

    Args:
        key: Setting key (supports dot notation like 'logging.level')
        default: Default value if key not found

    Example:
        chunk = get_setting('default_inserts_per_thread', 10000)
    """
    try:
        _get_manager(config_file)
    except FileNotFoundError:
        logger.debug("No config file found, using default settings")

    value = settings
    for k in key.split('.'):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    return value
