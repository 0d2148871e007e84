"""Configuration management for homelab backup."""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from dotenv import dotenv_values, set_key

from .config_validator import ConfigValidator

ENV_FILENAME = ".env"

ENV_DEFAULTS = {
    'PUID': '1000',
    'PGID': '1000',
    'TZ': 'Etc/UTC',
}


class ConfigManager:
    """Loads the YAML configuration and the project ``.env`` file."""

    DEFAULT_CONFIG_LOCATIONS = [
        "config.yaml",
        "config.yml",
        os.path.expanduser("~/.homelab-backup/config.yaml"),
        os.path.expanduser("~/.homelab-backup/config.yml"),
        "/etc/homelab-backup/config.yaml",
        "/etc/homelab-backup/config.yml"
    ]

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional path to config file. If not provided,
                        will search in default locations.
        """
        self.config_path = config_path
        self.config_file: Optional[str] = None
        self.config_data: Dict[str, Any] = {}
        self.validator = ConfigValidator()
        self.logger = logging.getLogger(__name__)

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file.

        A missing file in the default locations is not an error: a freshly
        recovered host has no configuration until its secrets are restored.

        Returns:
            Dictionary containing configuration data.

        Raises:
            FileNotFoundError: If an explicit config path does not exist.
            ValueError: If config file is invalid.
        """
        self.config_file = self._find_config_file()
        self.config_data = {}

        if self.config_file:
            try:
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    self.config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in config file {self.config_file}: {e}")
            except OSError as e:
                raise ValueError(f"Error reading config file {self.config_file}: {e}")
        else:
            self.logger.debug("No configuration file found, using defaults")

        # Validate configuration
        self.validator.validate(self.config_data)

        # Set defaults
        self._set_defaults()

        return self.config_data

    def reload(self) -> Dict[str, Any]:
        """Re-read configuration, e.g. after a secrets restore replaced it."""
        return self.load_config()

    def _find_config_file(self) -> Optional[str]:
        """Find configuration file in default locations.

        Returns:
            Path to configuration file, or None when none exists.

        Raises:
            FileNotFoundError: If an explicit config path does not exist.
        """
        if self.config_path:
            if os.path.exists(self.config_path):
                return self.config_path
            else:
                raise FileNotFoundError(f"Config file not found: {self.config_path}")

        for location in self.DEFAULT_CONFIG_LOCATIONS:
            if os.path.exists(location):
                return location

        return None

    def _set_defaults(self):
        """Set default values for optional configuration parameters."""
        defaults = {
            'backup': {
                'backup_dir': '/backups',
                'local_retention': 5,
                'remote_retention': 10,
                'apps': 'auto'
            },
            'remote': {
                'name': 'gdrive',
                'path': '/backups/archive',
                'config_file': None
            },
            'docker': {
                'ready_retries': 30,
                'ready_interval_seconds': 1
            },
            'schedule': {
                'exec_start': '/usr/local/bin/homelab-backup backup',
                'on_calendar': '*-*-* 02:00:00',
                'randomized_delay_sec': 1800
            },
            'logging': {
                'level': 'INFO',
                'file': '/var/log/homelab-backup.log',
                'max_size_mb': 10,
                'backup_count': 5
            }
        }

        # Merge defaults with existing config
        for section, section_defaults in defaults.items():
            if section not in self.config_data:
                self.config_data[section] = {}
            for key, value in section_defaults.items():
                if key not in self.config_data[section]:
                    self.config_data[section][key] = value

        if not self.config_data.get('project_root'):
            if self.config_file:
                self.config_data['project_root'] = os.path.dirname(os.path.abspath(self.config_file))
            else:
                self.config_data['project_root'] = os.getcwd()

    def get_project_root(self) -> str:
        """Directory holding ``.env`` and the config file (the secrets bundle source)."""
        return os.path.abspath(os.path.expanduser(self.config_data.get('project_root') or os.getcwd()))

    def get_env_path(self) -> str:
        return os.path.join(self.get_project_root(), ENV_FILENAME)

    def get_env_config(self) -> Dict[str, str]:
        """Load ``.env`` values merged over defaults.

        Returns:
            Dictionary with at least BASE_DIR, PUID, PGID and TZ.
        """
        values = dict(ENV_DEFAULTS)
        values['BASE_DIR'] = os.path.expanduser("~")

        env_path = self.get_env_path()
        if os.path.exists(env_path):
            for key, value in dotenv_values(env_path).items():
                if value is not None:
                    values[key] = value

        values['BASE_DIR'] = os.path.abspath(os.path.expanduser(values['BASE_DIR']))
        return values

    def save_env_config(self, values: Dict[str, str]) -> str:
        """Replace the project ``.env`` file with ``values``.

        Values are quoted where needed so they read back unchanged.

        Returns:
            Path of the written file.
        """
        env_path = self.get_env_path()
        os.makedirs(os.path.dirname(env_path), exist_ok=True)
        open(env_path, 'w', encoding='utf-8').close()
        for key, value in values.items():
            if value is not None:
                set_key(env_path, key, str(value), quote_mode='auto')
        return env_path

    def get_base_dir(self) -> str:
        """Directory holding the app directories."""
        base_dir = self.config_data.get('base_dir') or self.get_env_config()['BASE_DIR']
        return os.path.abspath(os.path.expanduser(base_dir))

    def get_backup_config(self) -> Dict[str, Any]:
        """Get backup configuration.

        Returns:
            Backup configuration dictionary.
        """
        return self.config_data.get('backup', {})

    def get_selected_apps(self) -> Optional[List[str]]:
        """Configured app selection, or None for auto-detection."""
        apps = self.get_backup_config().get('apps', 'auto')
        if apps == 'auto':
            return None
        if isinstance(apps, str):
            return [name.strip() for name in apps.split(',') if name.strip()]
        return list(apps)

    def get_remote_config(self) -> Dict[str, Any]:
        """Get remote (rclone) configuration.

        Returns:
            Remote configuration dictionary.
        """
        return self.config_data.get('remote', {})

    def get_docker_config(self) -> Dict[str, Any]:
        return self.config_data.get('docker', {})

    def get_schedule_config(self) -> Dict[str, Any]:
        return self.config_data.get('schedule', {})

    def get_logging_config(self) -> Dict[str, Any]:
        """Get logging configuration.

        Returns:
            Logging configuration dictionary.
        """
        return self.config_data.get('logging', {})
