"""Configuration validation for homelab backup."""

from typing import Any, Dict

from ..core.registry import get_app_names


class ConfigValidator:
    """Validates homelab backup configuration."""

    OPTIONAL_SECTIONS = ['backup', 'remote', 'docker', 'schedule', 'logging']
    LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']

    def validate(self, config: Dict[str, Any]) -> None:
        """Validate configuration data.

        Args:
            config: Configuration dictionary to validate.

        Raises:
            ValueError: If configuration is invalid.
        """
        self._validate_structure(config)
        self._validate_backup_config(config.get('backup', {}))
        self._validate_remote_config(config.get('remote', {}))
        self._validate_docker_config(config.get('docker', {}))

        if 'logging' in config:
            self._validate_logging_config(config['logging'])

    def _validate_structure(self, config: Dict[str, Any]) -> None:
        """Validate basic configuration structure.

        Raises:
            ValueError: If the document or a section is not a mapping.
        """
        if not isinstance(config, dict):
            raise ValueError("Configuration must be a mapping")

        for section in self.OPTIONAL_SECTIONS:
            if section in config and not isinstance(config[section], dict):
                raise ValueError(f"Configuration section '{section}' must be a dictionary")

        for key in ('project_root', 'base_dir'):
            if key in config and config[key] is not None and not isinstance(config[key], str):
                raise ValueError(f"'{key}' must be a path string")

    def _validate_backup_config(self, backup: Dict[str, Any]) -> None:
        """Validate backup section.

        Raises:
            ValueError: If retention counts or the app selection are invalid.
        """
        for key in ('local_retention', 'remote_retention'):
            if key in backup:
                value = backup[key]
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise ValueError(f"backup.{key} must be a non-negative integer, got {value!r}")

        if 'backup_dir' in backup and not backup['backup_dir']:
            raise ValueError("backup.backup_dir cannot be empty")

        apps = backup.get('apps', 'auto')
        if apps == 'auto':
            return

        if isinstance(apps, str):
            apps = [name.strip() for name in apps.split(',') if name.strip()]
        if not isinstance(apps, list) or not apps:
            raise ValueError("backup.apps must be 'auto' or a non-empty list of app names")

        known = set(get_app_names())
        unknown = [name for name in apps if name not in known]
        if unknown:
            raise ValueError(f"backup.apps contains unknown apps: {unknown}")

    def _validate_remote_config(self, remote: Dict[str, Any]) -> None:
        if 'name' in remote and (not isinstance(remote['name'], str) or not remote['name'].strip()):
            raise ValueError("remote.name cannot be empty")
        if 'path' in remote and (not isinstance(remote['path'], str) or not remote['path'].startswith('/')):
            raise ValueError("remote.path must be an absolute path")

    def _validate_docker_config(self, docker: Dict[str, Any]) -> None:
        retries = docker.get('ready_retries', 1)
        if isinstance(retries, bool) or not isinstance(retries, int) or retries < 1:
            raise ValueError(f"docker.ready_retries must be a positive integer, got {retries!r}")

        interval = docker.get('ready_interval_seconds', 1)
        if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval < 0:
            raise ValueError(f"docker.ready_interval_seconds must be non-negative, got {interval!r}")

    def _validate_logging_config(self, logging_config: Dict[str, Any]) -> None:
        level = str(logging_config.get('level', 'INFO')).upper()
        if level not in self.LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {self.LOG_LEVELS}, got {level!r}")
