"""Configuration management for the Plugin Catalog."""

import logging
from pathlib import Path
from typing import List, Optional
from dataclasses import dataclass, field
import configparser
import json

from .exceptions import ConfigurationError


DEFAULT_EXTENSIONS = [
    '.dll', '.vst3', '.exe', '.msi', '.iso', '.dmg',
    '.zip',
    '.pdf', '.txt', '.md',
    '.png', '.jpg', '.jpeg', '.gif', '.webp',
]

DEFAULT_FOLDERS_TO_IGNORE = ['Samples', 'Presets', 'Documentation', 'Manual']


@dataclass
class ScanConfig:
    """Scanning and renaming configuration settings."""
    main_folder: Optional[Path] = None
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    folders_to_ignore: List[str] = field(default_factory=lambda: list(DEFAULT_FOLDERS_TO_IGNORE))
    rename_files: bool = True
    rename_images: bool = True
    rename_workers: int = 4
    snapshot_filename: str = "plugins-data.json"
    audit_log_filename: str = "_developer_changes.log"

    def validate(self) -> None:
        """
        Check the settings for values the scanner cannot work with.

        Raises:
            ConfigurationError: If a setting is invalid
        """
        if self.rename_workers < 1:
            raise ConfigurationError(f"rename_workers must be at least 1, got {self.rename_workers}")
        for ext in self.extensions:
            if not ext.startswith('.') or len(ext) < 2:
                raise ConfigurationError(f"Extensions must start with a dot: {ext!r}")
        for name in (self.snapshot_filename, self.audit_log_filename):
            if not name or '/' in name or '\\' in name:
                raise ConfigurationError(f"Invalid file name: {name!r}")


@dataclass
class WebConfig:
    """Web API configuration settings."""
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False
    secret_key: str = "dev-key-change-in-production"


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_enabled: bool = True
    file_path: Optional[Path] = None
    file_max_size_mb: int = 10
    file_backup_count: int = 5
    console_enabled: bool = True

    def __post_init__(self):
        if self.file_path is None:
            self.file_path = Path.home() / ".plugin_catalog" / "logs" / "app.log"


@dataclass
class AppConfig:
    """Main application configuration."""
    scan: ScanConfig = field(default_factory=ScanConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application metadata
    app_name: str = "Plugin Catalog"
    version: str = "0.1.0"
    data_dir: Path = field(default_factory=lambda: Path.home() / ".plugin_catalog")


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


class ConfigManager:
    """Manages application configuration from an INI file."""

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to configuration file. If None, uses default location.
        """
        if config_file is None:
            config_file = Path.home() / ".plugin_catalog" / "config.ini"

        self.config_file = Path(config_file)
        self.config = AppConfig()
        self.logger = logging.getLogger(__name__)

        if self.config_file.exists():
            self.load_from_file()
        else:
            self.save_to_file()

    def load_from_file(self) -> None:
        """Load configuration from INI file. Invalid files leave the defaults in place."""
        try:
            parser = configparser.ConfigParser(interpolation=None)
            parser.read(self.config_file, encoding='utf-8')

            config = AppConfig()

            if 'scan' in parser:
                scan_section = parser['scan']
                if scan_section.get('main_folder'):
                    config.scan.main_folder = Path(scan_section.get('main_folder'))
                if 'extensions' in scan_section:
                    config.scan.extensions = [ext.lower() for ext in _split_list(scan_section.get('extensions'))]
                if 'folders_to_ignore' in scan_section:
                    config.scan.folders_to_ignore = _split_list(scan_section.get('folders_to_ignore'))
                if 'rename_files' in scan_section:
                    config.scan.rename_files = scan_section.getboolean('rename_files')
                if 'rename_images' in scan_section:
                    config.scan.rename_images = scan_section.getboolean('rename_images')
                if 'rename_workers' in scan_section:
                    config.scan.rename_workers = scan_section.getint('rename_workers')
                if 'snapshot_filename' in scan_section:
                    config.scan.snapshot_filename = scan_section.get('snapshot_filename')
                if 'audit_log_filename' in scan_section:
                    config.scan.audit_log_filename = scan_section.get('audit_log_filename')
                config.scan.validate()

            if 'web' in parser:
                web_section = parser['web']
                if 'host' in web_section:
                    config.web.host = web_section.get('host')
                if 'port' in web_section:
                    config.web.port = web_section.getint('port')
                if 'debug' in web_section:
                    config.web.debug = web_section.getboolean('debug')
                if 'secret_key' in web_section:
                    config.web.secret_key = web_section.get('secret_key')

            if 'logging' in parser:
                log_section = parser['logging']
                if 'level' in log_section:
                    config.logging.level = log_section.get('level')
                if 'format' in log_section:
                    config.logging.format = log_section.get('format')
                if 'file_enabled' in log_section:
                    config.logging.file_enabled = log_section.getboolean('file_enabled')
                if 'file_path' in log_section:
                    config.logging.file_path = Path(log_section.get('file_path'))
                if 'file_max_size_mb' in log_section:
                    config.logging.file_max_size_mb = log_section.getint('file_max_size_mb')
                if 'file_backup_count' in log_section:
                    config.logging.file_backup_count = log_section.getint('file_backup_count')
                if 'console_enabled' in log_section:
                    config.logging.console_enabled = log_section.getboolean('console_enabled')

            self.config = config
            self.logger.info(f"Configuration loaded from {self.config_file}")

        except (configparser.Error, ValueError, ConfigurationError) as e:
            self.logger.error(f"Error loading configuration from {self.config_file}: {e}")

    def save_to_file(self) -> None:
        """Save current configuration to INI file."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)

            parser = configparser.ConfigParser(interpolation=None)

            parser['scan'] = {
                'main_folder': str(self.config.scan.main_folder or ''),
                'extensions': ', '.join(self.config.scan.extensions),
                'folders_to_ignore': ', '.join(self.config.scan.folders_to_ignore),
                'rename_files': str(self.config.scan.rename_files),
                'rename_images': str(self.config.scan.rename_images),
                'rename_workers': str(self.config.scan.rename_workers),
                'snapshot_filename': self.config.scan.snapshot_filename,
                'audit_log_filename': self.config.scan.audit_log_filename
            }

            parser['web'] = {
                'host': self.config.web.host,
                'port': str(self.config.web.port),
                'debug': str(self.config.web.debug),
                'secret_key': self.config.web.secret_key
            }

            parser['logging'] = {
                'level': self.config.logging.level,
                'format': self.config.logging.format,
                'file_enabled': str(self.config.logging.file_enabled),
                'file_path': str(self.config.logging.file_path),
                'file_max_size_mb': str(self.config.logging.file_max_size_mb),
                'file_backup_count': str(self.config.logging.file_backup_count),
                'console_enabled': str(self.config.logging.console_enabled)
            }

            with open(self.config_file, 'w', encoding='utf-8') as f:
                parser.write(f)

            self.logger.info(f"Configuration saved to {self.config_file}")

        except OSError as e:
            self.logger.error(f"Error saving configuration to {self.config_file}: {e}")

    def get_config(self) -> AppConfig:
        """Get the current configuration."""
        return self.config

    def update_config(self, section: str, setting: str, value: str) -> object:
        """
        Set one configuration value from its string form and save the file.

        Args:
            section: Section name (scan, web or logging)
            setting: Setting name within the section
            value: New value as typed by the user

        Returns:
            The converted value

        Raises:
            ConfigurationError: If the key is unknown or the value invalid
        """
        section_obj = getattr(self.config, section, None)
        if section not in ('scan', 'web', 'logging') or section_obj is None:
            raise ConfigurationError(f"Unknown configuration section: {section}")
        if not hasattr(section_obj, setting):
            raise ConfigurationError(f"Unknown setting '{setting}' in section '{section}'")

        current_value = getattr(section_obj, setting)
        try:
            if isinstance(current_value, bool):
                converted_value = value.lower() in ('true', '1', 'yes', 'on')
            elif isinstance(current_value, int):
                converted_value = int(value)
            elif isinstance(current_value, list):
                converted_value = _split_list(value)
            elif isinstance(current_value, Path) or setting in ('main_folder', 'file_path'):
                converted_value = Path(value)
            else:
                converted_value = value
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {section}.{setting}: {value!r}") from e

        setattr(section_obj, setting, converted_value)
        if section == 'scan':
            try:
                self.config.scan.validate()
            except ConfigurationError:
                setattr(section_obj, setting, current_value)
                raise

        self.save_to_file()
        return converted_value

    def reset_to_defaults(self) -> None:
        """Reset configuration to default values."""
        self.config = AppConfig()
        self.save_to_file()
        self.logger.info("Configuration reset to defaults")

    def export_to_json(self, file_path: Path) -> None:
        """
        Export configuration to JSON format.

        Args:
            file_path: Path to save JSON file
        """
        config_dict = {
            'scan': {
                'main_folder': str(self.config.scan.main_folder) if self.config.scan.main_folder else None,
                'extensions': self.config.scan.extensions,
                'folders_to_ignore': self.config.scan.folders_to_ignore,
                'rename_files': self.config.scan.rename_files,
                'rename_images': self.config.scan.rename_images,
                'rename_workers': self.config.scan.rename_workers,
                'snapshot_filename': self.config.scan.snapshot_filename,
                'audit_log_filename': self.config.scan.audit_log_filename
            },
            'web': {
                'host': self.config.web.host,
                'port': self.config.web.port,
                'debug': self.config.web.debug
            },
            'logging': {
                'level': self.config.logging.level,
                'format': self.config.logging.format,
                'file_enabled': self.config.logging.file_enabled,
                'file_path': str(self.config.logging.file_path),
                'file_max_size_mb': self.config.logging.file_max_size_mb,
                'file_backup_count': self.config.logging.file_backup_count,
                'console_enabled': self.config.logging.console_enabled
            }
        }

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(config_dict, f, indent=2)

        self.logger.info(f"Configuration exported to {file_path}")


# Global configuration instance
_config_manager = None


def get_config() -> AppConfig:
    """Get the global application configuration."""
    return get_config_manager().get_config()


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def setup_config(config_file: Optional[Path] = None) -> ConfigManager:
    """
    Set up global configuration.

    Args:
        config_file: Optional path to configuration file

    Returns:
        ConfigManager instance
    """
    global _config_manager
    _config_manager = ConfigManager(config_file)
    return _config_manager
