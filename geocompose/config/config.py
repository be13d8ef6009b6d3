"""Configuration manager with YAML override support."""

import copy
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from . import defaults

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager with YAML override support."""

    CONFIG_FILE_NAME = 'geocompose.yml'

    def __init__(self, config_file: Optional[Path] = None,
                 overrides: Optional[Dict[str, Any]] = None):
        self.settings = self.load_defaults()
        self.config_file: Optional[Path] = None

        # An explicit file is always honoured; discovery is skipped under test
        if config_file is not None:
            self._load_yaml_config(Path(config_file))
        elif not self._is_test_mode():
            discovered = self._find_config_file()
            if discovered is not None:
                try:
                    self._load_yaml_config(discovered)
                except (OSError, yaml.YAMLError) as e:
                    logger.warning(f"Config file loading failed: {e} - using defaults")
        else:
            logger.debug("Test mode detected - ignoring discovered configuration files")

        if overrides:
            self._deep_merge(self.settings, overrides)

    def _find_config_file(self) -> Optional[Path]:
        """Find geocompose.yml with multiple fallback locations."""
        project_root = Path(__file__).parent.parent.parent

        potential_locations = [
            project_root / self.CONFIG_FILE_NAME,
            project_root / 'config' / self.CONFIG_FILE_NAME,
            Path.cwd() / self.CONFIG_FILE_NAME,
            Path.home() / '.geocompose' / 'config.yml',
        ]

        for location in potential_locations:
            if location.exists() and location.is_file():
                return location

        return None

    def _is_test_mode(self) -> bool:
        """Detect if we're running under pytest or a forced test mode."""
        return (
            os.environ.get('FORCE_TEST_MODE', 'false').lower() == 'true' or
            os.environ.get('PYTEST_CURRENT_TEST') is not None
        )

    def load_defaults(self) -> Dict[str, Any]:
        """Load default configuration settings."""
        return copy.deepcopy({
            'paths': defaults.PATHS,
            'raster_processing': defaults.RASTER_PROCESSING,
            'elevation': defaults.ELEVATION,
            'composition': defaults.COMPOSITION,
            'readers': defaults.READERS,
            'logging': defaults.LOGGING,
        })

    def _load_yaml_config(self, config_file: Path):
        """Load and merge configuration from a YAML file."""
        with open(config_file, 'r') as file:
            yaml_config = yaml.safe_load(file)
        if yaml_config:
            if not isinstance(yaml_config, dict):
                raise yaml.YAMLError(f"{config_file} does not contain a mapping")
            self._deep_merge(self.settings, yaml_config)
        self.config_file = config_file
        logger.info(f"Loaded configuration from {config_file}")

    def _deep_merge(self, base: dict, override: dict):
        """Deep merge override into base dictionary."""
        for key, value in override.items():
            if isinstance(value, dict) and key in base and isinstance(base[key], dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def ensure_directories(self):
        """Create the configured output and log directories if possible."""
        for key in ('logs_dir', 'output_dir'):
            path = Path(self.settings['paths'][key])
            try:
                path.mkdir(parents=True, exist_ok=True)
            except (PermissionError, FileNotFoundError):
                logger.debug(f"Cannot create directory {path}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        keys = key.split(".")
        value = self.settings

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    @property
    def raster_processing(self) -> Dict[str, Any]:
        return self.settings['raster_processing']

    @property
    def elevation(self) -> Dict[str, Any]:
        return self.settings['elevation']

    @property
    def composition(self) -> Dict[str, Any]:
        return self.settings['composition']

    @property
    def readers(self) -> Dict[str, Any]:
        return self.settings['readers']

    @property
    def logging(self) -> Dict[str, Any]:
        return self.settings['logging']

    @property
    def paths(self) -> Dict[str, Any]:
        return self.settings['paths']


# Global configuration instance
config = Config()
