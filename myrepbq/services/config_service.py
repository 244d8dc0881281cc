"""
Configuration service for MySQL to BigQuery replication
"""

import json
import os
import yaml
from typing import Optional
from pathlib import Path

from ..exceptions import ConfigurationError
from ..models.config import ETLConfig


class ConfigService:
    """Service for loading and managing configuration"""

    def __init__(self):
        self._config: Optional[ETLConfig] = None

    def load_config(self, config_path: str) -> ETLConfig:
        """Load configuration from a YAML or JSON file, expanding $VAR references"""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        suffix = config_path.suffix.lower()
        if suffix not in ('.json', '.yml', '.yaml'):
            raise ConfigurationError(f"Unsupported configuration format: {config_path.suffix}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                text = os.path.expandvars(f.read())
            if suffix == '.json':
                config_dict = json.loads(text)
            else:
                config_dict = yaml.safe_load(text)
        except OSError as e:
            raise ConfigurationError(f"Error reading configuration: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON configuration: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML configuration: {e}")

        self._config = ETLConfig.from_dict(config_dict)
        return self._config

    def get_config(self) -> ETLConfig:
        """Get current configuration"""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config
