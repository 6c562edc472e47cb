import os
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from pubsuggest.models.config import AppConfig

logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Configuration validation failed"""

    pass


class ConfigManager:
    """Loads application configuration from YAML"""

    def __init__(self, config_path: str = "config/suggest_config.yaml"):
        self.config_path = Path(config_path)
        self.env_loaded = False
        self._config: Optional[AppConfig] = None

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
        """Load and validate configuration

        Args:
            overrides: Top-level sections merged over the file contents,
                e.g. {"cache": {"enabled": False}} from CLI flags
        """
        if self._config and not overrides:
            return self._config

        # 1. Load environment
        if not self.env_loaded:  # pragma: no cover
            load_dotenv()
            self.env_loaded = True

        # 2. Check file existence
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        # 3. Read YAML
        try:
            with open(self.config_path) as f:
                raw_content = f.read()
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # 4. Substitute env vars (${VAR} syntax, unknown names left as-is)
        try:
            substituted_content = Template(raw_content).safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted_content) or {}
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigValidationError(
                f"Failed to parse YAML or substitute variables: {e}"
            )

        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        for section, values in (overrides or {}).items():
            if isinstance(values, dict) and isinstance(config_data.get(section), dict):
                config_data[section] = {**config_data[section], **values}
            else:
                config_data[section] = values

        # 5. Validate with Pydantic
        try:
            self._config = AppConfig(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            path=str(self.config_path),
            cache_enabled=self._config.cache.enabled,
            max_suggestions=self._config.suggestion.max_suggestions,
        )
        return self._config
