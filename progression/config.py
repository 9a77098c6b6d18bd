"""
Centralized Configuration

This module provides the settings object for the progression engine.
Values are resolved in this order (highest priority first):
1. Environment variables (and a local .env file)
2. An optional YAML or JSON config file named by CONFIG_PATH
3. Defaults declared on the Settings class
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configure logging
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Progression Engine"
    API_V1_STR: str = "/api/v1"
    ENV: str = "development"

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./progression.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # Redis pub/sub for alerts and notifications
    REDIS_URL: str = "redis://localhost:6379/0"
    ALERT_CHANNEL: str = "progression:alerts"
    NOTIFICATION_CHANNEL: str = "progression:notifications"

    # External question generator
    QUESTION_GENERATOR_URL: str = "http://localhost:8100/generate"
    QUESTION_GENERATOR_TIMEOUT: float = 20.0

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # Engine tunables
    MASTERY_HISTORY_WEIGHT: float = Field(default=0.7, ge=0.0, le=1.0)
    MASTERY_RECENT_HISTORY_SIZE: int = 50
    WEAK_AREA_RESOLVE_AFTER: int = Field(default=3, ge=1)
    WEAK_AREA_HINT_LIMIT: int = Field(default=3, ge=0)
    LOW_SCORE_ALERT_THRESHOLD: int = Field(default=50, ge=0, le=100)
    REQUIRE_ENROLLMENT: bool = True

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("ENV")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment"""
        valid_envs = ['development', 'testing', 'staging', 'production']
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_envs}")
        return v.lower()


class ConfigLoader:
    """
    Configuration loader for the application.

    Loads file-based defaults and lets the environment override them.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
        """
        self.config_path = config_path or os.environ.get("CONFIG_PATH")
        self._settings: Optional[Settings] = None

    def load(self) -> Settings:
        """
        Load configuration from all sources.

        Returns:
            Loaded settings
        """
        if self._settings is not None:
            return self._settings

        file_config: Dict[str, Any] = {}
        if self.config_path:
            file_config = self._load_from_file(self.config_path)

        # Environment variables win over file values
        overrides = {k: v for k, v in file_config.items() if k not in os.environ}
        self._settings = Settings(**overrides)
        return self._settings

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            path: Path to config file

        Returns:
            Loaded configuration dictionary
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        if path.suffix.lower() in ['.yaml', '.yml']:
            with open(path, 'r') as f:
                return yaml.safe_load(f) or {}
        if path.suffix.lower() == '.json':
            with open(path, 'r') as f:
                return json.load(f)

        logger.warning(f"Unsupported config file format: {path.suffix}")
        return {}


_config_loader = ConfigLoader()


def get_settings() -> Settings:
    """
    Get the loaded settings.

    Returns:
        Loaded settings
    """
    return _config_loader.load()


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Reload the settings.

    Args:
        config_path: Path to config file

    Returns:
        Reloaded settings
    """
    global _config_loader
    _config_loader = ConfigLoader(config_path)
    return _config_loader.load()
