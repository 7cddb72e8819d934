"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.
"""

import os
from typing import Optional

from patient_ledger.infrastructure.config_manager import ConfigManager, StorageConfig

# Application metadata
APP_NAME = "Patient-Ledger"
APP_VERSION = "1.0.0"

# Seconds to wait for queued saves when a store is closed
DEFAULT_SAVE_TIMEOUT = 10.0


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Application settings loaded from configuration manager and environment.

    Environment Variables:
        - PL_APP_NAME: Application display name
        - PL_LOG_LEVEL: Logging level (DEBUG, INFO, ...)
        - PL_LOG_JSON: Emit JSON log lines ("true"/"false")
        - PL_SEED_SAMPLE_DATA: Seed demo patients on first run ("true"/"false")
        - PL_SAVE_TIMEOUT: Seconds to wait for queued saves on shutdown
    """

    def __init__(self):
        """Initialize settings from configuration manager and environment."""
        self._storage_config: Optional[StorageConfig] = None
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("PL_APP_NAME", APP_NAME)
        self.log_level = os.getenv("PL_LOG_LEVEL", "INFO")
        self.log_json = _env_flag("PL_LOG_JSON", "false")
        self.seed_sample_data = _env_flag("PL_SEED_SAMPLE_DATA", "true")
        self.save_timeout = float(os.getenv("PL_SAVE_TIMEOUT", str(DEFAULT_SAVE_TIMEOUT)))

    @property
    def storage_config(self) -> StorageConfig:
        """Storage configuration, loaded lazily on first access."""
        if self._storage_config is None:
            self._storage_config = self.config_manager.get_storage_config()
        return self._storage_config

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager


# Global settings instance
settings = Settings()
