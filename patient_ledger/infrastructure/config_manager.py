"""Configuration Manager for the Persistence Backend.

This module loads and validates the storage configuration: which key-value
backend holds the patient collections, where it lives, and which namespace
the keys are written under.

Architecture:
    - Infrastructure layer, isolated from the domain
    - Supports environment variables (optionally from a .env file) and JSON files
    - Type-safe configuration using Pydantic models
    - Fail-fast validation prevents runtime errors
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "patient_data"
# DuckDB file used when no db_path is configured, relative to the working directory
DEFAULT_DB_PATH = "patient_ledger.duckdb"
SUPPORTED_BACKENDS = ("memory", "duckdb")


class StorageConfig(BaseModel):
    """Persistence backend configuration.

    Parameters:
        backend: Key-value backend ('memory' or 'duckdb')
        db_path: Path to database file (DuckDB only; defaults to
            patient_ledger.duckdb, ':memory:' for a throwaway database)
        namespace: Namespace the patient keys are stored under
    """

    backend: str = Field("duckdb", description="Key-value backend (memory, duckdb)")
    db_path: Optional[str] = Field(None, description="Path to database file (for DuckDB)")
    namespace: str = Field(DEFAULT_NAMESPACE, description="Key namespace")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate backend type."""
        if v.lower() not in SUPPORTED_BACKENDS:
            raise ValueError(f"Unsupported storage backend: {v}. Supported: {list(SUPPORTED_BACKENDS)}")
        return v.lower()

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate database directory exists (if provided)."""
        if v is None or v == ":memory:":
            return v

        db_path_obj = Path(v).expanduser()
        # Parent directory must exist, the file may not exist yet
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")
        return str(db_path_obj)

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        v_stripped = v.strip()
        if not v_stripped:
            raise ValueError("namespace cannot be empty")
        return v_stripped

    @model_validator(mode='after')
    def check_backend_path(self) -> 'StorageConfig':
        """Give DuckDB a durable default file; warn about a db_path on the memory backend."""
        if self.backend == "duckdb" and self.db_path is None:
            self.db_path = DEFAULT_DB_PATH
        elif self.backend == "memory" and self.db_path not in (None, ":memory:"):
            logger.warning(f"db_path '{self.db_path}' is ignored by the memory backend")
        return self


class ConfigManager:
    """Loads configuration from environment variables or a JSON file.

    Example Usage:
        ```python
        config = ConfigManager.from_environment()
        storage_config = config.get_storage_config()

        config = ConfigManager.from_file("config.json")
        storage_config = config.get_storage_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        """Initialize configuration manager.

        Parameters:
            config_data: Configuration dictionary
        """
        self._config_data = config_data
        self._storage_config: Optional[StorageConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - PL_STORAGE_BACKEND: Key-value backend (memory, duckdb)
            - PL_DB_PATH: Path to database file (for DuckDB, default
              patient_ledger.duckdb in the working directory)
            - PL_NAMESPACE: Key namespace

        A .env file in the working directory is loaded first if present;
        variables already set in the environment win.

        Returns:
            ConfigManager instance
        """
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        storage: Dict[str, Any] = {
            "backend": os.getenv("PL_STORAGE_BACKEND", "duckdb"),
            "db_path": os.getenv("PL_DB_PATH"),
        }
        if os.getenv("PL_NAMESPACE"):
            storage["namespace"] = os.getenv("PL_NAMESPACE")

        return cls({"storage": storage})

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Parameters:
            config_path: Path to configuration file

        Returns:
            ConfigManager instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        return cls(config_data)

    def get_storage_config(self) -> StorageConfig:
        """Get the validated storage configuration."""
        if self._storage_config is None:
            storage_data = self._config_data.get("storage", {})
            self._storage_config = StorageConfig(**storage_data)
        return self._storage_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Parameters:
            key: Configuration key (supports dot notation, e.g., "storage.backend")
            default: Default value if key not found
        """
        keys = key.split(".")
        value = self._config_data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default


# ============================================================================
# Convenience Functions
# ============================================================================

def get_storage_config() -> StorageConfig:
    """Storage configuration from the environment.

    Defaults to a DuckDB file, patient_ledger.duckdb, in the working
    directory if nothing is configured.
    """
    config_manager = ConfigManager.from_environment()
    return config_manager.get_storage_config()
