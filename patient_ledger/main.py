"""Wiring for the patient ledger.

Builds the key-value backend from configuration and assembles the repository
and state store around it. The repository is always passed in explicitly;
nothing here is a process-wide singleton.
"""

import logging
from typing import Optional

from patient_ledger.adapters.storage import DuckDBKeyValueStore, InMemoryKeyValueStore
from patient_ledger.domain.ports import KeyValueStorePort, StorageError
from patient_ledger.domain.services import PatientRepository, PatientStateStore
from patient_ledger.infrastructure.config_manager import StorageConfig
from patient_ledger.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_key_value_store(storage_config: Optional[StorageConfig] = None) -> KeyValueStorePort:
    """Create key-value backend based on configuration.

    Parameters:
        storage_config: Explicit configuration (defaults to settings.storage_config)

    Returns:
        KeyValueStorePort: Configured backend instance

    Raises:
        ValueError: If backend type is unsupported
        StorageError: If the DuckDB schema cannot be created
    """
    storage_config = storage_config or settings.storage_config

    if storage_config.backend == "duckdb":
        logger.info(f"Initializing DuckDB key-value store with path: {storage_config.db_path or ':memory:'}")
        store = DuckDBKeyValueStore(storage_config=storage_config)
        result = store.initialize_schema()
        if result.is_failure():
            raise StorageError(result.error, operation="initialize_schema")
        return store
    elif storage_config.backend == "memory":
        logger.info("Initializing in-memory key-value store")
        return InMemoryKeyValueStore()
    else:
        raise ValueError(f"Unsupported storage backend: {storage_config.backend}")


def create_patient_store(
    store: Optional[KeyValueStorePort] = None,
    seed_sample_data: Optional[bool] = None,
) -> PatientStateStore:
    """Assemble a PatientStateStore and start its initial load.

    Parameters:
        store: Key-value backend (defaults to create_key_value_store())
        seed_sample_data: Override settings.seed_sample_data
    """
    repository = PatientRepository(store if store is not None else create_key_value_store())
    if seed_sample_data is None:
        seed_sample_data = settings.seed_sample_data
    return PatientStateStore(repository, seed_sample_data=seed_sample_data)
