"""DuckDB Key-Value Storage Adapter.

This adapter implements the KeyValueStorePort contract on top of DuckDB, an
in-process database, giving the ledger a durable single-file backend.

Architecture:
    - Implements KeyValueStorePort (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports and configuration
    - One table, key_value_store(ns, item_key, item_value); each adapter instance
      reads and writes a single namespace
    - Connection is established lazily and guarded by a lock, since the state
      store writes from a background worker
"""

import logging
from pathlib import Path
from threading import Lock
from typing import Optional

import duckdb

from patient_ledger.domain.ports import KeyValueStorePort, Result, StorageError
from patient_ledger.infrastructure.config_manager import DEFAULT_NAMESPACE, StorageConfig

logger = logging.getLogger(__name__)

TABLE_NAME = "key_value_store"


class DuckDBKeyValueStore(KeyValueStorePort):
    """DuckDB implementation of KeyValueStorePort.

    Parameters:
        storage_config: StorageConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)
        namespace: Key namespace (defaults to "patient_data")

    Example Usage:
        ```python
        from patient_ledger.infrastructure.config_manager import get_storage_config

        store = DuckDBKeyValueStore(storage_config=get_storage_config())

        # Or using db_path directly
        store = DuckDBKeyValueStore(db_path="data/patients.duckdb")
        store.set_string("patients", "[]")
        ```
    """

    def __init__(
        self,
        storage_config: Optional[StorageConfig] = None,
        db_path: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        """Initialize DuckDB key-value store.

        Note:
            If both storage_config and db_path are provided, storage_config takes
            precedence. If neither is provided, defaults to in-memory database.

        Raises:
            StorageError: If the config targets another backend or the
                database directory does not exist
        """
        if storage_config:
            if storage_config.backend != "duckdb":
                raise StorageError(
                    f"StorageConfig backend '{storage_config.backend}' does not match DuckDB adapter",
                    operation="__init__"
                )
            self.db_path = storage_config.db_path or ":memory:"
            self.namespace = namespace or storage_config.namespace
        else:
            self.db_path = db_path or ":memory:"
            self.namespace = namespace or DEFAULT_NAMESPACE

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False
        self._lock = Lock()

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise StorageError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create DuckDB connection, creating the table on first use."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except Exception as e:
                raise StorageError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                )
        if not self._initialized:
            self._create_table(self._connection)
        return self._connection

    def _create_table(self, conn: duckdb.DuckDBPyConnection) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                ns VARCHAR NOT NULL,
                item_key VARCHAR NOT NULL,
                item_value VARCHAR NOT NULL,
                PRIMARY KEY (ns, item_key)
            )
        """)
        self._initialized = True

    def initialize_schema(self) -> Result[None]:
        """Create the key-value table if needed.

        Returns:
            Result[None]: Success or failure result
        """
        try:
            with self._lock:
                self._get_connection()
            logger.info("Key-value schema initialized successfully")
            return Result.success_result(None)
        except Exception as e:
            error_msg = f"Failed to initialize schema: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation="initialize_schema"),
                error_type="StorageError"
            )

    def get_string(self, key: str) -> Optional[str]:
        try:
            with self._lock:
                row = self._get_connection().execute(
                    f"SELECT item_value FROM {TABLE_NAME} WHERE ns = ? AND item_key = ?",
                    [self.namespace, key]
                ).fetchone()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to read key '{key}': {str(e)}",
                operation="get",
                details={"key": key, "namespace": self.namespace}
            )
        return row[0] if row else None

    def set_string(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self._get_connection().execute(
                    f"INSERT OR REPLACE INTO {TABLE_NAME} (ns, item_key, item_value) VALUES (?, ?, ?)",
                    [self.namespace, key, value]
                )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to write key '{key}': {str(e)}",
                operation="set",
                details={"key": key, "namespace": self.namespace}
            )

    def remove(self, key: str) -> None:
        try:
            with self._lock:
                self._get_connection().execute(
                    f"DELETE FROM {TABLE_NAME} WHERE ns = ? AND item_key = ?",
                    [self.namespace, key]
                )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Failed to remove key '{key}': {str(e)}",
                operation="remove",
                details={"key": key, "namespace": self.namespace}
            )

    def close(self) -> None:
        """Close storage connection and release resources."""
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                    logger.info("Closed DuckDB connection")
                except Exception as e:
                    logger.warning(f"Error closing connection: {str(e)}")
                finally:
                    self._connection = None
                    self._initialized = False
