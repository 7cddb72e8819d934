"""Domain Ports - Abstract Contracts for Patient Data Persistence.

This module defines the Port interfaces (abstract contracts) that storage
Adapters must implement. Following Hexagonal Architecture, the Domain Core
defines what it needs, not how it's provided.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (in-memory, DuckDB, etc.) implement these ports
    - The repository and state store are isolated from backend specifics
    - The store contract is a flat key-value string map, nothing more
"""

from abc import ABC, abstractmethod
from typing import Optional, Generic, TypeVar, Union
from dataclasses import dataclass

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (StorageError, SerializationError, etc.)
        error_details: Additional error context (operation, key, etc.)

    Example:
        ```python
        result = store.initialize_schema()
        if result.is_failure():
            logger.error(result.error, extra={"details": result.error_details})
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "StorageError")
            error_details: Additional context (operation, key, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class PatientLedgerError(Exception):
    """Base exception for all patient ledger errors."""
    pass


class StorageError(PatientLedgerError):
    """Raised when the key-value backend cannot complete an operation.

    Attributes:
        operation: The store operation that failed (get, set, remove, connect)
        details: Additional error context (key, db_path, etc.)
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class SerializationError(PatientLedgerError):
    """Raised when a stored blob cannot be encoded or decoded.

    Attributes:
        key: The storage key whose payload failed to (de)serialize
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class KeyValueStorePort(ABC):
    """Abstract contract for durable key-value string storage.

    This port is the only thing the repository needs from a backend: a flat
    map of string keys to string values. There is no transactionality and no
    partial-key semantics; each write overwrites the whole value.

    Key Principles:
        - Synchronous: calls return once the backend has accepted the write
        - Durable: values survive process restarts (except in-memory adapters)
        - Dumb: no knowledge of the payload format

    Example Usage:
        ```python
        store = DuckDBKeyValueStore(db_path="data/patients.duckdb")
        store.set_string("patients", "[]")
        assert store.get_string("patients") == "[]"
        store.remove("patients")
        ```
    """

    @abstractmethod
    def get_string(self, key: str) -> Optional[str]:
        """Read the value stored under a key.

        Parameters:
            key: Storage key

        Returns:
            Optional[str]: Stored value, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set_string(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any previous value.

        Parameters:
            key: Storage key
            value: String payload

        Raises:
            StorageError: If the backend rejects the write
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error.

        Parameters:
            key: Storage key

        Raises:
            StorageError: If the backend rejects the delete
        """
        pass

    def close(self) -> None:
        """Release backend resources (optional, adapter-specific)."""
        return None

    def __enter__(self) -> 'KeyValueStorePort':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
