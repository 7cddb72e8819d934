"""In-memory Key-Value Storage Adapter.

Non-durable KeyValueStorePort implementation backed by a dict. Used for tests,
demos and the "memory" backend.
"""

import logging
from threading import Lock
from typing import Dict, Mapping, Optional

from patient_ledger.domain.ports import KeyValueStorePort

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore(KeyValueStorePort):
    """Dict-backed KeyValueStorePort.

    Parameters:
        initial: Optional initial contents (copied)
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get_string(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_string(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
