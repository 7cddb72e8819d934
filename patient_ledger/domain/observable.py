"""Last-value-cached observable holder.

Subscribers are called with the current value as soon as they attach and
again on every change. Callbacks run on the thread that set the value.
"""

import logging
from threading import RLock
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

Unsubscribe = Callable[[], None]


class Observable(Generic[T]):
    """Holds one value and broadcasts it to subscribers.

    Example Usage:
        ```python
        count = Observable(0)
        unsubscribe = count.subscribe(print)   # prints 0 immediately
        count.set(1)                            # prints 1
        unsubscribe()
        ```
    """

    def __init__(self, initial: T, name: str = "observable"):
        self._value = initial
        self._name = name
        self._subscribers: List[Callable[[T], None]] = []
        self._lock = RLock()

    @property
    def value(self) -> T:
        """Current (last set) value."""
        return self._value

    def set(self, value: T) -> None:
        """Replace the value and notify every subscriber."""
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)
        for callback in subscribers:
            self._deliver(callback, value)

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Attach a subscriber; it immediately receives the current value.

        Returns:
            Callable that detaches the subscriber
        """
        with self._lock:
            self._subscribers.append(callback)
            current = self._value
        self._deliver(callback, current)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _deliver(self, callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception as e:
            logger.warning(f"Subscriber of {self._name} raised: {str(e)}", exc_info=True)

    def __repr__(self) -> str:
        return f"Observable(name={self._name!r}, value={self._value!r})"
