"""
Cached Value

Holder for a lookup result that is expensive to produce and stable for the
life of the process (probed encoder, device list). Owned by the component
that fills it, so tests can start from an empty or pre-filled cache.
"""

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class CachedValue(Generic[T]):
    """
    Usage:
        cache = CachedValue()
        if not cache.is_set:
            cache.set(expensive())
        value = cache.get()
        cache.invalidate()
    """

    def __init__(self, value: Optional[T] = None):
        self._lock = threading.Lock()
        self._value = value
        self._is_set = value is not None

    @property
    def is_set(self) -> bool:
        return self._is_set

    def get(self) -> Optional[T]:
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            self._is_set = True

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._is_set = False
