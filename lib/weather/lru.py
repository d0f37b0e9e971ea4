"""
LRU map bounding the number of cached locations
"""

import logging
from collections import OrderedDict
from threading import RLock
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class LRUCache[K, V](OrderedDict[K, V]):
    """Simple LRU cache implementation with thread safety"""

    def __init__(self, maxSize: int = 256, onEvict: Optional[Callable[[K, V], None]] = None):
        """
        Initialize LRU cache with maximum size and thread safety.

        Args:
            maxSize: Maximum number of entries before eviction (default: 256)
            onEvict: Optional callback invoked with (key, value) of each evicted entry
        """
        if maxSize < 1:
            raise ValueError(f"LRU cache size must be positive, got {maxSize}")
        super().__init__()
        self.maxSize = maxSize
        self.onEvict = onEvict
        self.lock = RLock()

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:  # pyright: ignore[reportIncompatibleMethodOverride]
        """Get value from cache, moving it to end (most recently used)"""
        with self.lock:
            if key not in self:
                return default
            # Move to end (most recently used)
            self.move_to_end(key)
            return self[key]

    def peek(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Get value without touching recency"""
        with self.lock:
            if key not in self:
                return default
            return self[key]

    def set(self, key: K, value: V) -> None:
        """Set value in cache, evicting oldest if over capacity"""
        with self.lock:
            if key in self:
                self.move_to_end(key)
            self[key] = value
            while len(self) > self.maxSize:
                oldKey, oldValue = self.popitem(last=False)
                logger.debug(f"LRU evicted key: {oldKey}")
                if self.onEvict is not None:
                    self.onEvict(oldKey, oldValue)

    def delete(self, key: K) -> bool:
        """Delete key from cache"""
        with self.lock:
            if key in self:
                del self[key]
                return True
            return False
