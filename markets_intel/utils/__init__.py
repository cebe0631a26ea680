"""
Shared utilities: bounded caches and per-key locks.
"""

from .cache import LRUCache
from .locks import KeyedLocks

__all__ = ["LRUCache", "KeyedLocks"]
