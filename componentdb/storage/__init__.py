"""
Storage layer for ComponentDB.

Provides the pluggable component store, with the default in-memory
implementation.
"""

from componentdb.storage.engine import ComponentStore, InMemoryComponentStore

__all__ = [
    "ComponentStore",
    "InMemoryComponentStore",
]
