"""
Component storage for ComponentDB.

This module provides the storage abstraction layer for component records:

- Keyed CRUD: store, get, update, remove, get_all, has
- Defaults filled on store: no consumer ever sees a missing versions list
  or relationship placeholder

Design Philosophy:
    Storage is separated from semantics. The store knows how to keep and
    hand out component records, but knows nothing about versions or
    relationships beyond holding their snapshot fields.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from componentdb.core.errors import ComponentNotFoundError
from componentdb.core.models import ComponentPredicate, ComponentRecord, ComponentUpdate
from componentdb.core.relationship import RelationshipRecord


logger = logging.getLogger(__name__)

UpdateLike = Union[ComponentUpdate, dict[str, Any]]


def _as_update(updates: UpdateLike) -> ComponentUpdate:
    """Coerce a mapping into a ComponentUpdate, keeping only the given keys."""
    if isinstance(updates, ComponentUpdate):
        return updates
    return ComponentUpdate(**updates)


class ComponentStore(ABC):
    """
    Abstract base class for component storage backends.

    Implementations:
        - InMemoryComponentStore: The default, process-local store
    """

    @abstractmethod
    def store(self, record: ComponentRecord) -> ComponentRecord:
        """
        Insert or overwrite a record.

        Args:
            record: Record to store

        Returns:
            The stored record, with empty defaults filled in
        """
        pass

    @abstractmethod
    def get(self, component_id: str) -> Optional[ComponentRecord]:
        """
        Retrieve a record by ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    def update(self, component_id: str, updates: UpdateLike) -> ComponentRecord:
        """
        Merge a partial update into an existing record.

        Fields not present in ``updates`` are left untouched.

        Raises:
            ComponentNotFoundError: If the ID is unknown
        """
        pass

    @abstractmethod
    def remove(self, component_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if the record existed
        """
        pass

    @abstractmethod
    def get_all(self) -> dict[str, ComponentRecord]:
        """Get a snapshot mapping of all current records."""
        pass

    @abstractmethod
    def has(self, component_id: str) -> bool:
        """Check if a record exists."""
        pass


class InMemoryComponentStore(ComponentStore):
    """
    In-memory component store.

    Records are copied on the way in and on the way out, so callers never
    hold a reference into the store's own state. Data is lost when the
    process exits.
    """

    def __init__(self):
        """Initialize empty storage."""
        self._components: dict[str, ComponentRecord] = {}

    def store(self, record: ComponentRecord) -> ComponentRecord:
        """Insert or overwrite a record, filling empty defaults."""
        stored = record.model_copy(deep=True)
        if stored.versions is None:
            stored.versions = []
        if stored.relationships is None:
            stored.relationships = RelationshipRecord()

        self._components[stored.id] = stored
        logger.debug(f"Stored component: {stored.id}")
        return stored.model_copy(deep=True)

    def get(self, component_id: str) -> Optional[ComponentRecord]:
        """Get a copy of a record."""
        record = self._components.get(component_id)
        if record is None:
            return None
        return record.model_copy(deep=True)

    def update(self, component_id: str, updates: UpdateLike) -> ComponentRecord:
        """Merge the explicitly given fields into a record."""
        record = self._components.get(component_id)
        if record is None:
            raise ComponentNotFoundError(component_id)

        _as_update(updates).apply_to(record)
        return record.model_copy(deep=True)

    def remove(self, component_id: str) -> bool:
        """Delete a record."""
        return self._components.pop(component_id, None) is not None

    def get_all(self) -> dict[str, ComponentRecord]:
        """Get copies of all records, keyed by ID."""
        return {
            component_id: record.model_copy(deep=True)
            for component_id, record in self._components.items()
        }

    def has(self, component_id: str) -> bool:
        """Check if a record exists."""
        return component_id in self._components

    def count(self) -> int:
        """Get the number of stored records."""
        return len(self._components)

    def find(self, predicate: ComponentPredicate) -> list[ComponentRecord]:
        """Get copies of every record matching a predicate."""
        return [
            record.model_copy(deep=True)
            for record in self._components.values()
            if predicate(record)
        ]

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._components.clear()
