"""
Version history for ComponentDB.

This module keeps an append-only history of source-code snapshots per
component:

- VersionRecord: An immutable, timestamped snapshot of a component's source
- VersionManager: Creates versions, answers history queries, reverts
- VersionDiff: Line-level comparison between two versions

Design Philosophy:
    History is append-only. A revert never deletes anything, it appends a
    new version carrying the old source. "What did component X look like
    at time T" is therefore always answerable, and no operation can
    silently erase a snapshot.
"""

from __future__ import annotations

import difflib
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from componentdb.core.errors import ComponentNotFoundError
from componentdb.core.models import ComponentUpdate, generate_id
from componentdb.storage.engine import ComponentStore


logger = logging.getLogger(__name__)


class VersionRecord(BaseModel):
    """
    An immutable snapshot of a component's source code.

    Versions are created on every accepted source change, including the
    initial registration and every revert. Within a component's history
    they are kept newest-first.
    """

    id: str = Field(default_factory=generate_id, description="Unique version identifier")
    component_id: str = Field(..., description="Owning component")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this version was created"
    )
    source_code: str = Field(..., description="Source snapshot")
    description: str = Field(default="", description="What changed")
    author: Optional[str] = Field(default=None, description="Who/what created this version")

    reverted_from: Optional[str] = Field(
        default=None,
        description="ID of the version this one restores, for revert versions"
    )

    model_config = {"frozen": True, "extra": "forbid"}

    @property
    def is_revert(self) -> bool:
        """Check if this version was created by a revert."""
        return self.reverted_from is not None


class VersionDiff(BaseModel):
    """
    Difference between two versions of one component.

    ``diff`` is a unified diff of the two source snapshots.
    """

    component_id: str = Field(..., description="Component ID")
    from_version_id: str = Field(..., description="Older version")
    to_version_id: str = Field(..., description="Newer version")
    diff: str = Field(default="", description="Unified diff text")

    added_lines: int = Field(default=0, description="Lines only in the newer version")
    removed_lines: int = Field(default=0, description="Lines only in the older version")

    model_config = {"frozen": True, "extra": "forbid"}

    def model_post_init(self, __context: Any) -> None:
        """Count added and removed lines."""
        added = 0
        removed = 0
        for line in self.diff.splitlines():
            if line.startswith("+") and not line.startswith("+++"):
                added += 1
            elif line.startswith("-") and not line.startswith("---"):
                removed += 1
        object.__setattr__(self, "added_lines", added)
        object.__setattr__(self, "removed_lines", removed)

    @property
    def has_changes(self) -> bool:
        """Check if the two versions differ."""
        return bool(self.added_lines or self.removed_lines)


class VersionSummary(BaseModel):
    """Counts and endpoints of a component's history."""

    component_id: str
    total_versions: int = 0
    latest: Optional[VersionRecord] = None
    first: Optional[VersionRecord] = None

    model_config = {"frozen": True, "extra": "forbid"}


class VersionManager:
    """
    Maintains an ordered history of source snapshots per component.

    The manager reads and writes the component's "current" source through
    the store; it never touches relationships.

    Usage:
        ```python
        versions = VersionManager(store)

        v1 = versions.create_version("card-1", "<Card/>", "Initial version")
        v2 = versions.create_version("card-1", "<Card big/>", "Make it big")

        versions.get_history("card-1")        # [v2, v1]
        versions.revert("card-1", v1.id)      # current source is "<Card/>" again
        ```
    """

    def __init__(self, store: ComponentStore):
        """
        Initialize the version manager.

        Args:
            store: Component store holding the current source
        """
        self._store = store
        self._history: dict[str, list[VersionRecord]] = {}

    def create_version(
        self,
        component_id: str,
        source_code: str,
        description: str,
        author: Optional[str] = None,
        update_component: bool = True,
        reverted_from: Optional[str] = None,
    ) -> VersionRecord:
        """
        Record a new snapshot at the front of a component's history.

        Args:
            component_id: Owning component
            source_code: Snapshot to record
            description: What changed
            author: Optional author
            update_component: Also write ``source_code`` as the current source
            reverted_from: Version being restored, when called for a revert

        Returns:
            The new VersionRecord

        Raises:
            ComponentNotFoundError: If the component is unknown
        """
        if not self._store.has(component_id):
            raise ComponentNotFoundError(component_id)

        version = VersionRecord(
            component_id=component_id,
            source_code=source_code,
            description=description,
            author=author,
            reverted_from=reverted_from,
        )

        history = self._history.setdefault(component_id, [])
        history.insert(0, version)

        if update_component:
            self._store.update(
                component_id,
                ComponentUpdate(source_code=source_code, versions=list(history)),
            )
        else:
            self._store.update(component_id, ComponentUpdate(versions=list(history)))

        logger.debug(f"Created version {version.id} for {component_id} ({len(history)} total)")
        return version

    def get_history(self, component_id: str) -> list[VersionRecord]:
        """
        Get a component's versions, newest first.

        An unknown component simply has no history yet.
        """
        return list(self._history.get(component_id, []))

    def get_version(self, component_id: str, version_id: str) -> Optional[VersionRecord]:
        """Get one version of a component, or None."""
        for version in self._history.get(component_id, []):
            if version.id == version_id:
                return version
        return None

    def get_latest(self, component_id: str) -> Optional[VersionRecord]:
        """Get the newest version of a component, or None."""
        history = self._history.get(component_id)
        return history[0] if history else None

    def revert(
        self,
        component_id: str,
        version_id: str,
        create_new_version: bool = True,
        author: Optional[str] = None,
    ) -> bool:
        """
        Restore a component's source to an earlier version.

        Unless ``create_new_version`` is False, the revert is itself recorded
        as a new version, so history only ever grows.

        Args:
            component_id: Component to revert
            version_id: Version to restore
            create_new_version: Record the revert as a new version
            author: Optional author of the revert version

        Returns:
            True on success, False if the component or version is unknown
        """
        if not self._store.has(component_id):
            return False

        target = self.get_version(component_id, version_id)
        if target is None:
            return False

        self._store.update(component_id, ComponentUpdate(source_code=target.source_code))

        if create_new_version:
            self.create_version(
                component_id,
                target.source_code,
                f"Reverted to version from {target.timestamp.isoformat()}",
                author=author,
                reverted_from=target.id,
            )

        logger.debug(f"Reverted {component_id} to version {version_id}")
        return True

    def compare_versions(
        self,
        component_id: str,
        from_version_id: str,
        to_version_id: str,
    ) -> Optional[VersionDiff]:
        """
        Compare two versions of a component.

        Returns:
            VersionDiff, or None if either version is unknown
        """
        from_version = self.get_version(component_id, from_version_id)
        to_version = self.get_version(component_id, to_version_id)
        if from_version is None or to_version is None:
            return None

        diff_lines = difflib.unified_diff(
            from_version.source_code.splitlines(),
            to_version.source_code.splitlines(),
            fromfile=from_version_id,
            tofile=to_version_id,
            lineterm="",
        )
        return VersionDiff(
            component_id=component_id,
            from_version_id=from_version_id,
            to_version_id=to_version_id,
            diff="\n".join(diff_lines),
        )

    def summary(self, component_id: str) -> VersionSummary:
        """Summarize a component's history."""
        history = self._history.get(component_id, [])
        return VersionSummary(
            component_id=component_id,
            total_versions=len(history),
            latest=history[0] if history else None,
            first=history[-1] if history else None,
        )

    def clear_history(self, component_id: str) -> bool:
        """
        Drop a component's whole history.

        Returns:
            True if there was any history to drop
        """
        return self._history.pop(component_id, None) is not None

    def clear(self) -> None:
        """Drop every history (for testing)."""
        self._history.clear()
