"""
Core component models for ComponentDB.

This module defines the records the registry core is built from:

- ComponentRecord: The stored identity and payload of one modifiable component
- ComponentUpdate: An explicit partial update for a ComponentRecord
- Permissions: Capability flags forwarded to the validator
- CodeChangeRequest / CodeChangeResult: The single-component change contract
- MultiComponentChangeRequest: A named set of changes applied as one unit

Design Philosophy:
    The registry never parses the source code it stores. Source code is an
    opaque, versioned string payload; everything interesting about it is
    decided by collaborators (validator, executor).
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import ulid
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from componentdb.core.relationship import RelationshipRecord


def generate_id() -> str:
    """Generate a unique, sortable ID using ULID."""
    return str(ulid.new())


class Permissions(BaseModel):
    """
    Capability flags consumed by the validator.

    The registry only stores and forwards these; it never interprets them.
    """

    allow_component_creation: bool = Field(default=True, description="May add new components")
    allow_component_deletion: bool = Field(default=False, description="May remove components")
    allow_style_changes: bool = Field(default=True, description="May change styling")
    allow_logic_changes: bool = Field(default=True, description="May change behaviour")
    allow_data_access: bool = Field(default=True, description="May read browser storage")
    allow_network_requests: bool = Field(default=False, description="May issue network calls")

    roles_allowed: list[str] = Field(default_factory=list, description="Roles allowed to apply changes")

    model_config = {"extra": "forbid"}

    def merge(self, overrides: Optional[dict[str, Any]] = None, **kwargs: Any) -> Permissions:
        """
        Return a copy with the given flags overridden.

        Args:
            overrides: Mapping of field name to new value
            **kwargs: Same, as keyword arguments

        Returns:
            New Permissions instance
        """
        updates = dict(overrides or {})
        updates.update(kwargs)
        unknown = set(updates) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown permission flags: {sorted(unknown)}")
        return self.model_copy(update=updates)


class ComponentRecord(BaseModel):
    """
    A modifiable UI component as stored by the registry.

    Every record has:
    - An ID (caller-supplied or generated, immutable once set)
    - A display name
    - The current source code (opaque string, optional)
    - A path from the root of the component tree down to itself
    - Names of the components it claims to need

    The ``versions`` and ``relationships`` fields are snapshots maintained by
    the registry; they are never ``None`` once the record has been stored.
    """

    id: str = Field(default_factory=generate_id, description="Unique component identifier")
    name: str = Field(..., description="Display label")
    source_code: Optional[str] = Field(default=None, description="Current source payload")

    path: list[str] = Field(
        default_factory=list,
        description="Ancestor identifiers from root to self"
    )
    declared_dependencies: list[str] = Field(
        default_factory=list,
        description="Names of components this one claims to need"
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Collaborator-owned annotations")
    tags: list[str] = Field(default_factory=list, description="Free-form labels for lookup")

    # Maintained by the registry
    versions: Optional[list[Any]] = Field(default=None, description="Version history, newest first")
    relationships: Optional[RelationshipRecord] = Field(
        default=None,
        description="Relationship payload carried on (re-)registration"
    )

    model_config = {"extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure the component id is not empty."""
        if not v or not v.strip():
            raise ValueError("id cannot be empty")
        return v

    @property
    def parent_path(self) -> list[str]:
        """Path of the expected parent (all but the last element)."""
        return self.path[:-1]


class ComponentUpdate(BaseModel):
    """
    An explicit partial update for a ComponentRecord.

    Only fields that were actually given are applied. ``source_code`` passed
    as ``None`` is an explicit clear, an omitted field is left untouched.
    The other user-owned fields can be changed but not cleared:

        ComponentUpdate(source_code=None)   # clears the source
        ComponentUpdate(name="Card")        # leaves the source alone
    """

    name: Optional[str] = None
    source_code: Optional[str] = None
    path: Optional[list[str]] = None
    declared_dependencies: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None
    tags: Optional[list[str]] = None
    versions: Optional[list[Any]] = None
    relationships: Optional[RelationshipRecord] = None

    model_config = {"extra": "forbid"}

    @field_validator("name", "path", "declared_dependencies", "metadata", "tags")
    @classmethod
    def validate_not_cleared(cls, v: Any, info: ValidationInfo) -> Any:
        """These fields can be changed but never cleared."""
        if v is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return v

    def changes(self) -> dict[str, Any]:
        """Return only the explicitly provided fields."""
        return {name: getattr(self, name) for name in self.model_fields_set}

    def touches(self, field_name: str) -> bool:
        """Check if this update explicitly sets a field."""
        return field_name in self.model_fields_set

    def apply_to(self, record: ComponentRecord) -> ComponentRecord:
        """
        Merge this update into a record, in place.

        Args:
            record: Record to mutate

        Returns:
            The same record
        """
        for name, value in self.changes().items():
            setattr(record, name, value)
        return record

    @classmethod
    def from_record(cls, record: ComponentRecord) -> ComponentUpdate:
        """Build an update carrying every user-owned field of a record."""
        fields = {
            "name": record.name,
            "path": list(record.path),
            "declared_dependencies": list(record.declared_dependencies),
            "metadata": dict(record.metadata),
            "tags": list(record.tags),
        }
        if record.source_code is not None:
            fields["source_code"] = record.source_code
        return cls(**fields)


class CodeChangeRequest(BaseModel):
    """A proposed new source for one component."""

    component_id: str = Field(..., description="Target component")
    source_code: str = Field(..., description="Proposed source payload")
    description: Optional[str] = Field(default=None, description="What the change does")

    model_config = {"extra": "forbid"}


class CodeChangeResult(BaseModel):
    """
    Outcome of a single-component change.

    Failures are reported here rather than raised, so callers can render them
    without exception handling.
    """

    success: bool = Field(..., description="Whether the change was applied")
    component_id: str = Field(..., description="Target component")
    new_source_code: Optional[str] = Field(default=None, description="Source that was persisted")
    error: Optional[str] = Field(default=None, description="Failure reason")
    diff: Optional[str] = Field(default=None, description="Optional diff produced by the executor")

    model_config = {"extra": "forbid"}

    @classmethod
    def ok(cls, component_id: str, new_source_code: str, diff: Optional[str] = None) -> CodeChangeResult:
        """Create a successful result."""
        return cls(success=True, component_id=component_id, new_source_code=new_source_code, diff=diff)

    @classmethod
    def failure(cls, component_id: str, error: str) -> CodeChangeResult:
        """Create a failed result."""
        return cls(success=False, component_id=component_id, error=error)


class MultiComponentChangeRequest(BaseModel):
    """
    A named set of changes applied as a single logical unit.

    ``component_ids`` fixes the processing order; ``changes`` maps each ID to
    its new source code.
    """

    component_ids: list[str] = Field(..., description="Components in processing order")
    changes: dict[str, str] = Field(default_factory=dict, description="component_id -> new source")
    description: Optional[str] = Field(default=None, description="What the batch does")

    model_config = {"extra": "forbid"}

    @classmethod
    def from_changes(cls, changes: dict[str, str], description: Optional[str] = None) -> MultiComponentChangeRequest:
        """Build a request that processes ``changes`` in insertion order."""
        return cls(component_ids=list(changes), changes=dict(changes), description=description)


ComponentPredicate = Callable[[ComponentRecord], bool]
