"""
ComponentDB - Registry core for live-editable UI components.

Tracks every modifiable component of a running application, keeps a
versioned history of its source, maps how components relate, and applies
proposed source changes atomically with rollback.

Layers:
- Store: Keyed records of component identity and source
- Version Manager: Append-only history with revert
- Relationship Graph: Blast-radius and shared-state queries
- ComponentRegistry: Validates, executes, versions and coordinates changes
"""
from componentdb.core.errors import (
    ComponentNotFoundError,
    OperationCancelledError,
    RegistryError,
    ValidationFailedError,
)
from componentdb.core.models import (
    CodeChangeRequest,
    CodeChangeResult,
    ComponentRecord,
    ComponentUpdate,
    MultiComponentChangeRequest,
    Permissions,
)
from componentdb.core.relationship import GraphVisualization, RelationshipGraph, RelationshipRecord
from componentdb.core.version import VersionDiff, VersionManager, VersionRecord
from componentdb.storage.engine import ComponentStore, InMemoryComponentStore
from componentdb.runtime.events import EventBus, RegistryEvent, RegistryEventType
from componentdb.runtime.hooks import LifecycleHook
from componentdb.runtime.transaction import BatchState, MultiComponentChangeResult, TransitionError
from componentdb.interface.collaborators import (
    CodeExecutor,
    PassthroughExecutor,
    RegistryValidator,
    ValidationResult,
    Validator,
)
from componentdb.interface.client import ComponentRegistry, RegistrationOptions
from componentdb.config import RegistryConfig

__version__ = "0.1.0"

__all__ = [
    # Errors
    "RegistryError",
    "ComponentNotFoundError",
    "ValidationFailedError",
    "OperationCancelledError",
    # Core models
    "ComponentRecord",
    "ComponentUpdate",
    "Permissions",
    "CodeChangeRequest",
    "CodeChangeResult",
    "MultiComponentChangeRequest",
    # Relationships
    "RelationshipGraph",
    "RelationshipRecord",
    "GraphVisualization",
    # Versioning
    "VersionManager",
    "VersionRecord",
    "VersionDiff",
    # Storage
    "ComponentStore",
    "InMemoryComponentStore",
    # Runtime
    "EventBus",
    "RegistryEvent",
    "RegistryEventType",
    "LifecycleHook",
    "BatchState",
    "MultiComponentChangeResult",
    "TransitionError",
    # Collaborators
    "Validator",
    "CodeExecutor",
    "ValidationResult",
    "RegistryValidator",
    "PassthroughExecutor",
    # Client
    "ComponentRegistry",
    "RegistrationOptions",
    "RegistryConfig",
]
