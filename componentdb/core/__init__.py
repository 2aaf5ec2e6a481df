"""
Core domain models for ComponentDB.

This module defines the building blocks of the registry core:
- ComponentRecord: A modifiable component and its opaque source code
- VersionRecord / VersionManager: Append-only source history
- RelationshipGraph: Parent/child, dependency and shared-state edges
"""

from componentdb.core.errors import (
    ComponentNotFoundError,
    OperationCancelledError,
    RegistryError,
    ValidationFailedError,
)
from componentdb.core.relationship import (
    EdgeType,
    GraphEdge,
    GraphNode,
    GraphVisualization,
    NodeType,
    RelationshipGraph,
    RelationshipRecord,
)
from componentdb.core.models import (
    CodeChangeRequest,
    CodeChangeResult,
    ComponentRecord,
    ComponentUpdate,
    MultiComponentChangeRequest,
    Permissions,
)
from componentdb.core.version import VersionDiff, VersionManager, VersionRecord, VersionSummary

__all__ = [
    "RegistryError",
    "ComponentNotFoundError",
    "ValidationFailedError",
    "OperationCancelledError",
    "ComponentRecord",
    "ComponentUpdate",
    "Permissions",
    "CodeChangeRequest",
    "CodeChangeResult",
    "MultiComponentChangeRequest",
    "RelationshipGraph",
    "RelationshipRecord",
    "EdgeType",
    "NodeType",
    "GraphNode",
    "GraphEdge",
    "GraphVisualization",
    "VersionManager",
    "VersionRecord",
    "VersionDiff",
    "VersionSummary",
]
