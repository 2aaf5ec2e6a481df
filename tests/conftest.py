"""
Pytest configuration and shared fixtures for ComponentDB tests.

This module provides common fixtures used across test modules,
including a populated registry and collaborator doubles.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from componentdb.core.models import CodeChangeResult, ComponentRecord, Permissions
from componentdb.core.relationship import RelationshipGraph
from componentdb.core.version import VersionManager
from componentdb.interface.client import ComponentRegistry
from componentdb.interface.collaborators import ValidationResult
from componentdb.storage.engine import InMemoryComponentStore


# =============================================================================
# Layer Fixtures
# =============================================================================

@pytest.fixture
def store():
    """Create an empty in-memory store."""
    return InMemoryComponentStore()


@pytest.fixture
def versions(store):
    """Create a version manager over the store."""
    return VersionManager(store)


@pytest.fixture
def graph():
    """Create an empty relationship graph."""
    return RelationshipGraph()


# =============================================================================
# Sample Component Fixtures
# =============================================================================

@pytest.fixture
def card():
    """Create a single sample component."""
    return ComponentRecord(
        id="card-1",
        name="Card",
        source_code="v0",
        path=["page", "card-1"],
    )


@pytest.fixture
def page_components():
    """Create a page with two cards and a shared cart badge."""
    return [
        ComponentRecord(id="page", name="Page", source_code="page-v0", path=["page"]),
        ComponentRecord(id="card-1", name="Card", source_code="card-1-v0", path=["page", "card-1"]),
        ComponentRecord(id="card-2", name="Card2", source_code="card-2-v0", path=["page", "card-2"]),
        ComponentRecord(
            id="badge",
            name="CartBadge",
            source_code="badge-v0",
            path=["page", "badge"],
            declared_dependencies=["Card"],
        ),
    ]


# =============================================================================
# Registry Fixtures
# =============================================================================

@pytest.fixture
def registry():
    """Create a registry with default collaborators."""
    reg = ComponentRegistry()
    yield reg
    reg.close()


@pytest.fixture
def populated_registry(registry, page_components):
    """Create a registry with the sample page registered."""
    for component in page_components:
        registry.register(component)
    return registry


@pytest.fixture
def recorded_events(registry):
    """Record every event emitted by the registry, in order."""
    events = []
    registry.subscribe_all(events.append)
    return events


# =============================================================================
# Collaborator Doubles
# =============================================================================

@pytest.fixture
def mock_validator():
    """Create a validator that accepts everything."""
    validator = MagicMock()
    validator.validate_component.return_value = True
    validator.validate_code_change.return_value = ValidationResult.valid()
    return validator


@pytest.fixture
def mock_executor():
    """Create an executor that echoes the requested source."""
    executor = MagicMock()

    async def echo(request):
        return CodeChangeResult.ok(request.component_id, request.source_code)

    executor.execute_code_change = AsyncMock(side_effect=echo)
    return executor


@pytest.fixture
def open_permissions():
    """Create permissions allowing everything."""
    return Permissions(
        allow_component_creation=True,
        allow_component_deletion=True,
        allow_style_changes=True,
        allow_logic_changes=True,
        allow_data_access=True,
        allow_network_requests=True,
    )

