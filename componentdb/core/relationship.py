"""
Relationship graph for ComponentDB.

This module tracks how components relate to one another, enabling the
queries that scope a code change:

- affected(ids): Everything that could be impacted by changing ``ids``
- related_state_keys(id): Which shared state is "in play" for a change

Three kinds of edges are tracked:

- parent/child: A forest. Each component has at most one parent.
- dependency: A general directed graph. Cycles are allowed, so every
  traversal is guarded by a visited set.
- shared state: Components that read/write the same opaque state key.

Design Philosophy:
    The per-component RelationshipRecord is the source of truth.
    ``depends_on`` and ``depended_on_by`` are exact inverses at all times;
    every mutation updates both sides in one step. Analysis queries that
    need real graph algorithms (paths, cycles, ordering) run on a NetworkX
    projection built on demand.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

import networkx as nx
from pydantic import BaseModel, Field

from componentdb.core.errors import ComponentNotFoundError

if TYPE_CHECKING:
    from componentdb.core.models import ComponentRecord


logger = logging.getLogger(__name__)

STATE_NODE_PREFIX = "state:"


class EdgeType(str, Enum):
    """Types of relationship edges."""

    PARENT_CHILD = "parent-child"  # source renders target
    DEPENDS_ON = "depends-on"  # source needs target
    USES_STATE = "uses-state"  # source reads/writes a shared state key


class NodeType(str, Enum):
    """Types of nodes in a graph visualization."""

    COMPONENT = "component"
    STATE = "state"


class RelationshipRecord(BaseModel):
    """
    Everything the graph knows about one component's neighbours.

    ``sibling_ids`` is derived: it always equals the other children of
    ``parent_id``. Lists keep insertion order and never hold duplicates.
    """

    parent_id: Optional[str] = Field(default=None, description="Parent component (at most one)")
    children_ids: list[str] = Field(default_factory=list, description="Child components")
    sibling_ids: list[str] = Field(default_factory=list, description="Other children of the parent")
    depends_on: list[str] = Field(default_factory=list, description="Components this one depends on")
    depended_on_by: list[str] = Field(default_factory=list, description="Components depending on this one")
    shared_state_keys: list[str] = Field(default_factory=list, description="State keys read or written")

    model_config = {"extra": "forbid"}

    def is_empty(self) -> bool:
        """Check if this record carries no relationships at all."""
        return (
            self.parent_id is None
            and not self.children_ids
            and not self.depends_on
            and not self.depended_on_by
            and not self.shared_state_keys
        )


class GraphNode(BaseModel):
    """A node in a graph visualization."""

    id: str = Field(..., description="Component ID, or state:<key> for state nodes")
    name: str = Field(..., description="Display label")
    type: NodeType = Field(..., description="Node kind")
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True, "extra": "forbid"}


class GraphEdge(BaseModel):
    """A typed edge in a graph visualization."""

    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")
    type: EdgeType = Field(..., description="Edge kind")

    model_config = {"frozen": True, "extra": "forbid"}


class GraphVisualization(BaseModel):
    """A read-only node/edge projection of the whole relationship graph."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain Python structures."""
        return self.model_dump(mode="json")


def _append_unique(items: list[str], value: str) -> bool:
    """Append ``value`` unless already present. Returns True if appended."""
    if value in items:
        return False
    items.append(value)
    return True


def _remove_value(items: list[str], value: str) -> None:
    """Remove every occurrence of ``value`` in place."""
    items[:] = [item for item in items if item != value]


class RelationshipGraph:
    """
    Typed edges between component IDs, with reachability queries.

    The graph knows nothing about component storage or versions. It only
    sees IDs and the relationship payload carried on a component.

    Thread Safety:
        This class is NOT thread-safe. All mutations are expected to come
        from the registry, one operation at a time.
    """

    def __init__(self):
        """Initialize an empty relationship graph."""
        self._records: dict[str, RelationshipRecord] = {}

        # Reverse index: state key -> component IDs, insertion ordered
        self._state_usage: dict[str, list[str]] = {}

    @property
    def component_count(self) -> int:
        """Get the number of components in the graph."""
        return len(self._records)

    def has_component(self, component_id: str) -> bool:
        """Check if a component is known to the graph."""
        return component_id in self._records

    def component_ids(self) -> list[str]:
        """Get all known component IDs, in insertion order."""
        return list(self._records)

    def _require(self, component_id: str, role: str = "Component") -> RelationshipRecord:
        """Return a record or raise ComponentNotFoundError."""
        record = self._records.get(component_id)
        if record is None:
            raise ComponentNotFoundError(
                component_id,
                f"{role} {component_id} not found in relationship graph",
            )
        return record

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_component(self, component: ComponentRecord) -> RelationshipRecord:
        """
        Ensure a component has a relationship record.

        If the component carries a relationship payload (e.g. on
        re-registration), it is merged in. Edges to components the graph
        does not know yet are ignored, so both sides of every edge always
        exist.

        Args:
            component: Component to add

        Returns:
            The component's relationship record
        """
        component_id = component.id
        if component_id not in self._records:
            self._records[component_id] = RelationshipRecord()
            logger.debug(f"Added component to relationship graph: {component_id}")

        payload = component.relationships
        if payload is None or payload.is_empty():
            return self._records[component_id]

        if payload.parent_id and payload.parent_id in self._records:
            self.set_parent_child(payload.parent_id, component_id)
        for child_id in payload.children_ids:
            if child_id in self._records:
                self.set_parent_child(component_id, child_id)
        for dependency_id in payload.depends_on:
            if dependency_id in self._records:
                self.add_dependency(component_id, dependency_id)
        for dependent_id in payload.depended_on_by:
            if dependent_id in self._records:
                self.add_dependency(dependent_id, component_id)
        for state_key in payload.shared_state_keys:
            self.track_state_usage(component_id, state_key)

        return self._records[component_id]

    def remove_component(self, component_id: str) -> bool:
        """
        Remove a component and scrub every reference to it.

        Args:
            component_id: Component to remove

        Returns:
            True if the component was known
        """
        record = self._records.pop(component_id, None)
        if record is None:
            return False

        for other in self._records.values():
            if other.parent_id == component_id:
                other.parent_id = None
                other.sibling_ids = []
            _remove_value(other.children_ids, component_id)
            _remove_value(other.sibling_ids, component_id)
            _remove_value(other.depends_on, component_id)
            _remove_value(other.depended_on_by, component_id)

        if record.parent_id and record.parent_id in self._records:
            self._update_siblings(record.parent_id)

        for state_key in list(self._state_usage):
            users = self._state_usage[state_key]
            _remove_value(users, component_id)
            if not users:
                del self._state_usage[state_key]

        logger.debug(f"Removed component from relationship graph: {component_id}")
        return True

    def set_parent_child(self, parent_id: str, child_id: str) -> None:
        """
        Make ``child_id`` a child of ``parent_id``.

        Idempotent. If the child already had a different parent it is moved,
        keeping the parent/child relation a forest.

        Raises:
            ComponentNotFoundError: If either side is unknown
        """
        parent = self._require(parent_id, "Parent component")
        child = self._require(child_id, "Child component")

        previous_parent_id = child.parent_id
        if previous_parent_id is not None and previous_parent_id != parent_id:
            previous_parent = self._records.get(previous_parent_id)
            if previous_parent is not None:
                _remove_value(previous_parent.children_ids, child_id)
                self._update_siblings(previous_parent_id)

        _append_unique(parent.children_ids, child_id)
        child.parent_id = parent_id
        self._update_siblings(parent_id)

    def clear_parent(self, child_id: str) -> bool:
        """
        Detach a component from its parent, making it a root.

        Returns:
            True if it had a parent
        """
        child = self._records.get(child_id)
        if child is None or child.parent_id is None:
            return False

        parent_id = child.parent_id
        child.parent_id = None
        child.sibling_ids = []

        parent = self._records.get(parent_id)
        if parent is not None:
            _remove_value(parent.children_ids, child_id)
            self._update_siblings(parent_id)
        return True

    def _update_siblings(self, parent_id: str) -> None:
        """Recompute sibling_ids for every child of a parent."""
        children_ids = self._records[parent_id].children_ids
        for child_id in children_ids:
            child = self._records.get(child_id)
            if child is None:
                continue
            child.sibling_ids = [other for other in children_ids if other != child_id]

    def add_dependency(self, dependent_id: str, dependency_id: str) -> None:
        """
        Record that ``dependent_id`` depends on ``dependency_id``.

        Both sides are updated together. Idempotent.

        Raises:
            ComponentNotFoundError: If either side is unknown
        """
        dependent = self._require(dependent_id, "Dependent component")
        dependency = self._require(dependency_id, "Dependency component")

        _append_unique(dependent.depends_on, dependency_id)
        _append_unique(dependency.depended_on_by, dependent_id)
        logger.debug(f"Added dependency: {dependent_id} -> {dependency_id}")

    def remove_dependency(self, dependent_id: str, dependency_id: str) -> bool:
        """
        Drop a dependency edge, both sides.

        Returns:
            True if the edge existed
        """
        dependent = self._records.get(dependent_id)
        dependency = self._records.get(dependency_id)
        if dependent is None or dependency is None or dependency_id not in dependent.depends_on:
            return False

        _remove_value(dependent.depends_on, dependency_id)
        _remove_value(dependency.depended_on_by, dependent_id)
        return True

    def track_state_usage(self, component_id: str, state_key: str) -> None:
        """
        Record that a component reads or writes a shared state key.

        Raises:
            ComponentNotFoundError: If the component is unknown
        """
        record = self._require(component_id)
        _append_unique(record.shared_state_keys, state_key)
        _append_unique(self._state_usage.setdefault(state_key, []), component_id)

    def get_state_users(self, state_key: str) -> list[str]:
        """Get every component using a state key."""
        return list(self._state_usage.get(state_key, []))

    def clear(self) -> None:
        """Drop every record (for testing)."""
        self._records.clear()
        self._state_usage.clear()

    # =========================================================================
    # Queries
    # =========================================================================

    def get_relationships(self, component_id: str) -> Optional[RelationshipRecord]:
        """
        Get a copy of a component's relationship record.

        Returns:
            The record, or None if the component is unknown
        """
        record = self._records.get(component_id)
        if record is None:
            return None
        return record.model_copy(deep=True)

    def get_affected_components(self, component_ids: Union[str, Iterable[str]]) -> list[str]:
        """
        Find every component that could be impacted by changing the seeds.

        Traversal from each seed:
        1. Follow ``depended_on_by`` transitively (dependents are affected)
        2. Follow ``parent_id`` transitively (a child's change can affect
           its parent's layout)
        3. Pull in every user of the seeds' shared state keys, and continue
           from them the same way

        The seeds themselves are never reported.

        Args:
            component_ids: A single ID or an iterable of IDs

        Returns:
            Affected component IDs in discovery order
        """
        seeds = [component_ids] if isinstance(component_ids, str) else list(component_ids)
        seed_set = set(seeds)

        visited: set[str] = set()
        result: list[str] = []

        def traverse(start_id: str) -> None:
            queue: list[str] = [start_id]
            while queue:
                current_id = queue.pop(0)
                if current_id in visited:
                    continue
                visited.add(current_id)
                result.append(current_id)

                record = self._records.get(current_id)
                if record is None:
                    continue

                for dependent_id in record.depended_on_by:
                    if dependent_id not in visited:
                        queue.append(dependent_id)
                if record.parent_id and record.parent_id not in visited:
                    queue.append(record.parent_id)

        for seed_id in seeds:
            traverse(seed_id)

        state_keys: list[str] = []
        for seed_id in seeds:
            record = self._records.get(seed_id)
            if record is not None:
                for key in record.shared_state_keys:
                    _append_unique(state_keys, key)

        for key in state_keys:
            for user_id in self._state_usage.get(key, []):
                if user_id not in visited:
                    traverse(user_id)

        return [component_id for component_id in result if component_id not in seed_set]

    def get_related_state_keys(self, component_id: str) -> list[str]:
        """
        Get the state keys in play for a change to a component.

        This is the component's own keys plus the keys of its direct
        dependencies and direct dependents (one hop, not transitive).

        Returns:
            State keys, or an empty list for an unknown component
        """
        record = self._records.get(component_id)
        if record is None:
            return []

        keys = list(record.shared_state_keys)
        for neighbour_id in record.depends_on + record.depended_on_by:
            neighbour = self._records.get(neighbour_id)
            if neighbour is None:
                continue
            for key in neighbour.shared_state_keys:
                _append_unique(keys, key)
        return keys

    def get_connected_components(self, component_id: str) -> list[str]:
        """
        Get every direct neighbour of a component, over all structural edges.

        Returns:
            Neighbour IDs (parent, children, siblings, dependencies, dependents)
        """
        record = self._records.get(component_id)
        if record is None:
            return []

        neighbours: list[str] = []
        if record.parent_id:
            neighbours.append(record.parent_id)
        for neighbour_id in (
            record.children_ids
            + record.sibling_ids
            + record.depends_on
            + record.depended_on_by
        ):
            _append_unique(neighbours, neighbour_id)
        return neighbours

    def find_common_dependencies(self, component_ids: list[str]) -> list[str]:
        """
        Find the dependencies shared by every given component.

        Returns:
            IDs in the order they appear for the first component
        """
        if not component_ids:
            return []

        dependency_sets = []
        for component_id in component_ids:
            record = self._records.get(component_id)
            dependency_sets.append(set(record.depends_on) if record else set())

        first = self._records.get(component_ids[0])
        if first is None:
            return []
        return [dep for dep in first.depends_on if all(dep in deps for deps in dependency_sets)]

    # =========================================================================
    # Graph analysis (NetworkX projection)
    # =========================================================================

    def to_networkx(self, edge_types: Optional[list[EdgeType]] = None) -> nx.DiGraph:
        """
        Project the component graph onto a NetworkX DiGraph.

        Dependency edges point from dependent to dependency; parent/child
        edges point from parent to child. State keys are not included.

        Args:
            edge_types: Edge kinds to include (None = parent/child and dependency)

        Returns:
            A new DiGraph; mutating it does not affect this graph
        """
        include = set(edge_types or [EdgeType.PARENT_CHILD, EdgeType.DEPENDS_ON])
        graph = nx.DiGraph()
        for component_id, record in self._records.items():
            graph.add_node(component_id)
            if EdgeType.PARENT_CHILD in include and record.parent_id:
                graph.add_edge(record.parent_id, component_id, edge_type=EdgeType.PARENT_CHILD.value)
            if EdgeType.DEPENDS_ON in include:
                for dependency_id in record.depends_on:
                    graph.add_edge(component_id, dependency_id, edge_type=EdgeType.DEPENDS_ON.value)
        return graph

    def find_path(self, source_id: str, target_id: str) -> list[str]:
        """
        Find the shortest path between two components over any edge.

        Edge direction is ignored: a component is connected to its parent,
        children, dependencies and dependents alike.

        Returns:
            List of component IDs forming the path, or [] if none exists
        """
        if source_id not in self._records or target_id not in self._records:
            return []

        graph = self.to_networkx().to_undirected(as_view=True)
        try:
            return nx.shortest_path(graph, source_id, target_id)
        except nx.NetworkXNoPath:
            return []

    def detect_cycles(self) -> list[list[str]]:
        """
        Detect cycles in the dependency relation.

        Cycles are legal, but they are worth surfacing to tooling.

        Returns:
            List of cycles (each cycle is a list of component IDs)
        """
        graph = self.to_networkx([EdgeType.DEPENDS_ON])
        return [list(cycle) for cycle in nx.simple_cycles(graph)]

    def dependency_order(self) -> list[str]:
        """
        Return components with dependencies before their dependents.

        Useful for re-validating or re-rendering in a safe order.

        Raises:
            ValueError: If the dependency relation contains cycles
        """
        graph = self.to_networkx([EdgeType.DEPENDS_ON])
        if not nx.is_directed_acyclic_graph(graph):
            raise ValueError("Dependency graph contains cycles, cannot determine an order")
        return list(reversed(list(nx.topological_sort(graph))))

    def visualize(self, names: Optional[dict[str, str]] = None) -> GraphVisualization:
        """
        Materialize the whole structure as nodes and typed edges.

        Produces component nodes, one synthetic ``state:<key>`` node per
        state key, and parent-child / depends-on / uses-state edges. This is
        a pure projection; nothing is mutated.

        Args:
            names: Optional display names by component ID (defaults to the ID)

        Returns:
            GraphVisualization
        """
        names = names or {}
        nodes: list[GraphNode] = []
        edges: list[GraphEdge] = []
        state_nodes: set[str] = set()

        for component_id, record in self._records.items():
            nodes.append(GraphNode(
                id=component_id,
                name=names.get(component_id, component_id),
                type=NodeType.COMPONENT,
            ))

            if record.parent_id:
                edges.append(GraphEdge(
                    source=record.parent_id,
                    target=component_id,
                    type=EdgeType.PARENT_CHILD,
                ))

            for dependency_id in record.depends_on:
                edges.append(GraphEdge(
                    source=component_id,
                    target=dependency_id,
                    type=EdgeType.DEPENDS_ON,
                ))

            for state_key in record.shared_state_keys:
                state_node_id = f"{STATE_NODE_PREFIX}{state_key}"
                if state_key not in state_nodes:
                    state_nodes.add(state_key)
                    nodes.append(GraphNode(id=state_node_id, name=state_key, type=NodeType.STATE))
                edges.append(GraphEdge(
                    source=component_id,
                    target=state_node_id,
                    type=EdgeType.USES_STATE,
                ))

        return GraphVisualization(nodes=nodes, edges=edges)
