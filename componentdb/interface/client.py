"""
Main client interface for ComponentDB.

This module provides the ComponentRegistry, the single entry point that
external callers (chat UIs, LLM agents, debug tooling) talk to. It composes
the component store, the version manager and the relationship graph, and
owns all cross-layer coordination: the lower layers never call each other.

Usage:
    ```python
    from componentdb import ComponentRegistry, ComponentRecord, CodeChangeRequest

    registry = ComponentRegistry()

    registry.register(ComponentRecord(id="card-1", name="Card", source_code="v0"))
    registry.create_version("card-1", "v1", "edit")

    result = await registry.execute_code_change(
        CodeChangeRequest(component_id="card-1", source_code="v2", description="Bigger title")
    )

    # What else must be re-validated?
    registry.get_affected_components(["card-1"])
    ```
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel

from componentdb.config import RegistryConfig
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
from componentdb.interface.collaborators import (
    CodeExecutor,
    PassthroughExecutor,
    RegistryValidator,
    ValidationResult,
    Validator,
)
from componentdb.runtime.events import EventBus, EventCallback, RegistryEventType, Subscription
from componentdb.runtime.hooks import HookCallback, HookRegistry, LifecycleHook
from componentdb.runtime.transaction import (
    NO_CHANGE_ERROR,
    BatchState,
    ChangeBatch,
    ItemState,
    MultiComponentChangeResult,
)
from componentdb.storage.engine import ComponentStore, InMemoryComponentStore, UpdateLike


logger = logging.getLogger(__name__)

INITIAL_VERSION_DESCRIPTION = "Initial version"
UPDATE_VERSION_DESCRIPTION = "Updated via update"
ROLLBACK_VERSION_DESCRIPTION = "Rolled back failed multi-component change"


class RegistrationOptions(BaseModel):
    """
    Per-call overrides for register().

    ``None`` means "use the registry config".
    """

    create_initial_version: Optional[bool] = None
    update_relationships: Optional[bool] = None

    model_config = {"extra": "forbid"}


class ComponentRegistry:
    """
    Main entry point for ComponentDB.

    The registry applies proposed source changes to live components safely:
    every accepted change is versioned, every rejection is reported rather
    than raised, and multi-component changes roll back as a unit.

    Plugins observe through events (subscribe) and take part through
    lifecycle hooks (register_lifecycle_hook), whose ``before_*`` callbacks
    can veto an operation.

    Lifecycle:
        Construct one registry at application start and pass it by
        reference; call close() (or use it as a context manager) at
        shutdown. There is no module-level instance.

    Concurrency:
        Operations may suspend while awaiting the executor, but callers are
        expected to serialize calls per component ID. Two overlapping
        multi-component changes on the same components are last-writer-wins.
    """

    def __init__(
        self,
        validator: Optional[Validator] = None,
        executor: Optional[CodeExecutor] = None,
        permissions: Optional[Permissions] = None,
        config: Optional[RegistryConfig] = None,
        store: Optional[ComponentStore] = None,
    ):
        """
        Initialize a registry.

        Args:
            validator: Validator collaborator (default: RegistryValidator)
            executor: Code-executor collaborator (default: PassthroughExecutor)
            permissions: Permissions forwarded to the validator
                (default: the config's permissions)
            config: Registry settings (default: RegistryConfig())
            store: Component store (default: InMemoryComponentStore)
        """
        self._config = config if config is not None else RegistryConfig()
        self._permissions = permissions if permissions is not None else self._config.permissions

        self._store = store or InMemoryComponentStore()
        self._versions = VersionManager(self._store)
        self._graph = RelationshipGraph()
        self._events = EventBus()
        self._hooks = HookRegistry()

        self._validator = validator or RegistryValidator(self._permissions)
        self._executor = executor or PassthroughExecutor()

        self._closed = False

    @property
    def config(self) -> RegistryConfig:
        """Get the registry settings."""
        return self._config

    @property
    def events(self) -> EventBus:
        """Get the event bus."""
        return self._events

    @property
    def closed(self) -> bool:
        """Check if close() has been called."""
        return self._closed

    def close(self) -> None:
        """Release subscribers and hooks. Mutating operations fail afterwards."""
        if self._closed:
            return
        self._events.clear()
        self._hooks.clear()
        self._closed = True
        logger.info("Component registry closed")

    def __enter__(self) -> ComponentRegistry:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RegistryError("Component registry is closed")

    # =========================================================================
    # Permissions
    # =========================================================================

    def set_permissions(self, permissions: Union[Permissions, dict[str, Any]]) -> Permissions:
        """
        Replace or partially override the permissions.

        Args:
            permissions: A full Permissions object, or a mapping of flags to override

        Returns:
            The effective permissions
        """
        if isinstance(permissions, Permissions):
            self._permissions = permissions
        else:
            self._permissions = self._permissions.merge(permissions)

        if isinstance(self._validator, RegistryValidator):
            self._validator.permissions = self._permissions
        return self._permissions

    def get_permissions(self) -> Permissions:
        """Get the current permissions."""
        return self._permissions

    # =========================================================================
    # Registration
    # =========================================================================

    def register(
        self,
        record: ComponentRecord,
        options: Optional[RegistrationOptions] = None,
    ) -> ComponentRecord:
        """
        Register a component.

        If the ID is already registered, the call becomes an update() with
        the record's fields; nothing is duplicated.

        Otherwise the record is stored, wired into the relationship graph
        (a parent is inferred from ``path``, dependencies from
        ``declared_dependencies`` by name), and an initial version is
        created when it has source code. ``registered`` is emitted last.

        Args:
            record: Component to register
            options: Per-call overrides of the config

        Returns:
            The stored component

        Raises:
            ValidationFailedError: If the validator rejects the record
            OperationCancelledError: If a before-hook vetoes the registration
        """
        self._ensure_open()
        options = options or RegistrationOptions()
        create_initial_version = (
            self._config.create_initial_version
            if options.create_initial_version is None
            else options.create_initial_version
        )
        update_relationships = (
            self._config.update_relationships
            if options.update_relationships is None
            else options.update_relationships
        )

        verdict = self._check_component(record)
        if not verdict.is_valid:
            raise ValidationFailedError(record.id, verdict.error)

        if self._store.has(record.id):
            return self._update(
                record.id,
                ComponentUpdate.from_record(record),
                infer_relationships=update_relationships,
                merge_relationships=record if update_relationships else None,
            )

        versioned = create_initial_version and bool(record.source_code)
        self._run_before(LifecycleHook.BEFORE_REGISTER, record.model_copy(deep=True))
        if versioned:
            self._run_before(
                LifecycleHook.BEFORE_VERSION_CREATE,
                record.model_copy(deep=True),
                source_code=record.source_code,
                description=INITIAL_VERSION_DESCRIPTION,
                author=None,
            )

        stored = self._store.store(record)
        self._graph.add_component(
            record if update_relationships else record.model_copy(update={"relationships": None})
        )

        if update_relationships:
            self._infer_parent(stored)
            self._infer_dependencies(stored)

        if versioned:
            self._record_version(stored.id, stored.source_code, INITIAL_VERSION_DESCRIPTION)

        component = self.get_component(stored.id)
        self._hooks.run_after(LifecycleHook.AFTER_REGISTER, component)

        logger.info(f"Registered component: {stored.id} ({stored.name})")
        self._events.emit(RegistryEventType.REGISTERED, component_id=stored.id)
        return self.get_component(stored.id)

    def _check_component(self, record: ComponentRecord) -> ValidationResult:
        """Ask the validator about a record, with a reason where it can give one."""
        if isinstance(self._validator, RegistryValidator):
            return self._validator.check_component(record)
        if self._validator.validate_component(record):
            return ValidationResult.valid()
        return ValidationResult(is_valid=False)

    def _infer_parent(self, record: ComponentRecord) -> None:
        """Link the first registered component whose path is this one's parent path."""
        if len(record.path) <= 1:
            return

        parent_path = record.parent_path
        for component_id, other in self._store.get_all().items():
            if component_id != record.id and other.path == parent_path:
                self._graph.set_parent_child(component_id, record.id)
                return

    def _infer_dependencies(self, record: ComponentRecord) -> None:
        """Link every registered component whose name is a declared dependency."""
        if not record.declared_dependencies:
            return

        wanted = set(record.declared_dependencies)
        for component_id, other in self._store.get_all().items():
            if component_id != record.id and other.name in wanted:
                self._graph.add_dependency(record.id, component_id)

    def unregister(self, component_id: str) -> bool:
        """
        Remove a component, its relationships and its history.

        Unknown IDs are ignored, and a ``before_unregister`` hook returning
        False keeps the component.

        Returns:
            True if the component was removed
        """
        self._ensure_open()
        component = self.get_component(component_id)
        if component is None:
            return False

        if not self._hooks.run_before(LifecycleHook.BEFORE_UNREGISTER, component):
            logger.info(f"Unregistration of {component_id} cancelled by a lifecycle hook")
            return False

        self._graph.remove_component(component_id)
        self._store.remove(component_id)
        self._versions.clear_history(component_id)

        logger.info(f"Unregistered component: {component_id}")
        self._events.emit(RegistryEventType.UNREGISTERED, component_id=component_id)
        return True

    def update(self, component_id: str, updates: UpdateLike) -> ComponentRecord:
        """
        Merge a partial update into a component.

        A change of ``source_code`` creates a new version as a side effect.
        A change of ``path`` or ``declared_dependencies`` re-runs relationship
        inference (when the config enables it): the component is moved under
        the parent at its new path, and newly declared dependencies are
        linked. Existing dependency edges are kept.

        Args:
            component_id: Component to update
            updates: ComponentUpdate, or a mapping of the fields to change

        Returns:
            The updated component

        Raises:
            ComponentNotFoundError: If the component is unknown
            ValueError: If the update tries to set registry-maintained fields
            OperationCancelledError: If a before-hook vetoes the update
        """
        return self._update(
            component_id,
            updates,
            infer_relationships=self._config.update_relationships,
        )

    def _update(
        self,
        component_id: str,
        updates: UpdateLike,
        infer_relationships: bool,
        merge_relationships: Optional[ComponentRecord] = None,
    ) -> ComponentRecord:
        self._ensure_open()
        current = self.get_component(component_id)
        if current is None:
            raise ComponentNotFoundError(component_id)

        update = updates if isinstance(updates, ComponentUpdate) else ComponentUpdate(**updates)
        if update.touches("versions") or update.touches("relationships"):
            raise ValueError("versions and relationships are maintained by the registry")

        changes = update.changes()
        versioned = (
            update.touches("source_code")
            and update.source_code is not None
            and update.source_code != current.source_code
        )

        self._run_before(LifecycleHook.BEFORE_UPDATE, current, changes=changes)
        if versioned:
            self._run_before(
                LifecycleHook.BEFORE_VERSION_CREATE,
                current,
                source_code=update.source_code,
                description=UPDATE_VERSION_DESCRIPTION,
                author=None,
            )

        if merge_relationships is not None and merge_relationships.relationships is not None:
            self._graph.add_component(merge_relationships)

        updated = self._store.update(component_id, update)

        if versioned:
            self._record_version(component_id, update.source_code, UPDATE_VERSION_DESCRIPTION)

        if infer_relationships:
            if update.touches("path") and updated.path != current.path:
                self._graph.clear_parent(component_id)
                self._infer_parent(updated)
            if (
                update.touches("declared_dependencies")
                and updated.declared_dependencies != current.declared_dependencies
            ):
                self._infer_dependencies(updated)

        component = self.get_component(component_id)
        self._hooks.run_after(LifecycleHook.AFTER_UPDATE, component, changes=changes)

        self._events.emit(
            RegistryEventType.UPDATED,
            component_id=component_id,
            fields=sorted(changes),
        )
        return self.get_component(component_id)

    def get_component(self, component_id: str) -> Optional[ComponentRecord]:
        """
        Get a component, with its current relationships filled in.

        Returns:
            The component or None if not found
        """
        record = self._store.get(component_id)
        if record is None:
            return None
        record.relationships = self._graph.get_relationships(component_id) or RelationshipRecord()
        return record

    def get_all_components(self) -> dict[str, ComponentRecord]:
        """Get every component, keyed by ID."""
        return {
            component_id: self.get_component(component_id)
            for component_id in self._store.get_all()
        }

    def has_component(self, component_id: str) -> bool:
        """Check if a component is registered."""
        return self._store.has(component_id)

    # =========================================================================
    # Tags
    # =========================================================================

    def add_component_tag(self, component_id: str, tag: str) -> bool:
        """
        Tag a component. Tagging twice is a no-op.

        Returns:
            False if the component is unknown
        """
        self._ensure_open()
        component = self._store.get(component_id)
        if component is None:
            return False
        if tag not in component.tags:
            self.update(component_id, ComponentUpdate(tags=component.tags + [tag]))
        return True

    def remove_component_tag(self, component_id: str, tag: str) -> bool:
        """
        Remove a tag from a component.

        Returns:
            True if the component had the tag
        """
        self._ensure_open()
        component = self._store.get(component_id)
        if component is None or tag not in component.tags:
            return False
        self.update(component_id, ComponentUpdate(tags=[t for t in component.tags if t != tag]))
        return True

    def find_components_by_tags(self, tags: Iterable[str], match_all: bool = True) -> list[ComponentRecord]:
        """
        Find components by tag, in registration order.

        Args:
            tags: Tags to look for
            match_all: Require every tag (True) or any of them (False)
        """
        wanted = set(tags)
        matches = []
        for component_id, record in self._store.get_all().items():
            have = set(record.tags)
            if (wanted <= have) if match_all else (wanted & have):
                matches.append(self.get_component(component_id))
        return matches

    # =========================================================================
    # Versions
    # =========================================================================

    def create_version(
        self,
        component_id: str,
        source_code: str,
        description: str,
        author: Optional[str] = None,
    ) -> VersionRecord:
        """
        Record a new version and make it the current source.

        Raises:
            ComponentNotFoundError: If the component is unknown
            OperationCancelledError: If a before-hook vetoes the version
        """
        self._ensure_open()
        component = self.get_component(component_id)
        if component is None:
            raise ComponentNotFoundError(component_id)

        self._run_before(
            LifecycleHook.BEFORE_VERSION_CREATE,
            component,
            source_code=source_code,
            description=description,
            author=author,
        )
        return self._record_version(component_id, source_code, description, author=author)

    def _record_version(
        self,
        component_id: str,
        source_code: str,
        description: str,
        author: Optional[str] = None,
    ) -> VersionRecord:
        """Create a version whose before-hooks have already passed."""
        version = self._versions.create_version(component_id, source_code, description, author=author)
        self._hooks.run_after(
            LifecycleHook.AFTER_VERSION_CREATE,
            self.get_component(component_id),
            version=version,
        )
        self._events.emit(
            RegistryEventType.VERSION_CREATED,
            component_id=component_id,
            version_id=version.id,
        )
        return version

    def get_version_history(self, component_id: str) -> list[VersionRecord]:
        """Get a component's versions, newest first (empty if unknown)."""
        return self._versions.get_history(component_id)

    def revert_to_version(self, component_id: str, version_id: str) -> bool:
        """
        Restore a component to an earlier version.

        The revert is recorded as a new version.

        Returns:
            True on success, False if the component or version is unknown
        """
        self._ensure_open()
        if not self._versions.revert(component_id, version_id):
            return False

        latest = self._versions.get_latest(component_id)
        self._events.emit(
            RegistryEventType.VERSION_REVERTED,
            component_id=component_id,
            version_id=version_id,
            new_version_id=latest.id if latest else None,
        )
        return True

    def compare_versions(
        self,
        component_id: str,
        from_version_id: str,
        to_version_id: str,
    ) -> Optional[VersionDiff]:
        """Compare two versions of a component (None if either is unknown)."""
        return self._versions.compare_versions(component_id, from_version_id, to_version_id)

    # =========================================================================
    # Code changes
    # =========================================================================

    async def execute_code_change(self, request: CodeChangeRequest) -> CodeChangeResult:
        """
        Apply a proposed source change to one component.

        Steps, each of which can short-circuit the rest:
        1. Look up the component
        2. Validate the new source against the current one and the permissions
        3. Let the executor materialize the change
        4. Version the executor's final source and make it current

        Nothing is mutated unless step 4 is reached. This method never
        raises: every failure, including unexpected exceptions and vetoes
        from lifecycle hooks, comes back as a failed CodeChangeResult.

        Args:
            request: The proposed change

        Returns:
            CodeChangeResult
        """
        component_id = request.component_id
        try:
            self._ensure_open()

            component = self.get_component(component_id)
            if component is None:
                return CodeChangeResult.failure(component_id, f"Component with ID {component_id} not found")

            validation = self._validator.validate_code_change(
                request.source_code,
                component.source_code,
                self._permissions,
            )
            if not validation.is_valid:
                error = validation.error or "Code validation failed"
                logger.warning(f"Code change for {component_id} rejected by validator: {error}")
                self._events.emit(RegistryEventType.CODE_CHANGE_FAILED, component_id=component_id, error=error)
                return CodeChangeResult.failure(component_id, error)

            self._run_before(LifecycleHook.BEFORE_CODE_CHANGE, component, request=request)

            executed = await self._executor.execute_code_change(request)
            if not executed.success:
                error = executed.error or "Code execution failed"
                logger.warning(f"Code change for {component_id} rejected by executor: {error}")
                self._events.emit(RegistryEventType.CODE_CHANGE_FAILED, component_id=component_id, error=error)
                return CodeChangeResult.failure(component_id, error)

            new_source = (
                executed.new_source_code
                if executed.new_source_code is not None
                else request.source_code
            )
            version = self.create_version(component_id, new_source, request.description or "Code updated")

            self._hooks.run_after(
                LifecycleHook.AFTER_CODE_CHANGE,
                self.get_component(component_id),
                request=request,
                version=version,
            )

            logger.info(f"Applied code change to {component_id} (version {version.id})")
            self._events.emit(
                RegistryEventType.CODE_CHANGE_APPLIED,
                component_id=component_id,
                version_id=version.id,
                description=request.description,
            )
            return CodeChangeResult.ok(component_id, new_source, diff=executed.diff)

        except OperationCancelledError as e:
            self._events.emit(RegistryEventType.CODE_CHANGE_FAILED, component_id=component_id, error=str(e))
            return CodeChangeResult.failure(component_id, str(e))

        except Exception as e:
            logger.exception(f"Code change for {component_id} raised")
            self._events.emit(RegistryEventType.ERROR, component_id=component_id, error=str(e))
            return CodeChangeResult.failure(component_id, str(e) or type(e).__name__)

    async def execute_multi_component_change(
        self,
        request: MultiComponentChangeRequest,
    ) -> MultiComponentChangeResult:
        """
        Apply changes to several components as one logical unit.

        Components are processed sequentially in the given order. The first
        failure stops processing; every change already applied in this batch
        is rolled back to the source the component had before the batch, and
        components never reached are reported as stopped. Rollback is best
        effort: it assumes restoring a source cannot fail.

        This method never raises.

        Args:
            request: The batch of changes

        Returns:
            MultiComponentChangeResult, COMPLETED or ROLLED_BACK
        """
        component_ids = list(dict.fromkeys(request.component_ids))
        batch = ChangeBatch(component_ids)
        previous_sources: dict[str, Optional[str]] = {}

        try:
            self._ensure_open()

            for component_id in component_ids:
                if not self._store.has(component_id):
                    batch.transition(BatchState.ROLLED_BACK)
                    logger.warning(f"Multi-component change aborted: {component_id} not found")
                    return MultiComponentChangeResult(
                        state=batch.state,
                        results={
                            component_id: CodeChangeResult.failure(
                                component_id, f"Component with ID {component_id} not found"
                            )
                        },
                    )

            batch.transition(BatchState.APPLYING)
            failed = False

            for component_id in component_ids:
                source_code = request.changes.get(component_id)
                if source_code is None:
                    batch.skip(component_id, NO_CHANGE_ERROR)
                    continue

                previous_sources[component_id] = self._store.get(component_id).source_code
                batch.transition_item(component_id, ItemState.APPLYING)
                result = await self.execute_code_change(CodeChangeRequest(
                    component_id=component_id,
                    source_code=source_code,
                    description=request.description,
                ))
                batch.record(component_id, result)

                if not result.success:
                    failed = True
                    break

            if not failed:
                batch.transition(BatchState.COMPLETED)
                logger.info(f"Multi-component change completed: {len(batch.applied)} applied")
                return MultiComponentChangeResult.from_batch(batch)

            batch.skip_remaining()
            rolled_back = self._rollback(batch, previous_sources)
            return MultiComponentChangeResult.from_batch(batch, rolled_back)

        except Exception as e:
            logger.exception("Multi-component change raised")
            self._events.emit(RegistryEventType.ERROR, component_ids=component_ids, error=str(e))

            error = str(e) or type(e).__name__
            for component_id in component_ids:
                if component_id not in batch.results:
                    batch.results[component_id] = CodeChangeResult.failure(component_id, error)

            rolled_back = []
            if batch.state == BatchState.APPLYING:
                rolled_back = self._rollback(batch, previous_sources)
            elif batch.state == BatchState.PENDING:
                batch.transition(BatchState.ROLLED_BACK)
            return MultiComponentChangeResult.from_batch(batch, rolled_back)

    def _rollback(self, batch: ChangeBatch, previous_sources: dict[str, Optional[str]]) -> list[str]:
        """
        Restore every applied component in a batch to its pre-batch source.

        When the version just below the batch's holds that source, it is
        reverted to; otherwise the source is recorded as a new version.
        Either way the rollback is itself a version, so the head of the
        history matches the current source. Lifecycle hooks do not run.

        Returns:
            IDs that were rolled back
        """
        batch.transition(BatchState.ROLLING_BACK)
        rolled_back: list[str] = []

        for component_id in batch.applied:
            previous = previous_sources.get(component_id)
            try:
                history = self._versions.get_history(component_id)
                prior = history[1] if len(history) > 1 else None

                if prior is not None and prior.source_code == previous:
                    restored = self._versions.revert(component_id, prior.id)
                    if restored:
                        latest = self._versions.get_latest(component_id)
                        self._events.emit(
                            RegistryEventType.VERSION_REVERTED,
                            component_id=component_id,
                            version_id=prior.id,
                            new_version_id=latest.id if latest else None,
                            rollback=True,
                        )
                elif previous is not None:
                    version = self._versions.create_version(
                        component_id, previous, ROLLBACK_VERSION_DESCRIPTION
                    )
                    self._events.emit(
                        RegistryEventType.VERSION_CREATED,
                        component_id=component_id,
                        version_id=version.id,
                        rollback=True,
                    )
                    restored = True
                else:
                    # No source before the batch: nothing to version
                    self._store.update(component_id, ComponentUpdate(source_code=None))
                    restored = True
            except Exception:
                logger.exception(f"Rollback of {component_id} raised")
                restored = False

            if restored:
                batch.transition_item(component_id, ItemState.ROLLED_BACK)
                rolled_back.append(component_id)
            else:
                logger.error(
                    f"Rollback of {component_id} failed; stored state may not match the batch result"
                )

        batch.transition(BatchState.ROLLED_BACK)
        logger.warning(f"Multi-component change rolled back: {rolled_back}")
        return rolled_back

    # =========================================================================
    # Relationships
    # =========================================================================

    def set_parent_child(self, parent_id: str, child_id: str) -> None:
        """
        Make one component the child of another.

        Raises:
            ComponentNotFoundError: If either side is unknown
        """
        self._ensure_open()
        self._graph.set_parent_child(parent_id, child_id)

    def add_dependency(self, dependent_id: str, dependency_id: str) -> None:
        """
        Record that one component depends on another.

        Raises:
            ComponentNotFoundError: If either side is unknown
        """
        self._ensure_open()
        self._graph.add_dependency(dependent_id, dependency_id)

    def track_state_usage(self, component_id: str, state_key: str) -> None:
        """
        Record that a component reads or writes a shared state key.

        Raises:
            ComponentNotFoundError: If the component is unknown
        """
        self._ensure_open()
        self._graph.track_state_usage(component_id, state_key)

    def get_component_relationships(self, component_id: str) -> Optional[RelationshipRecord]:
        """Get a component's relationships, or None if unknown."""
        return self._graph.get_relationships(component_id)

    def get_affected_components(self, component_ids: Union[str, Iterable[str]]) -> list[str]:
        """Get the blast radius of changing the given components."""
        return self._graph.get_affected_components(component_ids)

    def get_related_state_keys(self, component_id: str) -> list[str]:
        """Get the state keys in play for a change to a component."""
        return self._graph.get_related_state_keys(component_id)

    def visualize_component_graph(self) -> GraphVisualization:
        """Get a node/edge projection of the relationship graph, labelled by component name."""
        names = {component_id: record.name for component_id, record in self._store.get_all().items()}
        return self._graph.visualize(names)

    def find_path(self, source_id: str, target_id: str) -> list[str]:
        """Shortest relationship path between two components ([] if none)."""
        return self._graph.find_path(source_id, target_id)

    def detect_dependency_cycles(self) -> list[list[str]]:
        """Cycles in the dependency relation."""
        return self._graph.detect_cycles()

    def dependency_order(self) -> list[str]:
        """Components with dependencies first. Raises ValueError on cycles."""
        return self._graph.dependency_order()

    # =========================================================================
    # Lifecycle hooks
    # =========================================================================

    def register_lifecycle_hook(self, hook: LifecycleHook, callback: HookCallback) -> None:
        """
        Run a callback at a point in every component's lifecycle.

        The callback receives the component and a dict of details. At a
        ``before_*`` hook, returning False (or raising) cancels the
        operation: register, update and create_version raise
        OperationCancelledError, unregister returns False, and a code
        change is reported as failed.
        """
        self._hooks.register(hook, callback)

    def unregister_lifecycle_hook(self, hook: LifecycleHook, callback: HookCallback) -> bool:
        """Remove a lifecycle callback."""
        return self._hooks.unregister(hook, callback)

    def _run_before(self, hook: LifecycleHook, component: ComponentRecord, **data: Any) -> None:
        if not self._hooks.run_before(hook, component, **data):
            raise OperationCancelledError(component.id, hook.value)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, event_type: RegistryEventType, callback: EventCallback) -> Subscription:
        """Subscribe to one kind of registry event."""
        return self._events.subscribe(event_type, callback)

    def subscribe_all(self, callback: EventCallback) -> Subscription:
        """Subscribe to every registry event."""
        return self._events.subscribe_all(callback)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription."""
        return self._events.unsubscribe(subscription_id)
