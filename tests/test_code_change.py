"""
Tests for ComponentRegistry code changes (single and multi-component).
"""

import pytest
from unittest.mock import AsyncMock

from componentdb import ComponentRegistry, RegistrationOptions
from componentdb.core.models import (
    CodeChangeRequest,
    CodeChangeResult,
    ComponentRecord,
    MultiComponentChangeRequest,
)
from componentdb.interface.collaborators import PassthroughExecutor, ValidationResult
from componentdb.runtime.events import RegistryEventType
from componentdb.runtime.hooks import LifecycleHook
from componentdb.runtime.transaction import NO_CHANGE_ERROR, STOPPED_ERROR, BatchState


def kinds(events):
    """Get the event kinds of recorded events."""
    return [event.event_type for event in events]


def register_all(registry, *component_ids):
    """Register components whose source is '<id>-v0'."""
    for cid in component_ids:
        registry.register(ComponentRecord(id=cid, name=cid, source_code=f"{cid}-v0"))


class TestExecuteCodeChange:
    """Tests for single-component changes."""

    @pytest.mark.asyncio
    async def test_applies_change(self, registry, card, recorded_events):
        """Should version the new source and announce it."""
        registry.register(card)
        recorded_events.clear()

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="v1", description="Bigger title")
        )

        assert result.success
        assert result.new_source_code == "v1"
        assert registry.get_component("card-1").source_code == "v1"

        history = registry.get_version_history("card-1")
        assert len(history) == 2
        assert history[0].description == "Bigger title"

        assert kinds(recorded_events) == [
            RegistryEventType.VERSION_CREATED,
            RegistryEventType.CODE_CHANGE_APPLIED,
        ]
        assert recorded_events[1].payload["version_id"] == history[0].id

    @pytest.mark.asyncio
    async def test_default_description(self, registry, card):
        """Should describe undescribed changes generically."""
        registry.register(card)
        await registry.execute_code_change(CodeChangeRequest(component_id="card-1", source_code="v1"))

        assert registry.get_version_history("card-1")[0].description == "Code updated"

    @pytest.mark.asyncio
    async def test_unknown_component(self, registry, recorded_events):
        """Should report, not raise, an unknown component."""
        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="ghost", source_code="x")
        )

        assert not result.success
        assert result.error == "Component with ID ghost not found"
        assert recorded_events == []

    @pytest.mark.asyncio
    async def test_validator_rejection(self, registry, card, recorded_events):
        """Should report the validator's reason without mutating anything."""
        registry.register(card)
        recorded_events.clear()

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="fetch('/api/track')")
        )

        assert not result.success
        assert "Network requests" in result.error
        assert registry.get_component("card-1").source_code == "v0"
        assert len(registry.get_version_history("card-1")) == 1
        assert kinds(recorded_events) == [RegistryEventType.CODE_CHANGE_FAILED]

    @pytest.mark.asyncio
    async def test_validator_receives_current_source(self, mock_validator, mock_executor, card, open_permissions):
        """Should pass the proposed source, the current source and the permissions."""
        registry = ComponentRegistry(
            validator=mock_validator,
            executor=mock_executor,
            permissions=open_permissions,
        )
        registry.register(card)

        await registry.execute_code_change(CodeChangeRequest(component_id="card-1", source_code="v1"))

        mock_validator.validate_code_change.assert_called_once_with("v1", "v0", open_permissions)
        mock_executor.execute_code_change.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_validator_rejection_without_reason(self, mock_validator, mock_executor, card):
        """Should fall back to a generic reason."""
        mock_validator.validate_code_change.return_value = ValidationResult(is_valid=False)
        registry = ComponentRegistry(validator=mock_validator, executor=mock_executor)
        registry.register(card)

        result = await registry.execute_code_change(CodeChangeRequest(component_id="card-1", source_code="v1"))

        assert result.error == "Code validation failed"
        mock_executor.execute_code_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_executor_rejection(self, registry, card):
        """Should report the executor's reason without mutating anything."""
        registry.register(card)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="   ")
        )

        assert not result.success
        assert result.error == "Source code is empty"
        assert registry.get_component("card-1").source_code == "v0"
        assert len(registry.get_version_history("card-1")) == 1

    @pytest.mark.asyncio
    async def test_executor_output_persisted(self, card):
        """Should persist the executor's final source, not the request's."""
        registry = ComponentRegistry(executor=PassthroughExecutor(transform=str.upper))
        registry.register(card)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="new title")
        )

        assert result.new_source_code == "NEW TITLE"
        assert registry.get_component("card-1").source_code == "NEW TITLE"
        assert registry.get_version_history("card-1")[0].source_code == "NEW TITLE"

    @pytest.mark.asyncio
    async def test_executor_exception(self, mock_validator, card):
        """Should convert an unexpected exception into a reported failure."""
        executor = AsyncMock()
        executor.execute_code_change.side_effect = RuntimeError("sandbox crashed")
        registry = ComponentRegistry(validator=mock_validator, executor=executor)
        registry.register(card)
        errors = []
        registry.subscribe(RegistryEventType.ERROR, errors.append)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="v1")
        )

        assert not result.success
        assert result.error == "sandbox crashed"
        assert registry.get_component("card-1").source_code == "v0"
        assert errors[0].payload["error"] == "sandbox crashed"

    @pytest.mark.asyncio
    async def test_closed_registry(self, card):
        """Should report a closed registry instead of raising."""
        registry = ComponentRegistry()
        registry.register(card)
        registry.close()

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="v1")
        )

        assert not result.success
        assert result.error == "Component registry is closed"


class TestExecuteMultiComponentChange:
    """Tests for atomic multi-component changes."""

    @pytest.mark.asyncio
    async def test_all_succeed(self, registry):
        """Should apply every change and complete."""
        register_all(registry, "a", "b")

        result = await registry.execute_multi_component_change(
            MultiComponentChangeRequest.from_changes({"a": "a-v1", "b": "b-v1"}, "Rename")
        )

        assert result.state == BatchState.COMPLETED
        assert result.succeeded
        assert result["a"].success and result["b"].success
        assert registry.get_component("a").source_code == "a-v1"
        assert registry.get_version_history("b")[0].description == "Rename"

    @pytest.mark.asyncio
    async def test_missing_component_precheck(self, mock_executor):
        """Should touch nothing when a component is unknown."""
        registry = ComponentRegistry(executor=mock_executor)
        register_all(registry, "a")

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "ghost"],
            changes={"a": "a-v1", "ghost": "x"},
        ))

        assert result.state == BatchState.ROLLED_BACK
        assert list(result.results) == ["ghost"]
        assert result["ghost"].error == "Component with ID ghost not found"
        assert registry.get_component("a").source_code == "a-v0"
        mock_executor.execute_code_change.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rollback_completeness(self, registry):
        """Should restore applied components and mark the rest stopped."""
        register_all(registry, "a", "b", "c", "d")

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "b", "c", "d"],
            changes={
                "a": "a-v1",
                "b": "b-v1",
                "c": "fetch('https://tracker')",
                "d": "d-v1",
            },
        ))

        assert result.state == BatchState.ROLLED_BACK
        assert not result.succeeded
        assert result.rolled_back == ["a", "b"]

        assert registry.get_component("a").source_code == "a-v0"
        assert registry.get_component("b").source_code == "b-v0"
        assert registry.get_component("d").source_code == "d-v0"

        assert result["a"].success and result["b"].success
        assert "Network requests" in result["c"].error
        assert result["d"].error == STOPPED_ERROR
        assert result.failed_components == ["c", "d"]

    @pytest.mark.asyncio
    async def test_rollback_is_auditable(self, registry):
        """Should record the rollback as a new version by default."""
        register_all(registry, "a", "b")

        await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "b"],
            changes={"a": "a-v1", "b": "   "},
        ))

        history = registry.get_version_history("a")
        assert [v.source_code for v in history] == ["a-v0", "a-v1", "a-v0"]
        assert history[0].is_revert

    @pytest.mark.asyncio
    async def test_rollback_head_matches_current_source(self, registry):
        """Should leave the newest version equal to the restored source."""
        register_all(registry, "a", "b")

        await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "b"],
            changes={"a": "a-v1", "b": "   "},
        ))

        head = registry.get_version_history("a")[0]
        assert head.source_code == registry.get_component("a").source_code == "a-v0"

    @pytest.mark.asyncio
    async def test_rollback_restores_cleared_source(self, registry):
        """Should restore the pre-batch source even when it was never versioned."""
        register_all(registry, "a", "b")
        registry.update("a", {"source_code": None})

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "b"],
            changes={"a": "a-v1", "b": "   "},
        ))

        assert result.rolled_back == ["a"]
        assert registry.get_component("a").source_code is None

    @pytest.mark.asyncio
    async def test_rollback_versions_unrecorded_source(self, registry, recorded_events):
        """Should record a pre-batch source that no version holds."""
        registry.register(
            ComponentRecord(id="a", name="a", source_code="a-v0"),
            RegistrationOptions(create_initial_version=False),
        )
        register_all(registry, "b")
        recorded_events.clear()

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "b"],
            changes={"a": "a-v1", "b": "   "},
        ))

        history = registry.get_version_history("a")
        assert result.rolled_back == ["a"]
        assert registry.get_component("a").source_code == "a-v0"
        assert [v.source_code for v in history] == ["a-v0", "a-v1"]
        assert history[0].description == "Rolled back failed multi-component change"

        rollback_events = [e for e in recorded_events if e.payload.get("rollback")]
        assert [e.event_type for e in rollback_events] == [RegistryEventType.VERSION_CREATED]
        assert rollback_events[0].payload["version_id"] == history[0].id

    @pytest.mark.asyncio
    async def test_rollback_component_without_prior_version(self, registry):
        """Should restore an empty source when there was no prior version."""
        registry.register(ComponentRecord(id="slot", name="Slot"))
        register_all(registry, "b")

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["slot", "b"],
            changes={"slot": "slot-v1", "b": "   "},
        ))

        assert result.rolled_back == ["slot"]
        assert registry.get_component("slot").source_code is None

    @pytest.mark.asyncio
    async def test_rollback_events(self, registry, recorded_events):
        """Should announce each rollback revert."""
        register_all(registry, "a", "b")
        recorded_events.clear()

        await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "b"],
            changes={"a": "a-v1", "b": "   "},
        ))

        reverted = [e for e in recorded_events if e.event_type == RegistryEventType.VERSION_REVERTED]
        assert [e.component_id for e in reverted] == ["a"]
        assert reverted[0].payload["rollback"] is True

    @pytest.mark.asyncio
    async def test_missing_change_skipped(self, registry):
        """Should skip components without a change and still complete."""
        register_all(registry, "a", "b")

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "b"],
            changes={"b": "b-v1"},
        ))

        assert result.state == BatchState.COMPLETED
        assert result["a"].error == NO_CHANGE_ERROR
        assert registry.get_component("a").source_code == "a-v0"
        assert registry.get_component("b").source_code == "b-v1"

    @pytest.mark.asyncio
    async def test_duplicate_ids_processed_once(self, registry):
        """Should apply each component at most once."""
        register_all(registry, "a")

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["a", "a"],
            changes={"a": "a-v1"},
        ))

        assert result.succeeded
        assert len(registry.get_version_history("a")) == 2

    @pytest.mark.asyncio
    async def test_sequential_order(self, mock_validator):
        """Should process components in the given order and stop at the first failure."""
        calls = []

        async def execute(request):
            calls.append(request.component_id)
            if request.component_id == "b":
                return CodeChangeResult.failure("b", "compile error")
            return CodeChangeResult.ok(request.component_id, request.source_code)

        executor = AsyncMock()
        executor.execute_code_change.side_effect = execute
        registry = ComponentRegistry(validator=mock_validator, executor=executor)
        register_all(registry, "a", "b", "c")

        result = await registry.execute_multi_component_change(MultiComponentChangeRequest(
            component_ids=["c", "b", "a"],
            changes={"a": "a-v1", "b": "b-v1", "c": "c-v1"},
        ))

        assert calls == ["c", "b"]
        assert result["b"].error == "compile error"
        assert result["a"].error == STOPPED_ERROR
        assert result.rolled_back == ["c"]
        assert registry.get_component("c").source_code == "c-v0"


class TestCodeChangeHooks:
    """Tests for lifecycle hooks around code changes."""

    @pytest.mark.asyncio
    async def test_before_code_change_cancels(self, mock_validator, mock_executor, card):
        """Should report a vetoed change without calling the executor."""
        registry = ComponentRegistry(validator=mock_validator, executor=mock_executor)
        registry.register(card)
        registry.register_lifecycle_hook(LifecycleHook.BEFORE_CODE_CHANGE, lambda c, data: False)
        failures = []
        registry.subscribe(RegistryEventType.CODE_CHANGE_FAILED, failures.append)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="v1")
        )

        assert not result.success
        assert "before_code_change" in result.error
        assert registry.get_component("card-1").source_code == "v0"
        mock_executor.execute_code_change.assert_not_awaited()
        assert [e.payload["error"] for e in failures] == [result.error]

    @pytest.mark.asyncio
    async def test_before_version_create_cancels_change(self, registry, card):
        """Should report a change whose version was vetoed, leaving the source alone."""
        registry.register(card)
        registry.register_lifecycle_hook(LifecycleHook.BEFORE_VERSION_CREATE, lambda c, data: False)

        result = await registry.execute_code_change(
            CodeChangeRequest(component_id="card-1", source_code="v1")
        )

        assert not result.success
        assert "before_version_create" in result.error
        assert registry.get_component("card-1").source_code == "v0"
        assert len(registry.get_version_history("card-1")) == 1

    @pytest.mark.asyncio
    async def test_after_code_change_receives_version(self, registry, card):
        """Should hand after-hooks the request and the new version."""
        registry.register(card)
        seen = []
        registry.register_lifecycle_hook(
            LifecycleHook.AFTER_CODE_CHANGE,
            lambda c, data: seen.append((c.source_code, data["request"].source_code, data["version"].id)),
        )

        await registry.execute_code_change(CodeChangeRequest(component_id="card-1", source_code="v1"))

        assert seen == [("v1", "v1", registry.get_version_history("card-1")[0].id)]

    @pytest.mark.asyncio
    async def test_vetoed_change_rolls_back_batch(self, registry):
        """Should roll back a batch when a hook vetoes one of its changes, without running hooks for the rollback."""
        register_all(registry, "a", "b")
        versions_seen = []
        registry.register_lifecycle_hook(
            LifecycleHook.BEFORE_CODE_CHANGE,
            lambda c, data: c.id != "b",
        )
        registry.register_lifecycle_hook(
            LifecycleHook.AFTER_VERSION_CREATE,
            lambda c, data: versions_seen.append(data["version"].source_code),
        )

        result = await registry.execute_multi_component_change(
            MultiComponentChangeRequest.from_changes({"a": "a-v1", "b": "b-v1"})
        )

        assert result.state == BatchState.ROLLED_BACK
        assert result.rolled_back == ["a"]
        assert registry.get_component("a").source_code == "a-v0"
        assert versions_seen == ["a-v1"]
