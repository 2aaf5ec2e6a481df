"""
Tests for the multi-component change state machine.
"""

import pytest

from componentdb.core.models import CodeChangeResult
from componentdb.runtime.transaction import (
    BATCH_TRANSITIONS,
    NO_CHANGE_ERROR,
    STOPPED_ERROR,
    BatchState,
    ChangeBatch,
    ItemState,
    MultiComponentChangeResult,
    TransitionError,
)


class TestBatchTransitions:
    """Tests for batch-level state moves."""

    def test_happy_path(self):
        """Should go PENDING -> APPLYING -> COMPLETED."""
        batch = ChangeBatch(["a"])
        batch.transition(BatchState.APPLYING)
        batch.transition(BatchState.COMPLETED)

        assert batch.is_terminal()

    def test_rollback_path(self):
        """Should go APPLYING -> ROLLING_BACK -> ROLLED_BACK."""
        batch = ChangeBatch(["a"])
        batch.transition(BatchState.APPLYING)
        batch.transition(BatchState.ROLLING_BACK)
        assert not batch.is_terminal()

        batch.transition(BatchState.ROLLED_BACK)
        assert batch.is_terminal()

    def test_invalid_transition(self):
        """Should reject skipping states."""
        batch = ChangeBatch(["a"])

        with pytest.raises(TransitionError) as exc_info:
            batch.transition(BatchState.COMPLETED)

        assert exc_info.value.from_state == BatchState.PENDING
        assert exc_info.value.to_state == BatchState.COMPLETED

    def test_terminal_states_have_no_exits(self):
        """Should not leave terminal states."""
        assert BATCH_TRANSITIONS[BatchState.COMPLETED] == set()
        assert BATCH_TRANSITIONS[BatchState.ROLLED_BACK] == set()


class TestItemBookkeeping:
    """Tests for per-item state and results."""

    def test_items_start_pending(self):
        """Should start every item as PENDING."""
        batch = ChangeBatch(["a", "b"])
        assert batch.items == {"a": ItemState.PENDING, "b": ItemState.PENDING}

    def test_record_success(self):
        """Should mark an applied item and remember the order."""
        batch = ChangeBatch(["a", "b"])
        for cid in ("b", "a"):
            batch.transition_item(cid, ItemState.APPLYING)
            batch.record(cid, CodeChangeResult.ok(cid, "src"))

        assert batch.items["a"] == ItemState.APPLIED
        assert batch.applied == ["b", "a"]

    def test_record_failure(self):
        """Should mark a failed item without listing it as applied."""
        batch = ChangeBatch(["a"])
        batch.transition_item("a", ItemState.APPLYING)
        batch.record("a", CodeChangeResult.failure("a", "bad"))

        assert batch.items["a"] == ItemState.FAILED
        assert batch.applied == []

    def test_record_requires_applying(self):
        """Should reject recording a result for a pending item."""
        batch = ChangeBatch(["a"])
        with pytest.raises(TransitionError):
            batch.record("a", CodeChangeResult.ok("a", "src"))

    def test_skip_remaining(self):
        """Should mark only pending items as stopped."""
        batch = ChangeBatch(["a", "b", "c"])
        batch.transition_item("a", ItemState.APPLYING)
        batch.record("a", CodeChangeResult.failure("a", "bad"))

        skipped = batch.skip_remaining()

        assert skipped == ["b", "c"]
        assert batch.items["b"] == ItemState.SKIPPED
        assert batch.results["c"].error == STOPPED_ERROR
        assert batch.results["a"].error == "bad"

    def test_rolled_back_item(self):
        """Should only roll back applied items."""
        batch = ChangeBatch(["a", "b"])
        batch.transition_item("a", ItemState.APPLYING)
        batch.record("a", CodeChangeResult.ok("a", "src"))
        batch.transition_item("a", ItemState.ROLLED_BACK)

        batch.skip("b", NO_CHANGE_ERROR)
        with pytest.raises(TransitionError):
            batch.transition_item("b", ItemState.ROLLED_BACK)


class TestMultiComponentChangeResult:
    """Tests for the batch result wrapper."""

    def test_mapping_access(self):
        """Should behave like the per-component result map."""
        batch = ChangeBatch(["a", "b"])
        batch.transition(BatchState.APPLYING)
        batch.transition_item("a", ItemState.APPLYING)
        batch.record("a", CodeChangeResult.ok("a", "src"))
        batch.transition_item("b", ItemState.APPLYING)
        batch.record("b", CodeChangeResult.failure("b", "bad"))
        batch.transition(BatchState.ROLLING_BACK)
        batch.transition(BatchState.ROLLED_BACK)

        result = MultiComponentChangeResult.from_batch(batch, ["a"])

        assert len(result) == 2
        assert "a" in result
        assert result["b"].error == "bad"
        assert result.failed_components == ["b"]
        assert result.rolled_back == ["a"]
        assert not result.succeeded

    def test_succeeded(self):
        """Should succeed only when COMPLETED."""
        assert MultiComponentChangeResult(state=BatchState.COMPLETED).succeeded
        assert not MultiComponentChangeResult(state=BatchState.ROLLED_BACK).succeeded
