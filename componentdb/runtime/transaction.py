"""
Multi-component change state machine.

Pure bookkeeping - no I/O, no awaiting. Tracks the lifecycle of a batch
of component changes and of each item in it, rejecting illegal moves.

State Machine (batch):
    PENDING → APPLYING → COMPLETED
                  │
                  │ first item FAILED
                  ▼
            ROLLING_BACK → ROLLED_BACK

State Machine (item):
    PENDING → APPLYING → APPLIED → ROLLED_BACK
       │          │
       │          └──→ FAILED
       └──→ SKIPPED
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from componentdb.core.models import CodeChangeResult


class BatchState(str, Enum):
    """Lifecycle of a multi-component change."""

    PENDING = "pending"
    APPLYING = "applying"
    COMPLETED = "completed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"


class ItemState(str, Enum):
    """Lifecycle of one component inside a batch."""

    PENDING = "pending"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"
    ROLLED_BACK = "rolled_back"


class TransitionError(Exception):
    """
    Error raised when an invalid state transition is attempted.

    Attributes:
        from_state: Current state
        to_state: Attempted target state
    """

    def __init__(self, from_state: Enum, to_state: Enum, message: Optional[str] = None):
        super().__init__(message or f"Invalid transition: {from_state.value} → {to_state.value}")
        self.from_state = from_state
        self.to_state = to_state


BATCH_TRANSITIONS: Dict[BatchState, Set[BatchState]] = {
    BatchState.PENDING: {
        BatchState.APPLYING,
        BatchState.ROLLED_BACK,  # pre-check failed, nothing applied
    },
    BatchState.APPLYING: {
        BatchState.COMPLETED,
        BatchState.ROLLING_BACK,
    },
    BatchState.ROLLING_BACK: {
        BatchState.ROLLED_BACK,
    },
    # Terminal states have no outgoing transitions
    BatchState.COMPLETED: set(),
    BatchState.ROLLED_BACK: set(),
}

ITEM_TRANSITIONS: Dict[ItemState, Set[ItemState]] = {
    ItemState.PENDING: {
        ItemState.APPLYING,
        ItemState.SKIPPED,
    },
    ItemState.APPLYING: {
        ItemState.APPLIED,
        ItemState.FAILED,
    },
    ItemState.APPLIED: {
        ItemState.ROLLED_BACK,
    },
    ItemState.FAILED: set(),
    ItemState.SKIPPED: set(),
    ItemState.ROLLED_BACK: set(),
}

TERMINAL_BATCH_STATES = {BatchState.COMPLETED, BatchState.ROLLED_BACK}

STOPPED_ERROR = "Processing stopped due to earlier error"
NO_CHANGE_ERROR = "No change provided"


@dataclass
class ChangeBatch:
    """
    Bookkeeping for one multi-component change.

    Attributes:
        component_ids: Components in processing order
        state: Current batch state
        items: Per-component state
        results: Per-component results, filled as items are processed
        applied: Components whose change was applied, in application order
    """

    component_ids: List[str]
    state: BatchState = BatchState.PENDING
    items: Dict[str, ItemState] = field(default_factory=dict)
    results: Dict[str, CodeChangeResult] = field(default_factory=dict)
    applied: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        for component_id in self.component_ids:
            self.items.setdefault(component_id, ItemState.PENDING)

    def transition(self, new_state: BatchState) -> None:
        """
        Move the batch to a new state.

        Raises:
            TransitionError: If the move is not allowed
        """
        if new_state not in BATCH_TRANSITIONS[self.state]:
            raise TransitionError(self.state, new_state)
        self.state = new_state

    def transition_item(self, component_id: str, new_state: ItemState) -> None:
        """
        Move one item to a new state.

        Raises:
            TransitionError: If the move is not allowed
        """
        current = self.items[component_id]
        if new_state not in ITEM_TRANSITIONS[current]:
            raise TransitionError(current, new_state)
        self.items[component_id] = new_state

    def is_terminal(self) -> bool:
        """Check if the batch has finished."""
        return self.state in TERMINAL_BATCH_STATES

    def record(self, component_id: str, result: CodeChangeResult) -> None:
        """Store an item's result and move it to APPLIED or FAILED."""
        self.results[component_id] = result
        if result.success:
            self.transition_item(component_id, ItemState.APPLIED)
            self.applied.append(component_id)
        else:
            self.transition_item(component_id, ItemState.FAILED)

    def skip(self, component_id: str, error: str) -> None:
        """Mark a pending item as never processed."""
        self.transition_item(component_id, ItemState.SKIPPED)
        self.results[component_id] = CodeChangeResult.failure(component_id, error)

    def skip_remaining(self) -> List[str]:
        """
        Mark every still-pending item as stopped.

        Returns:
            IDs that were skipped
        """
        skipped = [cid for cid, state in self.items.items() if state == ItemState.PENDING]
        for component_id in skipped:
            self.skip(component_id, STOPPED_ERROR)
        return skipped


@dataclass
class MultiComponentChangeResult:
    """
    Outcome of a multi-component change.

    The batch is either COMPLETED or ROLLED_BACK; ``results`` holds the
    detailed per-component outcome, including "stopped" entries for
    components never reached.

    Attributes:
        state: Terminal batch state
        results: component_id -> CodeChangeResult
        rolled_back: Components reverted by the rollback
    """

    state: BatchState
    results: Dict[str, CodeChangeResult] = field(default_factory=dict)
    rolled_back: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """Check if every change in the batch was applied."""
        return self.state == BatchState.COMPLETED

    @property
    def failed_components(self) -> List[str]:
        """IDs whose result is a failure, in processing order."""
        return [cid for cid, result in self.results.items() if not result.success]

    def __getitem__(self, component_id: str) -> CodeChangeResult:
        return self.results[component_id]

    def __contains__(self, component_id: object) -> bool:
        return component_id in self.results

    def __len__(self) -> int:
        return len(self.results)

    @classmethod
    def from_batch(cls, batch: ChangeBatch, rolled_back: Optional[List[str]] = None) -> "MultiComponentChangeResult":
        """Build the result for a finished batch."""
        return cls(
            state=batch.state,
            results=dict(batch.results),
            rolled_back=list(rolled_back or []),
        )
