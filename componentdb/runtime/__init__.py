"""
Runtime layer for ComponentDB.

Provides the pieces that run alongside the registry:
- EventBus: Typed subscriptions to registry changes
- ChangeBatch: State machine for multi-component changes
- HookRegistry: Lifecycle hooks that can veto operations
"""

from componentdb.runtime.events import EventBus, RegistryEvent, RegistryEventType, Subscription
from componentdb.runtime.transaction import (
    BatchState,
    ChangeBatch,
    ItemState,
    MultiComponentChangeResult,
    TransitionError,
)
from componentdb.runtime.hooks import HookCallback, HookRegistry, LifecycleHook

__all__ = [
    "EventBus",
    "RegistryEvent",
    "RegistryEventType",
    "Subscription",
    "BatchState",
    "ItemState",
    "ChangeBatch",
    "MultiComponentChangeResult",
    "TransitionError",
    "HookRegistry",
    "HookCallback",
    "LifecycleHook",
]
