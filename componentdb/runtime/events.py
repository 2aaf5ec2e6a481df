"""
Registry events for ComponentDB.

This module provides a typed observer channel for reacting to registry
changes - UI layers, audit logs and plugins subscribe here instead of
polling the registry.

Design Philosophy:
    Event kinds are an enum, not free-form strings. Each kind has its own
    subscriber list. A failing subscriber is logged and skipped; the
    registry never blocks on, or fails because of, a subscriber.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


class RegistryEventType(str, Enum):
    """Kinds of events emitted by the registry."""

    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    UPDATED = "updated"
    VERSION_CREATED = "version_created"
    VERSION_REVERTED = "version_reverted"
    CODE_CHANGE_APPLIED = "code_change_applied"
    CODE_CHANGE_FAILED = "code_change_failed"
    ERROR = "error"


class RegistryEvent(BaseModel):
    """An event delivered to subscribers."""

    event_type: RegistryEventType = Field(..., description="Kind of event")
    component_id: Optional[str] = Field(default=None, description="Component the event is about")
    component_ids: list[str] = Field(
        default_factory=list,
        description="Components involved, for batch-level events"
    )
    payload: dict[str, Any] = Field(default_factory=dict, description="Version ID, error message, etc.")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this event occurred"
    )

    model_config = {"extra": "forbid"}


# Type alias for subscriber callbacks
EventCallback = Callable[[RegistryEvent], None]


class Subscription(BaseModel):
    """A registered subscriber."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Subscription ID")
    event_type: Optional[RegistryEventType] = Field(
        default=None,
        description="Kind subscribed to (None = every kind)"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When subscription was created"
    )

    # Delivery tracking
    events_delivered: int = Field(default=0, description="Number of events delivered")
    last_event_at: Optional[datetime] = Field(default=None, description="Last event delivery time")

    model_config = {"extra": "forbid"}


class EventBus:
    """
    Per-kind subscriber lists with isolated delivery.

    Usage:
        ```python
        bus = EventBus()

        sub = bus.subscribe(
            RegistryEventType.CODE_CHANGE_APPLIED,
            lambda e: print(f"Applied: {e.component_id}"),
        )
        bus.emit(RegistryEventType.CODE_CHANGE_APPLIED, component_id="card-1")
        bus.unsubscribe(sub.id)
        ```
    """

    def __init__(self):
        """Initialize an empty bus."""
        self._subscriptions: dict[str, Subscription] = {}
        self._callbacks: dict[str, EventCallback] = {}

        # Index: event kind -> subscription IDs, in subscription order
        self._by_type: dict[RegistryEventType, list[str]] = {kind: [] for kind in RegistryEventType}
        self._wildcard: list[str] = []

    def subscribe(self, event_type: RegistryEventType, callback: EventCallback) -> Subscription:
        """
        Subscribe to one kind of event.

        Args:
            event_type: Kind to receive
            callback: Function to call with each RegistryEvent

        Returns:
            Created subscription
        """
        sub = Subscription(event_type=RegistryEventType(event_type))
        self._subscriptions[sub.id] = sub
        self._callbacks[sub.id] = callback
        self._by_type[sub.event_type].append(sub.id)
        return sub

    def subscribe_all(self, callback: EventCallback) -> Subscription:
        """Subscribe to every kind of event."""
        sub = Subscription()
        self._subscriptions[sub.id] = sub
        self._callbacks[sub.id] = callback
        self._wildcard.append(sub.id)
        return sub

    def unsubscribe(self, subscription_id: str) -> bool:
        """
        Remove a subscription.

        Returns:
            True if subscription existed and was removed
        """
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            return False

        self._callbacks.pop(subscription_id, None)
        if sub.event_type is None:
            self._wildcard.remove(subscription_id)
        else:
            self._by_type[sub.event_type].remove(subscription_id)
        return True

    def emit(
        self,
        event_type: RegistryEventType,
        component_id: Optional[str] = None,
        component_ids: Optional[list[str]] = None,
        **payload: Any,
    ) -> int:
        """
        Deliver an event to its subscribers.

        Args:
            event_type: Kind of event
            component_id: Component the event is about
            component_ids: Components involved, for batch-level events
            **payload: Event details

        Returns:
            Number of subscribers that received the event without error
        """
        event = RegistryEvent(
            event_type=event_type,
            component_id=component_id,
            component_ids=component_ids or [],
            payload=payload,
        )

        # Copy so callbacks may (un)subscribe during delivery
        targets = list(self._by_type[event.event_type]) + list(self._wildcard)

        delivered = 0
        for sub_id in targets:
            sub = self._subscriptions.get(sub_id)
            callback = self._callbacks.get(sub_id)
            if sub is None or callback is None:
                continue
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber {sub_id} failed handling {event.event_type.value}")
                continue
            sub.events_delivered += 1
            sub.last_event_at = datetime.now(timezone.utc)
            delivered += 1

        return delivered

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        """Get a subscription by ID."""
        return self._subscriptions.get(subscription_id)

    def subscription_count(self) -> int:
        """Get the number of subscriptions."""
        return len(self._subscriptions)

    def clear(self) -> None:
        """Drop every subscription."""
        self._subscriptions.clear()
        self._callbacks.clear()
        for ids in self._by_type.values():
            ids.clear()
        self._wildcard.clear()
