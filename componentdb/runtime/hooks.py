"""
Lifecycle hooks for ComponentDB.

Hooks let plugins take part in registry operations instead of only
observing them afterwards:

- Before-hooks run ahead of a mutation and may veto it by returning False
- After-hooks run once the mutation is done; their result is ignored

Unlike events, a before-hook is on the critical path. A before-hook that
raises is logged and counts as a veto; an after-hook that raises is logged
and skipped.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from componentdb.core.models import ComponentRecord


logger = logging.getLogger(__name__)


class LifecycleHook(str, Enum):
    """Points in a component's lifecycle where hooks run."""

    BEFORE_REGISTER = "before_register"
    AFTER_REGISTER = "after_register"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_VERSION_CREATE = "before_version_create"
    AFTER_VERSION_CREATE = "after_version_create"
    BEFORE_CODE_CHANGE = "before_code_change"
    AFTER_CODE_CHANGE = "after_code_change"
    BEFORE_UNREGISTER = "before_unregister"


# Called with the component and hook-specific details
HookCallback = Callable[["ComponentRecord", dict[str, Any]], Optional[bool]]


class HookRegistry:
    """
    Ordered callbacks per lifecycle hook.

    Usage:
        ```python
        hooks = HookRegistry()

        def protect_page(component, data):
            return component.id != "page"

        hooks.register(LifecycleHook.BEFORE_UNREGISTER, protect_page)
        hooks.run_before(LifecycleHook.BEFORE_UNREGISTER, page)   # False
        ```
    """

    def __init__(self):
        self._hooks: dict[LifecycleHook, list[HookCallback]] = {hook: [] for hook in LifecycleHook}

    def register(self, hook: LifecycleHook, callback: HookCallback) -> None:
        """Add a callback to a hook. Registering the same callback twice is a no-op."""
        callbacks = self._hooks[LifecycleHook(hook)]
        if callback not in callbacks:
            callbacks.append(callback)

    def unregister(self, hook: LifecycleHook, callback: HookCallback) -> bool:
        """
        Remove a callback from a hook.

        Returns:
            True if the callback was registered
        """
        callbacks = self._hooks[LifecycleHook(hook)]
        if callback not in callbacks:
            return False
        callbacks.remove(callback)
        return True

    def count(self, hook: Optional[LifecycleHook] = None) -> int:
        """Get the number of callbacks on one hook, or on all of them."""
        if hook is not None:
            return len(self._hooks[LifecycleHook(hook)])
        return sum(len(callbacks) for callbacks in self._hooks.values())

    def run_before(self, hook: LifecycleHook, component: ComponentRecord, **data: Any) -> bool:
        """
        Run a before-hook.

        Stops at the first callback that returns False or raises.

        Returns:
            True if the operation may proceed
        """
        for callback in list(self._hooks[hook]):
            try:
                if callback(component, data) is False:
                    logger.info(f"{hook.value} hook cancelled operation on {component.id}")
                    return False
            except Exception:
                logger.exception(f"{hook.value} hook raised for {component.id}")
                return False
        return True

    def run_after(self, hook: LifecycleHook, component: ComponentRecord, **data: Any) -> None:
        """Run an after-hook. Failing callbacks are logged and skipped."""
        for callback in list(self._hooks[hook]):
            try:
                callback(component, data)
            except Exception:
                logger.exception(f"{hook.value} hook raised for {component.id}")

    def clear(self) -> None:
        """Drop every callback."""
        for callbacks in self._hooks.values():
            callbacks.clear()
