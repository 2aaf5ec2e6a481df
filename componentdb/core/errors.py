"""
Errors raised by the ComponentDB core.

Expected outcomes (unknown component, rejected change) are reported as
result objects by the registry. These exceptions are for contract
violations against the lower layers, where the caller should have checked
existence first.
"""

from typing import Optional


class RegistryError(Exception):
    """Base error for the component registry core."""
    pass


class ComponentNotFoundError(RegistryError):
    """
    Raised when an operation references an unknown component.

    Attributes:
        component_id: The ID that could not be resolved
    """

    def __init__(self, component_id: str, message: Optional[str] = None):
        super().__init__(message or f"Component with ID {component_id} not found")
        self.component_id = component_id


class ValidationFailedError(RegistryError):
    """
    Raised when the validator rejects a component at registration time.

    Attributes:
        component_id: The rejected component
        reason: Validator-supplied reason, if any
    """

    def __init__(self, component_id: str, reason: Optional[str] = None):
        super().__init__(
            f"Component {component_id} failed validation"
            + (f": {reason}" if reason else "")
        )
        self.component_id = component_id
        self.reason = reason


class OperationCancelledError(RegistryError):
    """
    Raised when a before-hook vetoes a registry operation.

    Attributes:
        component_id: The component the operation targeted
        hook: Value of the hook that cancelled it
    """

    def __init__(self, component_id: str, hook: str):
        super().__init__(f"Operation on component {component_id} cancelled by {hook} hook")
        self.component_id = component_id
        self.hook = hook
