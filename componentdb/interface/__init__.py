"""
Client interface for ComponentDB.

Provides the ComponentRegistry and the collaborator contracts it depends on.
"""

from componentdb.interface.collaborators import (
    CodeExecutor,
    PassthroughExecutor,
    RegistryValidator,
    ValidationResult,
    Validator,
)
from componentdb.interface.client import ComponentRegistry, RegistrationOptions

__all__ = [
    "ComponentRegistry",
    "RegistrationOptions",
    "Validator",
    "CodeExecutor",
    "ValidationResult",
    "RegistryValidator",
    "PassthroughExecutor",
]
