"""
Collaborator contracts for the component registry.

The registry decides nothing about source code itself. It asks two
collaborators:

- Validator: Is this component / this change acceptable under the
  current permissions? A pure decision function.
- CodeExecutor: Materialize the change (compile, sandbox, format...) and
  report the final source to persist. Awaited, since real executors do I/O.

Default implementations are provided so the registry works out of the box:

- RegistryValidator: Permission-driven text checks
- PassthroughExecutor: Accepts any non-empty source unchanged
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from componentdb.core.models import CodeChangeRequest, CodeChangeResult, ComponentRecord, Permissions


logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """
    Result of a validation check.

    Attributes:
        is_valid: Whether the change is acceptable
        error: Reason for rejection
    """

    is_valid: bool
    error: Optional[str] = None

    @classmethod
    def valid(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def invalid(cls, error: str) -> "ValidationResult":
        return cls(is_valid=False, error=error)


@runtime_checkable
class Validator(Protocol):
    """Decides whether components and code changes are acceptable."""

    def validate_component(self, record: ComponentRecord) -> bool: ...

    def validate_code_change(
        self,
        new_source: str,
        old_source: Optional[str],
        permissions: Permissions,
    ) -> ValidationResult: ...


@runtime_checkable
class CodeExecutor(Protocol):
    """Materializes a code change and returns the source to persist."""

    async def execute_code_change(self, request: CodeChangeRequest) -> CodeChangeResult: ...


# =============================================================================
# Default validator
# =============================================================================

_COMPONENT_DEFINITION = re.compile(
    r"\bfunction\s+[A-Z]\w*\s*\("
    r"|\bclass\s+[A-Z]\w*"
    r"|\b(?:const|let|var)\s+[A-Z]\w*\s*=\s*(?:async\s*)?(?:function\b|\([^)]*\)\s*=>|\w+\s*=>)"
)
_NETWORK_CALL = re.compile(
    r"\bfetch\s*\(|\bXMLHttpRequest\b|\baxios\b|\bWebSocket\b|[\"'`]https?://",
)
_DATA_ACCESS = re.compile(r"\blocalStorage\b|\bsessionStorage\b|\bindexedDB\b|\bdocument\.cookie\b")
_STYLE_TOKEN = re.compile(r"style|className|css|margin|padding|color|background|font|width|height")
_LOGIC_TOKEN = re.compile(r"\bif\b|\belse\b|\bfor\b|\bwhile\b|\bswitch\b|\bcase\b|\breturn\b|\bfunction\b|=>")

DANGEROUS_PATTERNS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\beval\s*\("), "eval"),
    (re.compile(r"\bnew\s+Function\s*\(|\bFunction\s*\(\s*[\"'`]"), "Function constructor"),
    (re.compile(r"\bdocument\.write(?:ln)?\s*\("), "document.write"),
    (re.compile(r"\.innerHTML\s*="), "innerHTML (potential XSS)"),
    (re.compile(r"\bdangerouslySetInnerHTML\b"), "dangerouslySetInnerHTML (potential XSS)"),
    (re.compile(r"\bwindow\.open\s*\("), "window.open"),
]


def count_component_definitions(source: str) -> int:
    """Count capitalized function/class/arrow definitions in source text."""
    return len(_COMPONENT_DEFINITION.findall(source or ""))


def find_dangerous_code(source: str) -> Optional[str]:
    """Return a label for the first dangerous construct found, or None."""
    for pattern, label in DANGEROUS_PATTERNS:
        if pattern.search(source):
            return label
    return None


class RegistryValidator:
    """
    Permission-driven validator working on source text.

    It does not parse the source; each check is a pattern count or a
    pattern match, compared between the old and new source where the
    permission is about *changing* something.

    Example:
        validator = RegistryValidator()
        result = validator.validate_code_change(new, old, Permissions())
        # → ValidationResult(is_valid=False, error="Network requests are not allowed ...")
    """

    def __init__(self, permissions: Optional[Permissions] = None):
        """
        Initialize the validator.

        Args:
            permissions: Permissions used by validate_component
        """
        self.permissions = permissions or Permissions()

    def validate_component(self, record: ComponentRecord) -> bool:
        """Accept a component if it has an id and its source (if any) is valid."""
        return self.check_component(record).is_valid

    def check_component(self, record: ComponentRecord) -> ValidationResult:
        """Like validate_component, but with the reason for a rejection."""
        if not record.id:
            return ValidationResult.invalid("Component id is empty")
        if record.source_code:
            result = self.validate_code_change(record.source_code, None, self.permissions)
            if not result.is_valid:
                logger.warning(f"Component {record.id} rejected: {result.error}")
                return result
        return ValidationResult.valid()

    def validate_code_change(
        self,
        new_source: str,
        old_source: Optional[str],
        permissions: Permissions,
    ) -> ValidationResult:
        """
        Check a proposed source against the previous one and the permissions.

        Args:
            new_source: Proposed source
            old_source: Current source, or None for a new component
            permissions: Capability flags to enforce

        Returns:
            ValidationResult
        """
        if not new_source:
            return ValidationResult.valid()

        old_source = old_source or ""

        if not permissions.allow_component_creation and old_source:
            if count_component_definitions(new_source) > count_component_definitions(old_source):
                return ValidationResult.invalid(
                    "Component creation is not allowed with current permissions"
                )

        if not permissions.allow_network_requests and _NETWORK_CALL.search(new_source):
            return ValidationResult.invalid(
                "Network requests are not allowed with current permissions"
            )

        if not permissions.allow_data_access and _DATA_ACCESS.search(new_source):
            return ValidationResult.invalid(
                "Data access is not allowed with current permissions"
            )

        if not permissions.allow_style_changes and old_source:
            if len(_STYLE_TOKEN.findall(new_source)) != len(_STYLE_TOKEN.findall(old_source)):
                return ValidationResult.invalid(
                    "Style changes are not allowed with current permissions"
                )

        if not permissions.allow_logic_changes and old_source:
            if len(_LOGIC_TOKEN.findall(new_source)) != len(_LOGIC_TOKEN.findall(old_source)):
                return ValidationResult.invalid(
                    "Logic changes are not allowed with current permissions"
                )

        dangerous = find_dangerous_code(new_source)
        if dangerous:
            return ValidationResult.invalid(f"Potentially dangerous code detected: {dangerous}")

        return ValidationResult.valid()


# =============================================================================
# Default executor
# =============================================================================

SourceTransform = Callable[[str], str]


class PassthroughExecutor:
    """
    Executor that accepts any non-empty source.

    An optional ``transform`` (e.g. a formatter) is applied to the source
    before it is returned as ``new_source_code``; if it raises, the change
    is reported as failed.

    Example:
        executor = PassthroughExecutor(transform=str.strip)
        result = await executor.execute_code_change(request)
        # → CodeChangeResult(success=True, new_source_code="...")
    """

    def __init__(self, transform: Optional[SourceTransform] = None):
        self.transform = transform
        self.execution_count = 0

    async def execute_code_change(self, request: CodeChangeRequest) -> CodeChangeResult:
        """Return the (optionally transformed) source as the result."""
        self.execution_count += 1

        if not request.source_code or not request.source_code.strip():
            return CodeChangeResult.failure(request.component_id, "Source code is empty")

        source = request.source_code
        if self.transform is not None:
            try:
                source = self.transform(source)
            except Exception as e:
                logger.error(f"Source transform failed for {request.component_id}: {e}")
                return CodeChangeResult.failure(request.component_id, f"Transform failed: {e}")

        return CodeChangeResult.ok(request.component_id, source)
