"""Exception hierarchy for context definition, instance and persistence errors.

Every error carries a machine-readable ``error_code`` and optional keyword
context so callers (typically the turn orchestrator) can classify failures
without parsing messages.
"""

from typing import Any, Optional

from pydantic import BaseModel


class FieldError(BaseModel):
    """A single violated field reported by argument validation.

    Attributes:
        field: Dotted location of the field (e.g. "filters.limit")
        message: Human-readable description of the violation
        error_type: Validator error type (e.g. "missing", "string_type")
    """

    field: str
    message: str
    error_type: str

    model_config = {"frozen": True}


class ContextError(Exception):
    """Base exception for all context-related errors.

    Attributes:
        message: Human-readable error description
        error_code: Unique code for programmatic error handling
        context: Additional context information
    """

    error_code: str = "CONTEXT_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize context error with message and optional context.

        Args:
            message: Human-readable error description
            **context: Additional context information (type_id, context_id, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return formatted error message with context."""
        if not self.context:
            return f"[{self.error_code}] {self.message}"

        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{self.error_code}] {self.message} ({context_str})"


class ValidationError(ContextError):
    """Raised when raw arguments do not satisfy a context's argument schema.

    Caller-recoverable: the request can be retried with corrected arguments.
    All violated fields are reported, not just the first one.
    """

    error_code = "CONTEXT_VALIDATION_FAILED"

    def __init__(self, type_id: str, errors: list[FieldError], **context: Any) -> None:
        """Initialize with the context type and every field violation.

        Args:
            type_id: Context type whose schema rejected the arguments
            errors: One entry per violated field
            **context: Additional context information
        """
        fields = ", ".join(error.field for error in errors) or "<root>"
        message = f"Invalid arguments for context '{type_id}': {fields}"
        super().__init__(message, type_id=type_id, **context)
        self.type_id = type_id
        self.errors = errors

    @property
    def fields(self) -> list[str]:
        """Names of every field that failed validation."""
        return [error.field for error in self.errors]


class UnknownTypeError(ContextError):
    """Raised when a context type was never registered."""

    error_code = "CONTEXT_TYPE_UNKNOWN"

    def __init__(self, type_id: str, **context: Any) -> None:
        message = f"Context type '{type_id}' is not registered"
        super().__init__(message, type_id=type_id, **context)
        self.type_id = type_id


class DuplicateTypeError(ContextError):
    """Raised when registering a context type that already exists.

    Registration never silently overwrites an existing definition.
    """

    error_code = "CONTEXT_TYPE_DUPLICATE"

    def __init__(self, type_id: str, **context: Any) -> None:
        message = f"Context type '{type_id}' is already registered"
        super().__init__(message, type_id=type_id, **context)
        self.type_id = type_id


class KeyDerivationError(ContextError):
    """Raised when a definition's key function fails on validated arguments.

    This is a defect in the definition, not a recoverable condition.
    """

    error_code = "CONTEXT_KEY_DERIVATION_FAILED"

    def __init__(self, type_id: str, reason: str, **context: Any) -> None:
        message = f"Key function for context '{type_id}' failed: {reason}"
        super().__init__(message, type_id=type_id, **context)
        self.type_id = type_id
        self.reason = reason


class PersistenceError(ContextError):
    """Raised when loading, saving or deleting persisted memory fails.

    Recoverable by retry or, where policy allows, by treating the load as a
    cache miss. Never swallowed silently.
    """

    error_code = "CONTEXT_PERSISTENCE_FAILED"

    def __init__(
        self, context_id: str, operation: str, reason: Optional[str] = None, **context: Any
    ) -> None:
        message = f"Failed to {operation} memory for context '{context_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, context_id=context_id, operation=operation, **context)
        self.context_id = context_id
        self.operation = operation
        self.reason = reason


class ContextNotFoundError(ContextError):
    """Raised when a live instance is looked up by a key not in the store."""

    error_code = "CONTEXT_NOT_FOUND"

    def __init__(self, context_id: str, **context: Any) -> None:
        message = f"No live context instance '{context_id}'"
        super().__init__(message, context_id=context_id, **context)
        self.context_id = context_id


class ContextBusyError(ContextError):
    """Raised when an operation needs an idle instance but it is mid-mutation."""

    error_code = "CONTEXT_BUSY"

    def __init__(self, context_id: str, operation: str, **context: Any) -> None:
        message = f"Cannot {operation} context '{context_id}' while it is being mutated"
        super().__init__(message, context_id=context_id, operation=operation, **context)
        self.context_id = context_id
        self.operation = operation


class RenderMutationError(ContextError):
    """Raised in strict render mode when a render function changed memory."""

    error_code = "CONTEXT_RENDER_MUTATED_MEMORY"

    def __init__(self, context_id: str, **context: Any) -> None:
        message = f"Render function for context '{context_id}' mutated its memory"
        super().__init__(message, context_id=context_id, **context)
        self.context_id = context_id


class MemoryShapeError(ContextError):
    """Raised when a handler replaces memory with a value of a different type."""

    error_code = "CONTEXT_MEMORY_SHAPE_CHANGED"

    def __init__(self, context_id: str, expected: str, actual: str, **context: Any) -> None:
        message = (
            f"Memory of context '{context_id}' must stay a '{expected}', "
            f"got '{actual}'"
        )
        super().__init__(message, context_id=context_id, **context)
        self.context_id = context_id
        self.expected = expected
        self.actual = actual
