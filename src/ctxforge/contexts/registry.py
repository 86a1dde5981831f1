"""Context definition registry.

This module provides the ContextRegistry class for registering context
definitions and resolving them by type identifier. It includes a global
singleton registry for convenience; components take an explicit registry so
they can be tested in isolation.
"""

import threading
from typing import Any, Optional

from pydantic import BaseModel

from ctxforge.contexts.errors import DuplicateTypeError, UnknownTypeError
from ctxforge.contexts.models import (
    ContextDefinition,
    CreateFn,
    DumpFn,
    KeyFn,
    LoadFn,
    RenderFn,
)
from ctxforge.observability.logging import get_logger

logger = get_logger(__name__)


class ContextRegistry:
    """Process-scoped table of context definitions keyed by type id.

    Populated during agent startup and read-heavy afterwards. Thread safety
    is ensured through a lock for all operations.
    """

    def __init__(self) -> None:
        """Initialize an empty context registry."""
        self._definitions: dict[str, ContextDefinition[Any, Any]] = {}
        self._lock = threading.Lock()

    def register(self, definition: ContextDefinition[Any, Any]) -> ContextDefinition[Any, Any]:
        """Register a context definition.

        Args:
            definition: The definition to register

        Returns:
            The registered definition

        Raises:
            DuplicateTypeError: If the type id is already registered
        """
        with self._lock:
            if definition.type_id in self._definitions:
                raise DuplicateTypeError(definition.type_id)
            self._definitions[definition.type_id] = definition

        logger.debug("context_type_registered", type_id=definition.type_id)
        return definition

    def unregister(self, type_id: str) -> None:
        """Remove a definition from the registry.

        Live instances created from it are not affected.

        Raises:
            UnknownTypeError: If the type id is not registered
        """
        with self._lock:
            if type_id not in self._definitions:
                raise UnknownTypeError(type_id)
            del self._definitions[type_id]

    def lookup(self, type_id: str) -> ContextDefinition[Any, Any]:
        """Resolve a definition by type id.

        Args:
            type_id: Type identifier to resolve

        Returns:
            The registered ContextDefinition

        Raises:
            UnknownTypeError: If the type id is not registered
        """
        with self._lock:
            definition = self._definitions.get(type_id)
        if definition is None:
            raise UnknownTypeError(type_id)
        return definition

    def has_type(self, type_id: str) -> bool:
        with self._lock:
            return type_id in self._definitions

    def list_types(self) -> list[str]:
        """List all registered type ids, sorted."""
        with self._lock:
            return sorted(self._definitions.keys())

    def clear(self) -> None:
        """Remove all definitions from the registry.

        This is primarily useful for testing and cleanup operations.
        """
        with self._lock:
            self._definitions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)


def define_context(
    type_id: str,
    *,
    create: CreateFn,
    render: RenderFn,
    schema: Optional[type[BaseModel]] = None,
    key: Optional[KeyFn] = None,
    description: Optional[str] = None,
    instructions: Optional[str] = None,
    load: Optional[LoadFn] = None,
    memory_model: Optional[type[BaseModel]] = None,
    dump: Optional[DumpFn] = None,
) -> ContextDefinition[Any, Any]:
    """Build a ContextDefinition from keyword arguments.

    Example:
        >>> todo = define_context(
        ...     "todo",
        ...     schema=TodoArgs,
        ...     key=lambda args: args.list_id,
        ...     create=lambda args, seed: {"items": []},
        ...     render=lambda memory, meta: "\\n".join(memory["items"]),
        ... )
    """
    return ContextDefinition(
        type_id=type_id,
        schema=schema,
        key_fn=key,
        create_fn=create,
        render_fn=render,
        description=description,
        instructions=instructions,
        load_fn=load,
        memory_model=memory_model,
        dump_fn=dump,
    )


# Global singleton registry
_default_registry: Optional[ContextRegistry] = None
_registry_lock = threading.Lock()


def get_default_registry() -> ContextRegistry:
    """Get the global singleton context registry.

    Returns:
        The global ContextRegistry instance (creates if needed)
    """
    global _default_registry

    if _default_registry is None:
        with _registry_lock:
            # Double-check locking pattern
            if _default_registry is None:
                _default_registry = ContextRegistry()

    return _default_registry


def register_context(definition: ContextDefinition[Any, Any]) -> ContextDefinition[Any, Any]:
    """Register a definition in the global registry.

    Raises:
        DuplicateTypeError: If the type id is already registered
    """
    return get_default_registry().register(definition)
