"""Context definitions, live instances, rendering and mutation.

Provides the registry of context types, the keyed instance store with
single-flight creation, the render pipeline producing model-facing text, the
mutation surface used by action handlers and the persistence boundary.
"""

from ctxforge.contexts.errors import (
    ContextBusyError,
    ContextError,
    ContextNotFoundError,
    DuplicateTypeError,
    FieldError,
    KeyDerivationError,
    MemoryShapeError,
    PersistenceError,
    RenderMutationError,
    UnknownTypeError,
    ValidationError,
)
from ctxforge.contexts.keys import derive_key
from ctxforge.contexts.models import (
    ContextArgs,
    ContextDefinition,
    ContextInstance,
    ContextInstanceKey,
    RenderedView,
    RenderMetadata,
)
from ctxforge.contexts.mutation import ActionContext, MutationSurface
from ctxforge.contexts.persistence import InMemoryPersistenceAdapter, PersistenceAdapter
from ctxforge.contexts.registry import (
    ContextRegistry,
    define_context,
    get_default_registry,
    register_context,
)
from ctxforge.contexts.render import RenderPipeline, format_view
from ctxforge.contexts.runtime import ContextRuntime
from ctxforge.contexts.store import ContextInstanceStore
from ctxforge.contexts.turn import ContextTurn
from ctxforge.contexts.validation import validate_arguments

__all__ = [
    "ActionContext",
    "ContextArgs",
    "ContextBusyError",
    "ContextDefinition",
    "ContextError",
    "ContextInstance",
    "ContextInstanceKey",
    "ContextInstanceStore",
    "ContextNotFoundError",
    "ContextRegistry",
    "ContextRuntime",
    "ContextTurn",
    "DuplicateTypeError",
    "FieldError",
    "InMemoryPersistenceAdapter",
    "KeyDerivationError",
    "MemoryShapeError",
    "MutationSurface",
    "PersistenceAdapter",
    "PersistenceError",
    "RenderMetadata",
    "RenderMutationError",
    "RenderPipeline",
    "RenderedView",
    "UnknownTypeError",
    "ValidationError",
    "define_context",
    "derive_key",
    "format_view",
    "get_default_registry",
    "register_context",
    "validate_arguments",
]
