"""ctxforge - state-management core for LLM agent runtimes.

Named, independently keyed units of persistent memory ("contexts") are
defined once, instantiated on demand, mutated by action handlers and
rendered to text for the model on every turn.
"""

from ctxforge.config import ContextSettings, load_settings_from_env
from ctxforge.contexts import (
    ContextArgs,
    ContextDefinition,
    ContextRegistry,
    ContextRuntime,
    InMemoryPersistenceAdapter,
    define_context,
)

__version__ = "0.1.0"

__all__ = [
    "ContextArgs",
    "ContextDefinition",
    "ContextRegistry",
    "ContextRuntime",
    "ContextSettings",
    "InMemoryPersistenceAdapter",
    "define_context",
    "load_settings_from_env",
]
