"""Runtime facade wiring registry, store, renderer and mutation surface.

Usage:
    runtime = ContextRuntime(persistence=InMemoryPersistenceAdapter())
    runtime.register(todo_definition)

    async with runtime.turn() as turn:
        todo = await turn.get("todo", {"list_id": "A"})
        text = await turn.render()
        await turn.act(todo, add_item, "milk")

    await runtime.close()
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Mapping, Optional

from ctxforge.config import ContextSettings, get_default_settings
from ctxforge.contexts.models import ContextDefinition, ContextInstance, RenderedView
from ctxforge.contexts.mutation import ActionContext, MutationSurface
from ctxforge.contexts.persistence import PersistenceAdapter
from ctxforge.contexts.registry import ContextRegistry, define_context
from ctxforge.contexts.render import RenderPipeline
from ctxforge.contexts.store import ContextInstanceStore
from ctxforge.contexts.turn import ContextTurn
from ctxforge.observability.logging import get_logger

logger = get_logger(__name__)


class ContextRuntime:
    """Entry point for defining, resolving, rendering and mutating contexts.

    The registry is passed explicitly (a fresh one by default) so runtimes
    stay isolated from each other and from the process-wide default.

    Attributes:
        registry: Context definitions known to this runtime
        store: Live instance store
        renderer: Render pipeline
        mutations: Mutation surface
        settings: Runtime settings
    """

    def __init__(
        self,
        registry: Optional[ContextRegistry] = None,
        persistence: Optional[PersistenceAdapter] = None,
        settings: Optional[ContextSettings] = None,
    ) -> None:
        self.settings = settings or get_default_settings()
        self.registry = registry if registry is not None else ContextRegistry()
        self.store = ContextInstanceStore(self.registry, persistence, self.settings)
        self.renderer = RenderPipeline(strict=self.settings.strict_render)
        self.mutations = MutationSurface(transactional=self.settings.transactional_mutations)

    def register(
        self, definition: Optional[ContextDefinition[Any, Any]] = None, **kwargs: Any
    ) -> ContextDefinition[Any, Any]:
        """Register a definition, or build one from define_context() keywords.

        Raises:
            DuplicateTypeError: If the type id is already registered
        """
        if definition is None:
            definition = define_context(**kwargs)
        elif kwargs:
            raise TypeError("Pass either a ContextDefinition or keyword arguments, not both")
        return self.registry.register(definition)

    async def get_or_create(
        self,
        type_id: str,
        raw_args: Optional[Mapping[str, Any]] = None,
        seed: Optional[Any] = None,
    ) -> ContextInstance[Any]:
        return await self.store.get_or_create(type_id, raw_args, seed=seed)

    async def render(self, instance: ContextInstance[Any]) -> str:
        """Render an instance and return the text."""
        view: RenderedView = await self.renderer.render(instance)
        return view.text

    def mutate(
        self, instance: ContextInstance[Any], turn_id: Optional[str] = None
    ) -> AbstractAsyncContextManager[ActionContext[Any]]:
        return self.mutations.mutate(instance, turn_id=turn_id)

    async def run_action(
        self,
        instance: ContextInstance[Any],
        handler: Callable[..., Any],
        *args: Any,
        turn_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        return await self.mutations.run_action(instance, handler, *args, turn_id=turn_id, **kwargs)

    async def save(self, instance: ContextInstance[Any]) -> None:
        await self.store.save(instance)

    async def flush(self) -> None:
        await self.store.flush()

    def turn(self, turn_id: Optional[str] = None) -> ContextTurn:
        """Start a turn; use as ``async with runtime.turn() as turn``."""
        return ContextTurn(self, turn_id=turn_id)

    async def close(self) -> None:
        """Flush all live instances (shutdown checkpoint)."""
        await self.flush()
        logger.info("context_runtime_closed", instances=len(self.store))
