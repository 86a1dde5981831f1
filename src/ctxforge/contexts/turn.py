"""Per-turn orchestration of context access.

A ContextTurn walks the get-or-create, render, mutate and save sequence for
the contexts one agent turn touches. Leaving the turn cleanly checkpoints
every active instance; a failed turn writes nothing and re-raises.
"""

import uuid
from contextvars import Token
from types import TracebackType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from ctxforge.contexts.models import ContextInstance, ContextInstanceKey
from ctxforge.observability.logging import get_logger, turn_id_var

if TYPE_CHECKING:
    from ctxforge.contexts.runtime import ContextRuntime

logger = get_logger(__name__)


class ContextTurn:
    """Tracks the context instances active in one agent turn.

    Example:
        >>> async with runtime.turn() as turn:
        ...     todo = await turn.get("todo", {"list_id": "A"})
        ...     prompt_context = await turn.render()
        ...     await turn.act(todo, add_item, "milk")
    """

    def __init__(self, runtime: "ContextRuntime", turn_id: Optional[str] = None) -> None:
        self.turn_id = turn_id or str(uuid.uuid4())
        self._runtime = runtime
        self._active: dict[ContextInstanceKey, ContextInstance[Any]] = {}
        self._token: Optional[Token[Optional[str]]] = None

    @property
    def active(self) -> list[ContextInstance[Any]]:
        """Instances resolved in this turn, in resolution order."""
        return list(self._active.values())

    async def get(
        self, type_id: str, raw_args: Optional[Mapping[str, Any]] = None
    ) -> ContextInstance[Any]:
        """Resolve a context instance and mark it active for this turn."""
        instance = await self._runtime.get_or_create(type_id, raw_args)
        self._active.setdefault(instance.key, instance)
        return instance

    async def render(self) -> str:
        """Render every active instance as of now.

        Call once per turn, right before the model call, so the model sees
        the state its actions will apply to. Further calls in the same turn
        are for inspection only.
        """
        return await self._runtime.renderer.render_many(self.active)

    async def act(
        self,
        instance: ContextInstance[Any],
        handler: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Run an action handler against an instance within this turn."""
        self._active.setdefault(instance.key, instance)
        return await self._runtime.run_action(
            instance, handler, *args, turn_id=self.turn_id, **kwargs
        )

    async def checkpoint(self) -> None:
        """Save every active instance."""
        for instance in self.active:
            await self._runtime.save(instance)

    async def __aenter__(self) -> "ContextTurn":
        self._token = turn_id_var.set(self.turn_id)
        logger.debug("turn_started")
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        try:
            if exc_type is None:
                await self.checkpoint()
                logger.debug("turn_completed", contexts=len(self._active))
            else:
                logger.warning("turn_failed", error=str(exc), contexts=len(self._active))
        finally:
            if self._token is not None:
                turn_id_var.reset(self._token)
                self._token = None
