"""Mutation surface used by action handlers.

Handlers receive an ActionContext exposing the instance memory by reference.
Access is exclusive per instance: mutate() holds the instance lock for the
whole handler invocation, so two turns touching the same instance are
serialized and never interleave. With transactional mutations enabled a
handler that raises (or is cancelled) leaves memory exactly as it found it.
"""

import copy
import inspect
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Generic, Optional

from ctxforge.contexts.errors import MemoryShapeError
from ctxforge.contexts.models import (
    ContextDefinition,
    ContextInstance,
    ContextInstanceKey,
    MemoryT,
    utc_now,
)
from ctxforge.observability.logging import get_logger
from ctxforge.observability.metrics import get_metrics_collector

logger = get_logger(__name__)


class ActionContext(Generic[MemoryT]):
    """Per-invocation view of a context instance handed to action handlers.

    Mutations made through ``memory`` take effect immediately on the shared
    instance. Replacing ``memory`` wholesale is allowed only with a value of
    the same type the definition created.

    Attributes:
        turn_id: Id of the turn running the handler, if any
    """

    def __init__(self, instance: ContextInstance[MemoryT], turn_id: Optional[str] = None) -> None:
        self._instance = instance
        self.turn_id = turn_id

    @property
    def memory(self) -> MemoryT:
        return self._instance.memory

    @memory.setter
    def memory(self, value: MemoryT) -> None:
        current = self._instance.memory
        if type(value) is not type(current):
            raise MemoryShapeError(
                self._instance.id, type(current).__name__, type(value).__name__
            )
        self._instance.memory = value

    @property
    def key(self) -> ContextInstanceKey:
        return self._instance.key

    @property
    def args(self) -> Any:
        return self._instance.args

    @property
    def definition(self) -> ContextDefinition[Any, MemoryT]:
        return self._instance.definition


class MutationSurface:
    """Grants exclusive, optionally all-or-nothing access to instance memory.

    Attributes:
        transactional: Restore memory when a handler raises or is cancelled
    """

    def __init__(self, transactional: bool = True) -> None:
        self.transactional = transactional
        self._metrics = get_metrics_collector()

    @asynccontextmanager
    async def mutate(
        self, instance: ContextInstance[MemoryT], turn_id: Optional[str] = None
    ) -> AsyncIterator[ActionContext[MemoryT]]:
        """Hold an instance exclusively and yield its ActionContext.

        Do not render or save the same instance inside the block; both wait
        for the mutation to finish.

        Example:
            >>> async with surface.mutate(todo) as ctx:
            ...     ctx.memory["items"].append("milk")
        """
        async with instance.lock:
            snapshot = copy.deepcopy(instance.memory) if self.transactional else None
            try:
                yield ActionContext(instance, turn_id=turn_id)
            except BaseException:
                if self.transactional:
                    instance.memory = snapshot
                    logger.warning("context_mutation_rolled_back", context_id=instance.id)
                self._metrics.record_mutation(instance.type_id, "rolled_back")
                raise
            instance.last_mutated_at = utc_now()
            self._metrics.record_mutation(instance.type_id, "committed")

    async def run_action(
        self,
        instance: ContextInstance[MemoryT],
        handler: Callable[..., Any],
        *args: Any,
        turn_id: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """Run a sync or async handler with exclusive access to the instance.

        The handler is called as ``handler(ctx, *args, **kwargs)``.

        Returns:
            Whatever the handler returns
        """
        async with self.mutate(instance, turn_id=turn_id) as ctx:
            result = handler(ctx, *args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result
