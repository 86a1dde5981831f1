"""Render pipeline: context memory to text for the language model.

Rendering holds the instance lock so it observes memory exactly as of the
moment it runs, never interleaved with a mutation. Render functions must not
change memory; strict mode detects violations during tests and development.
"""

import copy
import time
from typing import Any, Iterable

from ctxforge.contexts.errors import RenderMutationError
from ctxforge.contexts.models import ContextInstance, RenderedView, utc_now
from ctxforge.observability.logging import get_logger
from ctxforge.observability.metrics import get_metrics_collector

logger = get_logger(__name__)


class RenderPipeline:
    """Produces RenderedViews from live context instances.

    Attributes:
        strict: Snapshot memory around each render and raise
            RenderMutationError if the render function changed it

    Example:
        >>> pipeline = RenderPipeline(strict=True)
        >>> view = await pipeline.render(instance)
        >>> print(format_view(view))
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict
        self._metrics = get_metrics_collector()

    async def render(self, instance: ContextInstance[Any]) -> RenderedView:
        """Render an instance's current memory.

        Args:
            instance: Live instance to render

        Returns:
            RenderedView with the text produced by the definition's render_fn

        Raises:
            RenderMutationError: In strict mode, if render_fn changed memory
        """
        async with instance.lock:
            return self._render_locked(instance)

    def _render_locked(self, instance: ContextInstance[Any]) -> RenderedView:
        definition = instance.definition
        metadata = instance.metadata()
        snapshot = copy.deepcopy(instance.memory) if self.strict else None

        started = time.perf_counter()
        text = definition.render_fn(instance.memory, metadata)
        duration = time.perf_counter() - started

        if self.strict and instance.memory != snapshot:
            logger.error("context_render_mutated_memory", context_id=instance.id)
            raise RenderMutationError(instance.id)

        if definition.instructions:
            text = f"{definition.instructions}\n\n{text}" if text else definition.instructions

        rendered_at = utc_now()
        instance.last_rendered_at = rendered_at
        self._metrics.record_render(instance.type_id, duration)
        logger.debug("context_rendered", context_id=instance.id, length=len(text))

        return RenderedView(key=instance.key, text=text, rendered_at=rendered_at)

    async def render_many(self, instances: Iterable[ContextInstance[Any]]) -> str:
        """Render each instance once and join the tagged blocks.

        Args:
            instances: Instances active in the current turn

        Returns:
            Concatenated context blocks separated by blank lines
        """
        views = [await self.render(instance) for instance in instances]
        return "\n\n".join(format_view(view) for view in views)


def format_view(view: RenderedView) -> str:
    """Wrap rendered text in a tagged block identifying the context.

    Example:
        >>> format_view(view)
        '<context type="todo" key="A">\\n- milk\\n</context>'
    """
    key_attr = f' key="{view.key.key}"' if view.key.key else ""
    return f'<context type="{view.key.type_id}"{key_attr}>\n{view.text}\n</context>'
