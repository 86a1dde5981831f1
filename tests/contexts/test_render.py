"""Tests for the render pipeline."""

from typing import Any

import pytest
from pydantic import BaseModel

from ctxforge.contexts.errors import RenderMutationError
from ctxforge.contexts.models import ContextDefinition, RenderMetadata
from ctxforge.contexts.registry import ContextRegistry
from ctxforge.contexts.render import RenderPipeline, format_view
from ctxforge.contexts.store import ContextInstanceStore


class TestRenderPipeline:
    """Tests for RenderPipeline.render()."""

    @pytest.fixture
    def store(self, registry: ContextRegistry) -> ContextInstanceStore:
        return ContextInstanceStore(registry)

    @pytest.mark.asyncio
    async def test_render_uses_current_memory(self, store: ContextInstanceStore) -> None:
        todo = await store.get_or_create("todo", {"list_id": "A", "title": "Groceries"})
        todo.memory["items"].append("milk")

        view = await RenderPipeline().render(todo)

        assert view.text == "# Groceries (A)\n- milk"
        assert view.key == todo.key

    @pytest.mark.asyncio
    async def test_render_is_repeatable(self, store: ContextInstanceStore) -> None:
        todo = await store.get_or_create("todo", {"list_id": "A"})
        todo.memory["items"].extend(["milk", "eggs"])
        pipeline = RenderPipeline(strict=True)

        first = await pipeline.render(todo)
        second = await pipeline.render(todo)

        assert first.text == second.text

    @pytest.mark.asyncio
    async def test_render_stamps_last_rendered_at(self, store: ContextInstanceStore) -> None:
        todo = await store.get_or_create("todo", {"list_id": "A"})
        assert todo.last_rendered_at is None

        view = await RenderPipeline().render(todo)

        assert todo.last_rendered_at == view.rendered_at

    @pytest.mark.asyncio
    async def test_metadata_passed_to_render_fn(self) -> None:
        seen: list[RenderMetadata] = []

        def render(memory: Any, metadata: RenderMetadata) -> str:
            seen.append(metadata)
            return "ok"

        registry = ContextRegistry()
        registry.register(
            ContextDefinition(type_id="meta", create_fn=lambda a, s: {}, render_fn=render)
        )
        instance = await ContextInstanceStore(registry).get_or_create("meta")
        pipeline = RenderPipeline()

        await pipeline.render(instance)
        await pipeline.render(instance)

        assert seen[0].id == "meta"
        assert seen[0].created_at == instance.created_at
        assert seen[0].last_rendered_at is None
        assert seen[1].last_rendered_at is not None

    @pytest.mark.asyncio
    async def test_strict_mode_detects_mutating_render(self) -> None:
        def render(memory: dict[str, Any], metadata: RenderMetadata) -> str:
            memory["renders"] = memory.get("renders", 0) + 1
            return str(memory["renders"])

        registry = ContextRegistry()
        registry.register(
            ContextDefinition(type_id="bad", create_fn=lambda a, s: {}, render_fn=render)
        )
        instance = await ContextInstanceStore(registry).get_or_create("bad")

        with pytest.raises(RenderMutationError):
            await RenderPipeline(strict=True).render(instance)

    @pytest.mark.asyncio
    async def test_strict_mode_with_model_memory(self) -> None:
        class Notes(BaseModel):
            lines: list[str] = []

        registry = ContextRegistry()
        registry.register(
            ContextDefinition(
                type_id="notes",
                create_fn=lambda a, s: Notes(lines=["a"]),
                render_fn=lambda memory, meta: "\n".join(memory.lines),
            )
        )
        instance = await ContextInstanceStore(registry).get_or_create("notes")

        view = await RenderPipeline(strict=True).render(instance)

        assert view.text == "a"

    @pytest.mark.asyncio
    async def test_instructions_prefix_text(self) -> None:
        registry = ContextRegistry()
        registry.register(
            ContextDefinition(
                type_id="guide",
                create_fn=lambda a, s: {"tip": "be brief"},
                render_fn=lambda memory, meta: memory["tip"],
                instructions="Follow these tips.",
            )
        )
        instance = await ContextInstanceStore(registry).get_or_create("guide")

        view = await RenderPipeline().render(instance)

        assert view.text == "Follow these tips.\n\nbe brief"

    @pytest.mark.asyncio
    async def test_render_many_formats_each_context(self, store: ContextInstanceStore) -> None:
        a = await store.get_or_create("todo", {"list_id": "A"})
        b = await store.get_or_create("todo", {"list_id": "B"})

        text = await RenderPipeline().render_many([a, b])

        assert text == (
            '<context type="todo" key="A">\n# Todo (A)\n</context>\n\n'
            '<context type="todo" key="B">\n# Todo (B)\n</context>'
        )


class TestFormatView:
    """Tests for format_view()."""

    @pytest.mark.asyncio
    async def test_singleton_context_has_no_key_attribute(self) -> None:
        registry = ContextRegistry()
        registry.register(
            ContextDefinition(type_id="chat", create_fn=lambda a, s: {}, render_fn=lambda m, meta: "hi")
        )
        instance = await ContextInstanceStore(registry).get_or_create("chat")

        view = await RenderPipeline().render(instance)

        assert format_view(view) == '<context type="chat">\nhi\n</context>'
