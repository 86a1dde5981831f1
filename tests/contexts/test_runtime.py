"""End-to-end tests for ContextRuntime and ContextTurn."""

from typing import Any, Optional

import pytest
from pydantic import BaseModel, Field

from ctxforge.config import ContextSettings
from ctxforge.contexts.errors import DuplicateTypeError, PersistenceError, UnknownTypeError
from ctxforge.contexts.models import ContextArgs, ContextDefinition, ContextInstanceKey
from ctxforge.contexts.mutation import ActionContext
from ctxforge.contexts.persistence import InMemoryPersistenceAdapter
from ctxforge.contexts.runtime import ContextRuntime
from ctxforge.observability.logging import get_turn_id


class ChatArgs(ContextArgs):
    user_id: str
    project_id: str


class ChatMemory(BaseModel):
    messages: list[str] = Field(default_factory=list)
    summary: str = ""


def chat_definition() -> ContextDefinition[ChatArgs, ChatMemory]:
    return ContextDefinition(
        type_id="chat",
        schema=ChatArgs,
        key_fn=lambda args: f"{args.user_id}:{args.project_id}",
        create_fn=lambda args, seed: ChatMemory(),
        render_fn=lambda memory, meta: "\n".join(
            [f"summary: {memory.summary}"] + [f"> {m}" for m in memory.messages]
        ),
        load_fn=lambda args, persisted: ChatMemory.model_validate(persisted),
    )


class NotesMemory(BaseModel):
    lines: list[str] = Field(default_factory=list)


def notes_definition(
    memory_model: Optional[type[BaseModel]] = NotesMemory,
) -> ContextDefinition[None, NotesMemory]:
    return ContextDefinition(
        type_id="notes",
        create_fn=lambda args, seed: NotesMemory(),
        render_fn=lambda memory, meta: "\n".join(memory.lines),
        memory_model=memory_model,
    )


async def add_item(ctx: ActionContext[dict[str, Any]], item: str) -> None:
    ctx.memory["items"].append(item)


class TestContextRuntime:
    """Tests for the runtime facade."""

    @pytest.mark.asyncio
    async def test_todo_scenario(self, runtime: ContextRuntime) -> None:
        todo = await runtime.get_or_create("todo", {"list_id": "A"})
        await runtime.run_action(todo, add_item, "milk")

        again = await runtime.get_or_create("todo", {"list_id": "A"})
        other = await runtime.get_or_create("todo", {"list_id": "B"})

        assert again is todo
        assert again.memory["items"] == ["milk"]
        assert other is not todo
        assert other.memory["items"] == []

    @pytest.mark.asyncio
    async def test_unknown_type(self, runtime: ContextRuntime, create_counter: Any) -> None:
        with pytest.raises(UnknownTypeError):
            await runtime.get_or_create("unknown-type", {})
        assert create_counter.calls == 0

    def test_register_with_keywords(self) -> None:
        runtime = ContextRuntime()
        definition = runtime.register(
            type_id="notes",
            create=lambda args, seed: [],
            render=lambda memory, meta: "",
        )
        assert runtime.registry.lookup("notes") is definition

    def test_register_duplicate(self, runtime: ContextRuntime) -> None:
        with pytest.raises(DuplicateTypeError):
            runtime.register(
                type_id="todo",
                create=lambda args, seed: {},
                render=lambda memory, meta: "",
            )

    def test_register_rejects_mixed_forms(self) -> None:
        with pytest.raises(TypeError):
            ContextRuntime().register(chat_definition(), type_id="chat")

    def test_runtimes_do_not_share_registries(self) -> None:
        first = ContextRuntime()
        first.register(chat_definition())
        second = ContextRuntime()
        assert not second.registry.has_type("chat")

    @pytest.mark.asyncio
    async def test_mutate_then_render(self, runtime: ContextRuntime) -> None:
        todo = await runtime.get_or_create("todo", {"list_id": "A"})

        async with runtime.mutate(todo) as ctx:
            ctx.memory["items"].append("bread")

        assert await runtime.render(todo) == "# Todo (A)\n- bread"

    @pytest.mark.asyncio
    async def test_model_memory_round_trip_renders_identically(self) -> None:
        persistence = InMemoryPersistenceAdapter()
        runtime = ContextRuntime(persistence=persistence)
        runtime.register(chat_definition())

        chat = await runtime.get_or_create("chat", {"user_id": "u1", "project_id": "p1"})
        async with runtime.mutate(chat) as ctx:
            ctx.memory.messages.append("hello")
            ctx.memory.summary = "greeting"
        before = await runtime.render(chat)
        await runtime.close()

        restarted = ContextRuntime(persistence=persistence)
        restarted.register(chat_definition())
        restored = await restarted.get_or_create("chat", {"user_id": "u1", "project_id": "p1"})

        assert restored.restored is True
        assert isinstance(restored.memory, ChatMemory)
        assert await restarted.render(restored) == before

    @pytest.mark.asyncio
    async def test_memory_model_revives_restored_memory(self) -> None:
        persistence = InMemoryPersistenceAdapter()
        runtime = ContextRuntime(persistence=persistence)
        runtime.register(notes_definition())

        notes = await runtime.get_or_create("notes")
        async with runtime.mutate(notes) as ctx:
            ctx.memory.lines.append("call the plumber")
        before = await runtime.render(notes)
        await runtime.close()

        restarted = ContextRuntime(persistence=persistence)
        restarted.register(notes_definition())
        restored = await restarted.get_or_create("notes")

        assert restored.restored is True
        assert isinstance(restored.memory, NotesMemory)
        assert await restarted.render(restored) == before

        async with restarted.mutate(restored) as ctx:
            ctx.memory = NotesMemory(lines=["done"])
        assert restored.memory.lines == ["done"]

    @pytest.mark.asyncio
    async def test_unrestorable_model_memory_is_not_saved(self) -> None:
        persistence = InMemoryPersistenceAdapter()
        runtime = ContextRuntime(persistence=persistence)
        runtime.register(notes_definition(memory_model=None))
        await runtime.get_or_create("notes")

        with pytest.raises(PersistenceError, match="memory_model"):
            await runtime.close()

        assert persistence.list_ids() == []

    @pytest.mark.asyncio
    async def test_close_flushes(
        self, runtime: ContextRuntime, persistence: InMemoryPersistenceAdapter
    ) -> None:
        await runtime.get_or_create("todo", {"list_id": "A"})
        await runtime.close()
        assert persistence.list_ids() == ["todo:A"]

    def test_settings_drive_components(self) -> None:
        runtime = ContextRuntime(
            settings=ContextSettings(strict_render=True, transactional_mutations=False)
        )
        assert runtime.renderer.strict is True
        assert runtime.mutations.transactional is False


class TestContextTurn:
    """Tests for per-turn orchestration."""

    @pytest.mark.asyncio
    async def test_turn_checkpoints_active_contexts(
        self, runtime: ContextRuntime, persistence: InMemoryPersistenceAdapter
    ) -> None:
        async with runtime.turn() as turn:
            todo = await turn.get("todo", {"list_id": "A"})
            await turn.act(todo, add_item, "milk")

        saved = await persistence.load(ContextInstanceKey(type_id="todo", key="A"))
        assert saved == {"title": "Todo", "items": ["milk"]}

    @pytest.mark.asyncio
    async def test_failed_turn_writes_nothing(
        self, runtime: ContextRuntime, persistence: InMemoryPersistenceAdapter
    ) -> None:
        with pytest.raises(RuntimeError):
            async with runtime.turn() as turn:
                todo = await turn.get("todo", {"list_id": "A"})
                await turn.act(todo, add_item, "milk")
                raise RuntimeError("llm call failed")

        assert persistence.list_ids() == []

    @pytest.mark.asyncio
    async def test_turn_render_sees_prior_mutations(self, runtime: ContextRuntime) -> None:
        async with runtime.turn() as turn:
            a = await turn.get("todo", {"list_id": "A"})
            await turn.get("todo", {"list_id": "B"})
            await turn.act(a, add_item, "milk")

            text = await turn.render()

        assert '<context type="todo" key="A">\n# Todo (A)\n- milk\n</context>' in text
        assert '<context type="todo" key="B">' in text

    @pytest.mark.asyncio
    async def test_active_contexts_are_unique(self, runtime: ContextRuntime) -> None:
        async with runtime.turn() as turn:
            await turn.get("todo", {"list_id": "A"})
            await turn.get("todo", {"list_id": "A"})
            assert len(turn.active) == 1

    @pytest.mark.asyncio
    async def test_turn_id_is_scoped(self, runtime: ContextRuntime) -> None:
        assert get_turn_id() is None

        async with runtime.turn(turn_id="turn-42") as turn:
            assert get_turn_id() == "turn-42"
            todo = await turn.get("todo", {"list_id": "A"})
            seen = await turn.act(todo, lambda ctx: ctx.turn_id)

        assert seen == "turn-42"
        assert get_turn_id() is None
