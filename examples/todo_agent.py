"""Todo list contexts driven through agent turns.

Run with:
    python examples/todo_agent.py
"""

import asyncio
from typing import Any

from ctxforge import ContextArgs, ContextRuntime, ContextSettings
from ctxforge.contexts import ActionContext, RenderMetadata
from ctxforge.observability import setup_logging
from ctxforge.storage import Database, DatabaseConfig, SqlPersistenceAdapter


class TodoArgs(ContextArgs):
    list_id: str


def render_todo(memory: dict[str, Any], metadata: RenderMetadata) -> str:
    if not memory["items"]:
        return f"List {metadata.key.key} is empty."
    return "\n".join(f"- {item}" for item in memory["items"])


async def add_item(ctx: ActionContext[dict[str, Any]], item: str) -> None:
    ctx.memory["items"].append(item)


async def main() -> None:
    settings = ContextSettings(database_url="sqlite+aiosqlite:///./todo_contexts.db")
    setup_logging(log_level=settings.log_level, json_logs=False)

    db = Database(DatabaseConfig.from_settings(settings))
    await db.create_tables()

    runtime = ContextRuntime(persistence=SqlPersistenceAdapter(db), settings=settings)
    runtime.register(
        type_id="todo",
        schema=TodoArgs,
        key=lambda args: args.list_id,
        create=lambda args, seed: {"items": []},
        render=render_todo,
        instructions="The user's todo lists. Add items when asked.",
    )

    async with runtime.turn() as turn:
        groceries = await turn.get("todo", {"list_id": "groceries"})
        # Rendered once, right before the LLM call that picks an action
        print(await turn.render())
        await turn.act(groceries, add_item, "milk")

    async with runtime.turn() as turn:
        await turn.get("todo", {"list_id": "groceries"})
        print(await turn.render())

    await runtime.close()
    await db.close()


if __name__ == "__main__":
    asyncio.run(main())
