"""Pytest configuration and shared fixtures for the test suite."""

import os
import tempfile
from typing import AsyncGenerator, TYPE_CHECKING, Any

import pytest

from ctxforge.config import ContextSettings
from ctxforge.contexts.models import ContextArgs, ContextDefinition, RenderMetadata
from ctxforge.contexts.persistence import InMemoryPersistenceAdapter
from ctxforge.contexts.registry import ContextRegistry
from ctxforge.contexts.runtime import ContextRuntime

if TYPE_CHECKING:
    from ctxforge.storage.database import Database


# Configure pytest-asyncio to use auto mode
pytest_plugins = ["pytest_asyncio"]


class TodoArgs(ContextArgs):
    """Arguments identifying a todo list."""

    list_id: str
    title: str = "Todo"


class CreateCounter:
    """create_fn that counts how often it runs."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, args: TodoArgs, seed: Any) -> dict[str, Any]:
        self.calls += 1
        items = list(seed) if seed else []
        return {"title": args.title, "items": items}


def render_todo(memory: dict[str, Any], metadata: RenderMetadata) -> str:
    lines = [f"# {memory['title']} ({metadata.key.key})"]
    lines.extend(f"- {item}" for item in memory["items"])
    return "\n".join(lines)


@pytest.fixture
def create_counter() -> CreateCounter:
    return CreateCounter()


@pytest.fixture
def todo_definition(create_counter: CreateCounter) -> ContextDefinition[TodoArgs, dict]:
    """The "todo" context keyed by list_id."""
    return ContextDefinition(
        type_id="todo",
        schema=TodoArgs,
        key_fn=lambda args: args.list_id,
        create_fn=create_counter,
        render_fn=render_todo,
    )


@pytest.fixture
def registry(todo_definition: ContextDefinition[TodoArgs, dict]) -> ContextRegistry:
    registry = ContextRegistry()
    registry.register(todo_definition)
    return registry


@pytest.fixture
def persistence() -> InMemoryPersistenceAdapter:
    return InMemoryPersistenceAdapter()


@pytest.fixture
def settings() -> ContextSettings:
    return ContextSettings(strict_render=True)


@pytest.fixture
def runtime(
    registry: ContextRegistry,
    persistence: InMemoryPersistenceAdapter,
    settings: ContextSettings,
) -> ContextRuntime:
    """Runtime with the todo context, in-memory persistence and strict renders."""
    return ContextRuntime(registry=registry, persistence=persistence, settings=settings)


@pytest.fixture
async def test_db() -> AsyncGenerator["Database", None]:
    """Create a file-based SQLite database with all tables.

    Yields:
        Database instance backed by a temporary file
    """
    from ctxforge.storage.database import Database, DatabaseConfig

    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    try:
        db = Database(DatabaseConfig(url=f"sqlite+aiosqlite:///{db_path}", echo=False))
        await db.create_tables()

        yield db

        await db.close()
    finally:
        if os.path.exists(db_path):
            os.remove(db_path)
