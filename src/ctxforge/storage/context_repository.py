"""SQL-backed persistence adapter for context memory.

Implements the PersistenceAdapter protocol on top of the async SQLAlchemy
Database, storing one row per context id.
"""

import json
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ctxforge.contexts.errors import PersistenceError
from ctxforge.contexts.models import ContextInstanceKey
from ctxforge.storage.database import Database
from ctxforge.storage.models import ContextMemoryModel


class SqlPersistenceAdapter:
    """PersistenceAdapter storing memory as JSON rows in a SQL database.

    Example:
        >>> db = Database(DatabaseConfig(url="sqlite+aiosqlite:///./contexts.db"))
        >>> await db.create_tables()
        >>> runtime = ContextRuntime(persistence=SqlPersistenceAdapter(db))
    """

    def __init__(self, database: Database):
        """Initialize adapter with a database.

        Args:
            database: Database whose tables include context_memory
        """
        self.database = database

    async def load(self, key: ContextInstanceKey) -> Optional[Any]:
        """Load saved memory for key.

        Returns:
            The decoded JSON value, or None if no row exists

        Raises:
            PersistenceError: If the query fails or the row is not valid JSON
        """
        try:
            async with self.database.session() as session:
                model = await session.get(ContextMemoryModel, key.id)
                encoded = model.memory if model is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(key.id, "load", str(exc)) from exc

        if encoded is None:
            return None

        try:
            return json.loads(encoded)
        except json.JSONDecodeError as exc:
            raise PersistenceError(key.id, "load", f"corrupt memory: {exc}") from exc

    async def save(self, key: ContextInstanceKey, data: Any) -> None:
        """Insert or overwrite saved memory for key.

        Raises:
            PersistenceError: If data is not JSON-serialisable or the write fails
        """
        try:
            encoded = json.dumps(data)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(key.id, "save", "memory must be JSON-serialisable") from exc

        try:
            async with self.database.session() as session:
                model = await session.get(ContextMemoryModel, key.id)
                if model is None:
                    session.add(
                        ContextMemoryModel(
                            context_id=key.id,
                            type_id=key.type_id,
                            context_key=key.key,
                            memory=encoded,
                        )
                    )
                else:
                    model.memory = encoded
        except SQLAlchemyError as exc:
            raise PersistenceError(key.id, "save", str(exc)) from exc

    async def delete(self, key: ContextInstanceKey) -> None:
        """Delete saved memory for key (no-op if absent).

        Raises:
            PersistenceError: If the delete fails
        """
        try:
            async with self.database.session() as session:
                model = await session.get(ContextMemoryModel, key.id)
                if model is not None:
                    await session.delete(model)
        except SQLAlchemyError as exc:
            raise PersistenceError(key.id, "delete", str(exc)) from exc

    async def list_ids(self, type_id: Optional[str] = None) -> list[str]:
        """List saved context ids, optionally filtered by type.

        Args:
            type_id: Only return contexts of this type

        Returns:
            Context ids sorted ascending

        Raises:
            PersistenceError: If the query fails
        """
        stmt = select(ContextMemoryModel.context_id).order_by(ContextMemoryModel.context_id)
        if type_id is not None:
            stmt = stmt.where(ContextMemoryModel.type_id == type_id)

        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError(type_id or "*", "list", str(exc)) from exc
