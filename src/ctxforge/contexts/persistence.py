"""Persistence boundary for context memory.

The core does not own storage; it depends on an adapter implementing the
PersistenceAdapter protocol. Data handed to an adapter is the JSON value
produced by the definition's dump_memory(), keyed by the instance key.
"""

import asyncio
import json
from typing import Any, Optional, Protocol

from ctxforge.contexts.errors import PersistenceError
from ctxforge.contexts.models import ContextInstanceKey


class PersistenceAdapter(Protocol):
    """Protocol for saving and loading instance memory across restarts.

    Implementations must round-trip whatever JSON value they are given.
    """

    async def load(self, key: ContextInstanceKey) -> Optional[Any]:
        """Load previously saved memory.

        Args:
            key: Identity of the instance

        Returns:
            The saved JSON value, or None if nothing was saved for the key

        Raises:
            PersistenceError: If stored data exists but cannot be read
        """
        ...

    async def save(self, key: ContextInstanceKey, data: Any) -> None:
        """Save memory, replacing any previous value for the key.

        Raises:
            PersistenceError: If the data cannot be written
        """
        ...

    async def delete(self, key: ContextInstanceKey) -> None:
        """Delete saved memory for the key (no-op if absent).

        Raises:
            PersistenceError: If the data cannot be removed
        """
        ...


class InMemoryPersistenceAdapter:
    """In-memory PersistenceAdapter backed by a dict of JSON strings.

    Values are stored encoded so every load returns a fresh structure, just
    like a real backend would. Suitable for development and testing.
    """

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def load(self, key: ContextInstanceKey) -> Optional[Any]:
        async with self._lock:
            encoded = self._records.get(key.id)
        if encoded is None:
            return None
        try:
            return json.loads(encoded)
        except json.JSONDecodeError as exc:
            raise PersistenceError(key.id, "load", str(exc)) from exc

    async def save(self, key: ContextInstanceKey, data: Any) -> None:
        try:
            encoded = json.dumps(data)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(key.id, "save", "memory must be JSON-serialisable") from exc
        async with self._lock:
            self._records[key.id] = encoded

    async def delete(self, key: ContextInstanceKey) -> None:
        async with self._lock:
            self._records.pop(key.id, None)

    def list_ids(self) -> list[str]:
        """Return the ids of every saved context, sorted."""
        return sorted(self._records.keys())

    def clear(self) -> None:
        self._records.clear()
