"""Keyed store of live context instances with get-or-create semantics.

The store is the only globally shared mutable structure of the runtime. It
guarantees at most one live instance per ContextInstanceKey: concurrent
first-time requests for the same key run creation exactly once and every
caller receives the same instance.

Usage:
    store = ContextInstanceStore(registry, persistence=adapter)
    todo = await store.get_or_create("todo", {"list_id": "A"})
    await store.save(todo)      # checkpoint one instance
    await store.flush()         # checkpoint everything (shutdown)
"""

import asyncio
import inspect
from collections import OrderedDict
from typing import Any, Mapping, Optional

from ctxforge.config import ContextSettings, get_default_settings
from ctxforge.contexts.errors import ContextBusyError, ContextNotFoundError, PersistenceError
from ctxforge.contexts.keys import derive_key
from ctxforge.contexts.models import ContextDefinition, ContextInstance, ContextInstanceKey
from ctxforge.contexts.persistence import PersistenceAdapter
from ctxforge.contexts.registry import ContextRegistry
from ctxforge.contexts.validation import validate_arguments
from ctxforge.observability.logging import get_logger
from ctxforge.observability.metrics import get_metrics_collector

logger = get_logger(__name__)


class ContextInstanceStore:
    """In-process store of live context instances.

    Instances are kept in least-recently-used order. The store is unbounded
    unless settings.max_instances is set, in which case idle instances are
    evicted oldest first (saved beforehand when persistence is configured).

    All coroutines must run on a single event loop.

    Attributes:
        _registry: Registry used to resolve type ids
        _persistence: Optional adapter for loading and saving memory
        _settings: Runtime settings
        _instances: Live instances keyed by ContextInstanceKey, LRU ordered
        _creation_locks: Per-key locks serializing creation and eviction of a key
        _lock: Guards the key space (lookups, inserts, removals)
    """

    def __init__(
        self,
        registry: ContextRegistry,
        persistence: Optional[PersistenceAdapter] = None,
        settings: Optional[ContextSettings] = None,
    ) -> None:
        self._registry = registry
        self._persistence = persistence
        self._settings = settings or get_default_settings()
        self._instances: OrderedDict[ContextInstanceKey, ContextInstance[Any]] = OrderedDict()
        self._creation_locks: dict[ContextInstanceKey, asyncio.Lock] = {}
        self._lock = asyncio.Lock()
        self._metrics = get_metrics_collector()

    @property
    def registry(self) -> ContextRegistry:
        return self._registry

    @property
    def persistence(self) -> Optional[PersistenceAdapter]:
        return self._persistence

    # ------------------------------------------------------------------
    # Instance access
    # ------------------------------------------------------------------

    async def get_or_create(
        self,
        type_id: str,
        raw_args: Optional[Mapping[str, Any]] = None,
        seed: Optional[Any] = None,
    ) -> ContextInstance[Any]:
        """Return the live instance addressed by (type_id, raw_args).

        Creation runs only when no instance exists for the derived key. Saved
        memory is restored from the persistence adapter when available,
        otherwise the definition's create_fn builds it. For an existing key
        the instance is returned unchanged and the arguments are ignored.

        Args:
            type_id: Registered context type
            raw_args: Raw arguments validated against the definition's schema
            seed: Optional initial data passed to create_fn for a new instance

        Returns:
            The live ContextInstance for the derived key

        Raises:
            UnknownTypeError: If type_id is not registered
            ValidationError: If raw_args do not satisfy the schema
            KeyDerivationError: If the definition's key function fails
            PersistenceError: If saved memory exists but cannot be loaded
        """
        definition = self._registry.lookup(type_id)
        args = validate_arguments(definition, raw_args)
        key = derive_key(definition, args)

        while True:
            async with self._lock:
                instance = self._lookup(key, args)
                if instance is not None:
                    return instance
                creation_lock = self._creation_locks.setdefault(key, asyncio.Lock())

            async with creation_lock:
                # A retired lock means the key changed hands while waiting
                if self._creation_locks.get(key) is not creation_lock:
                    continue
                try:
                    instance = await self._create_instance(definition, key, args, seed)
                    async with self._lock:
                        self._instances[key] = instance
                finally:
                    self._retire_creation_lock(key, creation_lock)
            break

        await self._enforce_limit(exclude=key)
        return instance

    def _retire_creation_lock(self, key: ContextInstanceKey, lock: asyncio.Lock) -> None:
        # Waiters on a retired lock resolve the key again from the top
        if self._creation_locks.get(key) is lock:
            del self._creation_locks[key]

    def _lookup(self, key: ContextInstanceKey, args: Any) -> Optional[ContextInstance[Any]]:
        instance = self._instances.get(key)
        if instance is None:
            return None
        self._instances.move_to_end(key)
        if args != instance.args:
            logger.debug("context_args_ignored", context_id=key.id)
        return instance

    async def _create_instance(
        self,
        definition: ContextDefinition[Any, Any],
        key: ContextInstanceKey,
        args: Any,
        seed: Optional[Any],
    ) -> ContextInstance[Any]:
        persisted = await self._load(key)

        if persisted is not None:
            memory = definition.load_memory(args, persisted)
            instance = ContextInstance(
                key=key, definition=definition, args=args, memory=memory, restored=True
            )
            self._metrics.record_created(key.type_id, "restored")
            logger.info("context_restored", context_id=key.id)
            return instance

        memory = definition.create_fn(args, seed)
        if inspect.isawaitable(memory):
            memory = await memory

        instance = ContextInstance(key=key, definition=definition, args=args, memory=memory)
        self._metrics.record_created(key.type_id, "created")
        logger.info("context_created", context_id=key.id)
        return instance

    async def _load(self, key: ContextInstanceKey) -> Optional[Any]:
        if self._persistence is None:
            return None

        try:
            persisted = await self._persistence.load(key)
        except PersistenceError as exc:
            self._metrics.record_persistence("load", "error")
            if not self._settings.fallback_on_corrupt_memory:
                logger.error("context_load_failed", context_id=key.id, error=str(exc))
                raise
            logger.warning("context_load_fallback", context_id=key.id, error=str(exc))
            return None

        self._metrics.record_persistence("load", "hit" if persisted is not None else "miss")
        return persisted

    def find(self, key: ContextInstanceKey) -> Optional[ContextInstance[Any]]:
        """Return the live instance for key, or None."""
        return self._instances.get(key)

    def get(self, key: ContextInstanceKey) -> ContextInstance[Any]:
        """Return the live instance for key.

        Raises:
            ContextNotFoundError: If no live instance exists for key
        """
        instance = self._instances.get(key)
        if instance is None:
            raise ContextNotFoundError(key.id)
        return instance

    def contains(self, key: ContextInstanceKey) -> bool:
        return key in self._instances

    def instances(self) -> list[ContextInstance[Any]]:
        """Snapshot of live instances, least recently used first."""
        return list(self._instances.values())

    def __len__(self) -> int:
        return len(self._instances)

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    async def save(self, instance: ContextInstance[Any]) -> None:
        """Save one instance through the persistence adapter.

        Waits for any in-flight mutation on the instance to finish so a
        half-applied change is never written. No-op without an adapter.

        Raises:
            PersistenceError: If the adapter fails to save
        """
        if self._persistence is None:
            return
        async with instance.lock:
            await self._write(instance)

    async def _write(self, instance: ContextInstance[Any]) -> None:
        if self._persistence is None:
            return

        try:
            data = instance.definition.dump_memory(instance.memory)
        except Exception as exc:
            self._metrics.record_persistence("save", "error")
            logger.error("context_dump_failed", context_id=instance.id, error=str(exc))
            raise PersistenceError(instance.id, "save", f"dump_memory failed: {exc}") from exc

        try:
            await self._persistence.save(instance.key, data)
        except PersistenceError as exc:
            self._metrics.record_persistence("save", "error")
            logger.error("context_save_failed", context_id=instance.id, error=str(exc))
            raise

        self._metrics.record_persistence("save", "ok")
        logger.debug("context_saved", context_id=instance.id)

    async def flush(self) -> None:
        """Save every live instance.

        Every instance is attempted even if some fail.

        Raises:
            PersistenceError: The first failure, after all saves were attempted
        """
        if self._persistence is None:
            return

        failures: list[PersistenceError] = []
        instances = self.instances()
        for instance in instances:
            try:
                await self.save(instance)
            except PersistenceError as exc:
                failures.append(exc)

        logger.info("contexts_flushed", count=len(instances), failed=len(failures))
        if failures:
            raise failures[0]

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    async def evict(self, key: ContextInstanceKey, save: bool = True) -> ContextInstance[Any]:
        """Remove a live instance from the store.

        Args:
            key: Instance to evict
            save: Save memory through the adapter before dropping it

        Returns:
            The evicted instance

        Raises:
            ContextNotFoundError: If no live instance exists for key
            ContextBusyError: If the instance is mid-mutation
            PersistenceError: If saving fails (the instance is still evicted)
        """
        async with self._lock:
            instance = self._instances.get(key)
            if instance is None:
                raise ContextNotFoundError(key.id)
            if instance.busy:
                raise ContextBusyError(key.id, "evict")
            eviction_lock = await self._detach(key)

        await self._finish_eviction(instance, eviction_lock, save)
        return instance

    async def _detach(self, key: ContextInstanceKey) -> asyncio.Lock:
        # Caller holds self._lock. Creators for the key queue on the returned
        # lock until the evicted memory is saved, then load the saved state.
        del self._instances[key]
        eviction_lock = asyncio.Lock()
        self._creation_locks[key] = eviction_lock
        await eviction_lock.acquire()
        return eviction_lock

    async def _finish_eviction(
        self,
        instance: ContextInstance[Any],
        eviction_lock: asyncio.Lock,
        save: bool,
        keep_on_failure: bool = False,
    ) -> None:
        try:
            if save:
                async with instance.lock:
                    await self._write(instance)
        except PersistenceError:
            if keep_on_failure:
                async with self._lock:
                    self._instances[instance.key] = instance
                    self._instances.move_to_end(instance.key, last=False)
            raise
        finally:
            eviction_lock.release()
            self._retire_creation_lock(instance.key, eviction_lock)
        logger.info("context_evicted", context_id=instance.id, saved=save)

    async def _enforce_limit(self, exclude: ContextInstanceKey) -> None:
        limit = self._settings.max_instances
        if limit is None:
            return

        evicted: list[tuple[ContextInstance[Any], asyncio.Lock]] = []
        async with self._lock:
            for key, instance in list(self._instances.items()):
                if len(self._instances) <= limit:
                    break
                if key == exclude or instance.busy:
                    continue
                evicted.append((instance, await self._detach(key)))

        for instance, eviction_lock in evicted:
            try:
                await self._finish_eviction(
                    instance, eviction_lock, save=True, keep_on_failure=True
                )
            except PersistenceError:
                # Memory that could not be saved stays live
                logger.warning("context_eviction_aborted", context_id=instance.id)
