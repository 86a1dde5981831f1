"""Core data models for context definitions and live instances.

A ContextDefinition is the static template for a class of stateful units.
A ContextInstance is one live, keyed memory object created from it; the
ContextInstanceStore owns every instance and hands out references to the
memory for the duration of a turn.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

ArgsT = TypeVar("ArgsT")
MemoryT = TypeVar("MemoryT")

KeyFn = Callable[[Any], str]
CreateFn = Callable[[Any, Optional[Any]], Union[Any, Awaitable[Any]]]
RenderFn = Callable[[Any, "RenderMetadata"], str]
LoadFn = Callable[[Any, Any], Any]
DumpFn = Callable[[Any], Any]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class ContextArgs(BaseModel):
    """Recommended base class for context argument schemas.

    Unknown fields are rejected and validated arguments are immutable, so
    key functions can rely on them.

    Example:
        >>> class TodoArgs(ContextArgs):
        ...     list_id: str
    """

    model_config = ConfigDict(extra="forbid", frozen=True)


class ContextInstanceKey(BaseModel):
    """Identity of a context instance: the type plus the derived key.

    Attributes:
        type_id: Registered context type identifier
        key: String produced by the definition's key function ("" for singletons)
    """

    model_config = ConfigDict(frozen=True)

    type_id: str = Field(..., min_length=1)
    key: str = ""

    @property
    def id(self) -> str:
        """Flat string id used for persistence and logging."""
        if not self.key:
            return self.type_id
        return f"{self.type_id}:{self.key}"

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class ContextDefinition(Generic[ArgsT, MemoryT]):
    """Static template describing a class of stateful context units.

    Attributes:
        type_id: Globally unique type identifier
        schema: Pydantic model validating the raw arguments (None = no arguments)
        create_fn: Builds initial memory from validated args and an optional seed
        render_fn: Turns memory plus metadata into text for the model
        key_fn: Maps validated args to a stable key (None = one instance per type)
        description: Optional human-readable description
        instructions: Optional static text rendered ahead of the memory
        load_fn: Revives persisted raw data into memory
        memory_model: Pydantic model reviving persisted data when load_fn is unset
        dump_fn: Converts memory into a JSON value for saving
    """

    type_id: str
    create_fn: CreateFn
    render_fn: RenderFn
    schema: Optional[type[BaseModel]] = None
    key_fn: Optional[KeyFn] = None
    description: Optional[str] = None
    instructions: Optional[str] = None
    load_fn: Optional[LoadFn] = None
    memory_model: Optional[type[BaseModel]] = None
    dump_fn: Optional[DumpFn] = None

    def __post_init__(self) -> None:
        if not self.type_id or not self.type_id.strip():
            raise ValueError("type_id must be a non-empty string")
        if ":" in self.type_id:
            raise ValueError(f"type_id '{self.type_id}' must not contain ':'")

    def dump_memory(self, memory: MemoryT) -> Any:
        """Convert memory into a JSON-compatible value for persistence."""
        if self.dump_fn is not None:
            return self.dump_fn(memory)
        if isinstance(memory, BaseModel):
            if self.load_fn is None and self.memory_model is None:
                raise TypeError(
                    f"{type(memory).__name__} memory of '{self.type_id}' cannot be restored; "
                    "set memory_model or load_fn"
                )
            return memory.model_dump(mode="json")
        return memory

    def load_memory(self, args: ArgsT, persisted: Any) -> MemoryT:
        """Revive persisted raw data into this definition's memory shape."""
        if self.load_fn is not None:
            return self.load_fn(args, persisted)
        if self.memory_model is not None:
            return self.memory_model.model_validate(persisted)
        return persisted


class RenderMetadata(BaseModel):
    """Instance metadata handed to a definition's render function."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: ContextInstanceKey
    created_at: datetime
    last_rendered_at: Optional[datetime] = None
    args: Any = None

    @property
    def id(self) -> str:
        return self.key.id


class RenderedView(BaseModel):
    """Text derived from an instance at a point in time. Never persisted."""

    model_config = ConfigDict(frozen=True)

    key: ContextInstanceKey
    text: str
    rendered_at: datetime = Field(default_factory=utc_now)


@dataclass(eq=False)
class ContextInstance(Generic[MemoryT]):
    """A live, keyed memory object owned by the instance store.

    Attributes:
        key: Identity of the instance (immutable for its lifetime)
        definition: Definition the instance was created from
        args: Validated arguments used at creation time
        memory: Current memory value, shaped by the definition's create_fn
        created_at: When the instance was created in this process
        last_rendered_at: When the instance was last rendered
        last_mutated_at: When a mutation last completed successfully
        restored: True if memory was loaded from persistence
    """

    key: ContextInstanceKey
    definition: ContextDefinition[Any, MemoryT]
    args: Any
    memory: MemoryT
    created_at: datetime = field(default_factory=utc_now)
    last_rendered_at: Optional[datetime] = None
    last_mutated_at: Optional[datetime] = None
    restored: bool = False
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def id(self) -> str:
        return self.key.id

    @property
    def type_id(self) -> str:
        return self.key.type_id

    @property
    def busy(self) -> bool:
        """True while a mutation, render or save holds the instance."""
        return self._lock.locked()

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    def metadata(self) -> RenderMetadata:
        """Snapshot of the metadata passed to render functions."""
        return RenderMetadata(
            key=self.key,
            created_at=self.created_at,
            last_rendered_at=self.last_rendered_at,
            args=self.args,
        )
