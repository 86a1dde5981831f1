"""SQLAlchemy ORM models for persisted context memory."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ctxforge.storage.base_model import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContextMemoryModel(Base):
    """ORM model for one saved context instance.

    Memory is stored as JSON text so the adapter controls decoding and can
    report corrupt rows as persistence errors.

    Attributes:
        context_id: Flat context id ("type_id:key"), primary key
        type_id: Context type identifier (indexed)
        context_key: Derived key ("" for singleton contexts)
        memory: JSON-encoded memory value
        created_at: When the row was first written
        updated_at: When the row was last overwritten
    """

    __tablename__ = "context_memory"

    context_id: Mapped[str] = mapped_column(String(512), primary_key=True)
    type_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    context_key: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    memory: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utc_now, onupdate=_utc_now
    )

    __table_args__ = (Index("idx_context_type_key", "type_id", "context_key"),)
