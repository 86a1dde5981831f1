"""Centralized SQLAlchemy declarative base for all ORM models.

Every ctxforge ORM model inherits from this base so all tables share one
metadata registry.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models in ctxforge."""

    pass
