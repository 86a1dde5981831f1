"""Ensures all ORM models are imported before table creation."""

# Global flag to track if models have been registered
_models_registered = False


def register_all_models() -> None:
    """Import all ORM model modules to register them with Base.metadata.

    Must be called before create_all/drop_all. Idempotent.
    """
    global _models_registered

    if _models_registered:
        return

    from ctxforge.storage import models as _  # noqa: F401

    _models_registered = True
