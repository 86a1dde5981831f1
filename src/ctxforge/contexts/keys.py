"""Key derivation: validated arguments to a stable instance identity."""

from typing import Any

from ctxforge.contexts.errors import KeyDerivationError
from ctxforge.contexts.models import ContextDefinition, ContextInstanceKey


def derive_key(definition: ContextDefinition[Any, Any], args: Any) -> ContextInstanceKey:
    """Compute the identity of the instance addressed by ``args``.

    The key function must be pure and total for validated input. Definitions
    without a key function address a single instance per type.

    Args:
        definition: Definition providing the key function
        args: Arguments already accepted by validate_arguments()

    Returns:
        ContextInstanceKey combining the type id and the derived key

    Raises:
        KeyDerivationError: If the key function raises or does not return a
            non-empty string
    """
    if definition.key_fn is None:
        return ContextInstanceKey(type_id=definition.type_id)

    try:
        key = definition.key_fn(args)
    except Exception as exc:
        raise KeyDerivationError(definition.type_id, f"{type(exc).__name__}: {exc}") from exc

    if not isinstance(key, str):
        raise KeyDerivationError(
            definition.type_id, f"expected str, got {type(key).__name__}"
        )
    if not key:
        raise KeyDerivationError(definition.type_id, "derived key is empty")

    return ContextInstanceKey(type_id=definition.type_id, key=key)
