from __future__ import annotations

from ..types import EspBool, EspValue, EspTypeError, type_name

def require_bool(val: EspValue, context: str) -> bool:
    """Conditions and logical operands must be booleans; nothing is truthy by accident."""
    match val:
        case EspBool(value=b):
            return b
        case _:
            raise EspTypeError(f"{context} requires a boolean, got {type_name(val)}")
