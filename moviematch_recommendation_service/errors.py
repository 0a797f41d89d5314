"""Exceptions raised at public entry points."""


class ValidationError(ValueError):
    """Malformed input to a public operation. Never retried."""


def require_user_id(user_id) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("user_id must be a non-empty string")
    return user_id


def require_non_negative(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
    return value
