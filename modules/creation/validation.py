from __future__ import annotations

from .errors import ValidationError
from .models import CreationRequest


NAME_MIN, NAME_MAX = 3, 30
DESCRIPTION_MIN, DESCRIPTION_MAX = 10, 150


def _check(field: str, value: object, lo: int, hi: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    if not lo <= len(value) <= hi:
        raise ValidationError(f"{field} must be {lo}..{hi} characters (got {len(value)})", field=field)
    return value


def validate_request(name: object, description: object) -> CreationRequest:
    return CreationRequest(
        name=_check("name", name, NAME_MIN, NAME_MAX),
        description=_check("description", description, DESCRIPTION_MIN, DESCRIPTION_MAX),
    )


def build_prompt(description: str) -> str:
    """Inference prompt for a validated description (sent back-quoted)."""
    if not description:
        raise ValueError("prompt must be non-empty")
    return f"`{description}`"
