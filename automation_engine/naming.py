"""Key-name helpers for configs that arrive in camelCase (JSON / legacy UIs)."""

from __future__ import annotations

import re
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def snake_case(key: str) -> str:
    """``"reasoningProfile"`` -> ``"reasoning_profile"``.  Snake keys pass through."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


def snake_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Return a shallow copy of *data* with every top-level key snake_cased."""
    return {snake_case(k): v for k, v in data.items()}
