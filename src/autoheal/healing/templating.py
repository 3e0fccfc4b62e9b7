"""``{{name}}`` placeholder substitution for playbook step parameters."""

from __future__ import annotations

import re
from typing import Any

TOKEN_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def resolve_value(value: Any, context: dict[str, Any]) -> Any:
    """Substitute tokens in a single parameter value.

    A value that is exactly one token takes the context value as-is, keeping
    its type. Tokens embedded in longer strings are rendered with ``str``.
    Unresolved tokens (missing or ``None`` in context) pass through literally.
    Non-string values are returned unchanged.
    """
    if not isinstance(value, str):
        return value

    whole = TOKEN_PATTERN.fullmatch(value)
    if whole:
        resolved = context.get(whole.group(1))
        return value if resolved is None else resolved

    def substitute(match: re.Match) -> str:
        resolved = context.get(match.group(1))
        return match.group(0) if resolved is None else str(resolved)

    return TOKEN_PATTERN.sub(substitute, value)


def resolve_parameters(params: dict[str, Any], context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``params`` with every placeholder resolved against ``context``."""
    return {key: resolve_value(value, context) for key, value in params.items()}
