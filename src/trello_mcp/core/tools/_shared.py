"""
Shared helpers for Trello tool modules.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

from trello_mcp.core.models import TRELLO_ID_PATTERN

_TRELLO_ID_RE = re.compile(TRELLO_ID_PATTERN)

LIST_FILTERS = ("all", "open", "closed")


def require_trello_id(value: str, field: str) -> str:
    """Raise ValueError unless value is a 24-character hex Trello id."""
    if not isinstance(value, str) or not _TRELLO_ID_RE.match(value):
        raise ValueError(f"{field}: Must be a valid 24-character Trello ID")
    return value


def require_trello_ids(
    values: Optional[Sequence[str]], field: str
) -> Optional[List[str]]:
    if values is None:
        return None
    return [require_trello_id(v, field) for v in values]


def require_choice(value: str, choices: Sequence[str], field: str) -> str:
    if value not in choices:
        raise ValueError(f"{field} must be one of: {', '.join(choices)}")
    return value


def require_range(
    value: Optional[int], field: str, low: int, high: int
) -> Optional[int]:
    if value is not None and not (low <= value <= high):
        raise ValueError(f"{field} must be between {low} and {high}")
    return value


def as_list(data: Any) -> List[Dict[str, Any]]:
    """Keep only dict elements of a JSON array payload."""
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array from Trello.")
    return [e for e in data if isinstance(e, dict)]


def validate_position(pos: Optional[Any]) -> Optional[Any]:
    if pos is None or pos in ("top", "bottom"):
        return pos
    if isinstance(pos, (int, float)) and not isinstance(pos, bool) and pos >= 0:
        return pos
    raise ValueError('pos must be a number >= 0, "top" or "bottom"')
