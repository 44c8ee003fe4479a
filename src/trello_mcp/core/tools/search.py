from __future__ import annotations

from typing import Any, Dict, List, Optional

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.models import BoardRef, CardRef
from trello_mcp.core.tools._shared import (
    require_choice,
    require_range,
    require_trello_ids,
)

MODEL_TYPES = ("boards", "cards", "members", "organizations")
MAX_SEARCH_RESULTS = 1000


async def trello_search(
    client: TrelloClient,
    query: str,
    model_types: Optional[List[str]] = None,
    board_ids: Optional[List[str]] = None,
    boards_limit: Optional[int] = None,
    cards_limit: Optional[int] = None,
    members_limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Search across boards, cards, members and organizations.
    - model_types: restrict to some of "boards", "cards", "members", "organizations"
    - board_ids: restrict card results to these boards
    - *_limit: per-type result caps (1-1000)
    """
    if not query or not query.strip():
        raise ValueError("Search query is required")
    for model_type in model_types or []:
        require_choice(model_type, MODEL_TYPES, "model_types")
    require_trello_ids(board_ids, "board_ids")
    require_range(boards_limit, "boards_limit", 1, MAX_SEARCH_RESULTS)
    require_range(cards_limit, "cards_limit", 1, MAX_SEARCH_RESULTS)
    require_range(members_limit, "members_limit", 1, MAX_SEARCH_RESULTS)

    response = await client.search(
        query,
        model_types=model_types,
        board_ids=board_ids,
        boards_limit=boards_limit,
        cards_limit=cards_limit,
        members_limit=members_limit,
    )
    data = response.data if isinstance(response.data, dict) else {}

    def _items(key: str) -> List[Dict[str, Any]]:
        return [e for e in data.get(key) or [] if isinstance(e, dict)]

    boards = [BoardRef.model_validate(b).to_summary() for b in _items("boards")]
    cards = [CardRef.model_validate(c).to_summary() for c in _items("cards")]
    members = [
        {
            "id": m.get("id"),
            "full_name": m.get("fullName"),
            "username": m.get("username"),
            "bio": m.get("bio"),
            "url": m.get("url"),
        }
        for m in _items("members")
    ]
    organizations = [
        {
            "id": o.get("id"),
            "name": o.get("name"),
            "display_name": o.get("displayName"),
            "description": o.get("desc"),
            "url": o.get("url"),
        }
        for o in _items("organizations")
    ]
    totals = {
        "boards": len(boards),
        "cards": len(cards),
        "members": len(members),
        "organizations": len(organizations),
    }

    return {
        "summary": f'Found {sum(totals.values())} result(s) for "{query}"',
        "query": query,
        "boards": boards,
        "cards": cards,
        "members": members,
        "organizations": organizations,
        "total_results": totals,
        "rate_limit": response.rate_limit_dict(),
    }
