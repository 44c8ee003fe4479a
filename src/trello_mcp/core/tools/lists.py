from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.models import CardRef, ListRef
from trello_mcp.core.tools._shared import (
    LIST_FILTERS,
    as_list,
    require_choice,
    require_trello_id,
    validate_position,
)


async def trello_get_list_cards(
    client: TrelloClient,
    list_id: str,
    filter: str = "open",
    fields: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Get all cards in a list.
    - filter: "open", "closed" or "all"
    - fields: optional subset of card fields to fetch (e.g. ["name", "due"])
    """
    require_trello_id(list_id, "list_id")
    require_choice(filter, LIST_FILTERS, "filter")

    response = await client.get_list_cards(list_id, filter=filter, fields=fields)
    raw_cards = as_list(response.data)
    # a field subset may omit what CardRef needs; pass those through untouched
    cards = (
        raw_cards
        if fields
        else [CardRef.model_validate(c).to_summary() for c in raw_cards]
    )

    return {
        "summary": f"Found {len(cards)} {filter} card(s) in list",
        "list_id": list_id,
        "cards": cards,
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_create_list(
    client: TrelloClient,
    name: str,
    id_board: str,
    pos: Optional[Union[float, str]] = None,
) -> Dict[str, Any]:
    """Create a new list (workflow column) on a board."""
    if not name or not name.strip():
        raise ValueError("List name is required")
    require_trello_id(id_board, "id_board")
    validate_position(pos)

    response = await client.create_list(name, id_board, pos)
    created = ListRef.model_validate(response.data)

    return {
        "summary": f"Created list: {created.name}",
        "list": {**created.to_summary(), "board_id": created.id_board},
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_add_comment(
    client: TrelloClient, card_id: str, text: str
) -> Dict[str, Any]:
    """Add a comment to a card."""
    require_trello_id(card_id, "card_id")
    if not text or not text.strip():
        raise ValueError("Comment text is required")

    response = await client.add_comment_to_card(card_id, text)
    comment = response.data if isinstance(response.data, dict) else {}
    creator = comment.get("memberCreator") or {}
    data = comment.get("data") or {}

    return {
        "summary": "Comment added",
        "comment": {
            "id": comment.get("id"),
            "text": data.get("text", text),
            "date": comment.get("date"),
            "author": {
                "id": creator.get("id"),
                "full_name": creator.get("fullName"),
                "username": creator.get("username"),
            },
            "card": {
                "id": (data.get("card") or {}).get("id", card_id),
                "name": (data.get("card") or {}).get("name"),
            },
        },
        "rate_limit": response.rate_limit_dict(),
    }
