from __future__ import annotations

from typing import Any, Dict

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.models import BoardRef, ListRef
from trello_mcp.core.tools._shared import (
    LIST_FILTERS,
    as_list,
    require_choice,
    require_trello_id,
)


async def list_boards(client: TrelloClient, filter: str = "open") -> Dict[str, Any]:
    """
    List all Trello boards accessible to the user.
    filter: "open" for active boards, "closed" for archived boards, "all" for both.
    """
    require_choice(filter, LIST_FILTERS, "filter")
    response = await client.get_my_boards(filter)
    boards = [BoardRef.model_validate(b) for b in as_list(response.data)]

    return {
        "summary": f"Found {len(boards)} {filter} board(s)",
        "boards": [b.to_summary() for b in boards],
        "rate_limit": response.rate_limit_dict(),
    }


async def get_board_details(
    client: TrelloClient, board_id: str, include_details: bool = False
) -> Dict[str, Any]:
    """
    Get a specific board. With include_details, also return its open lists and
    cards for a complete overview.
    """
    require_trello_id(board_id, "board_id")
    response = await client.get_board(board_id, include_details)
    board = BoardRef.model_validate(response.data)

    summary = board.to_summary()
    summary["permissions"] = board.prefs.get("permissionLevel") or "unknown"
    if include_details:
        summary["lists"] = [lst.to_summary() for lst in board.lists or []]
        summary["cards"] = [card.to_summary() for card in board.cards or []]

    return {
        "summary": f"Board: {board.name}",
        "board": summary,
        "rate_limit": response.rate_limit_dict(),
    }


async def get_lists(
    client: TrelloClient, board_id: str, filter: str = "open"
) -> Dict[str, Any]:
    """Get the lists (workflow columns such as "To Do" or "Done") of a board."""
    require_trello_id(board_id, "board_id")
    require_choice(filter, LIST_FILTERS, "filter")
    response = await client.get_board_lists(board_id, filter)
    lists = [ListRef.model_validate(item) for item in as_list(response.data)]

    return {
        "summary": f"Found {len(lists)} {filter} list(s) in board",
        "board_id": board_id,
        "lists": [
            {**lst.to_summary(), "subscribed": lst.subscribed} for lst in lists
        ],
        "rate_limit": response.rate_limit_dict(),
    }
