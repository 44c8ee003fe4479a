from __future__ import annotations

from typing import Any, Dict, List, Optional

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.models import CardRef
from trello_mcp.core.tools._shared import (
    as_list,
    require_choice,
    require_range,
    require_trello_id,
)

ATTACHMENT_MODES = ("cover", "true", "false")
MEMBER_MODES = ("true", "false")
CARD_FILTERS = ("all", "closed", "none", "open", "visible")
CHECK_ITEM_MODES = ("all", "none")
MAX_ACTIONS = 1000


def _attachment_summary(att: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": att.get("id"),
        "name": att.get("name"),
        "url": att.get("url"),
        "mime_type": att.get("mimeType"),
        "date": att.get("date"),
    }


async def trello_get_board_cards(
    client: TrelloClient,
    board_id: str,
    attachments: Optional[str] = None,
    members: Optional[str] = None,
    filter: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Get all cards of a board.
    - attachments: "cover", "true" or "false"
    - members: "true" to embed card members
    - filter: "all", "closed", "none", "open" or "visible"
    """
    require_trello_id(board_id, "board_id")
    if attachments is not None:
        require_choice(attachments, ATTACHMENT_MODES, "attachments")
    if members is not None:
        require_choice(members, MEMBER_MODES, "members")
    if filter is not None:
        require_choice(filter, CARD_FILTERS, "filter")

    response = await client.get_board_cards(
        board_id, attachments=attachments, members=members, filter=filter
    )
    cards = []
    for raw in as_list(response.data):
        summary = CardRef.model_validate(raw).to_summary()
        summary["attachments"] = [
            _attachment_summary(a)
            for a in raw.get("attachments") or []
            if isinstance(a, dict)
        ]
        cards.append(summary)

    return {
        "summary": f"Found {len(cards)} card(s) in board",
        "board_id": board_id,
        "cards": cards,
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_get_card_actions(
    client: TrelloClient,
    card_id: str,
    filter: Optional[str] = None,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Get the activity history of a card (comments, moves, updates).
    filter is a Trello action type list such as "commentCard,updateCard";
    limit caps the number of actions (1-1000).
    """
    require_trello_id(card_id, "card_id")
    require_range(limit, "limit", 1, MAX_ACTIONS)

    response = await client.get_card_actions(card_id, filter=filter, limit=limit)
    actions = []
    for action in as_list(response.data):
        creator = action.get("memberCreator")
        data = action.get("data") or {}
        card = data.get("card")
        lst = data.get("list")
        actions.append(
            {
                "id": action.get("id"),
                "type": action.get("type"),
                "date": action.get("date"),
                "member_creator": (
                    {
                        "id": creator.get("id"),
                        "full_name": creator.get("fullName"),
                        "username": creator.get("username"),
                    }
                    if isinstance(creator, dict)
                    else None
                ),
                "data": {
                    "text": data.get("text"),
                    "old": data.get("old"),
                    "card": (
                        {"id": card.get("id"), "name": card.get("name")}
                        if isinstance(card, dict)
                        else None
                    ),
                    "list": (
                        {"id": lst.get("id"), "name": lst.get("name")}
                        if isinstance(lst, dict)
                        else None
                    ),
                },
            }
        )

    return {
        "summary": f"Found {len(actions)} action(s) for card",
        "card_id": card_id,
        "actions": actions,
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_get_card_attachments(
    client: TrelloClient, card_id: str, fields: Optional[List[str]] = None
) -> Dict[str, Any]:
    """Get the files and links attached to a card."""
    require_trello_id(card_id, "card_id")
    response = await client.get_card_attachments(card_id, fields=fields)

    attachments = []
    for att in as_list(response.data):
        summary = _attachment_summary(att)
        summary.update(
            bytes=att.get("bytes"),
            is_upload=att.get("isUpload"),
            previews=[
                {
                    "id": p.get("id"),
                    "width": p.get("width"),
                    "height": p.get("height"),
                    "url": p.get("url"),
                }
                for p in att.get("previews") or []
                if isinstance(p, dict)
            ],
        )
        attachments.append(summary)

    return {
        "summary": f"Found {len(attachments)} attachment(s) for card",
        "card_id": card_id,
        "attachments": attachments,
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_get_card_checklists(
    client: TrelloClient,
    card_id: str,
    check_items: Optional[str] = None,
    fields: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Get the checklists of a card. check_items: "all" (default) or "none"."""
    require_trello_id(card_id, "card_id")
    if check_items is not None:
        require_choice(check_items, CHECK_ITEM_MODES, "check_items")

    response = await client.get_card_checklists(
        card_id, check_items=check_items, fields=fields
    )
    checklists = [
        {
            "id": cl.get("id"),
            "name": cl.get("name"),
            "position": cl.get("pos"),
            "check_items": [
                {
                    "id": item.get("id"),
                    "name": item.get("name"),
                    "state": item.get("state"),
                    "position": item.get("pos"),
                    "due": item.get("due"),
                }
                for item in cl.get("checkItems") or []
                if isinstance(item, dict)
            ],
        }
        for cl in as_list(response.data)
    ]

    return {
        "summary": f"Found {len(checklists)} checklist(s) for card",
        "card_id": card_id,
        "checklists": checklists,
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_get_board_members(
    client: TrelloClient, board_id: str
) -> Dict[str, Any]:
    """Get the members of a board with their role on it."""
    require_trello_id(board_id, "board_id")
    response = await client.get_board_members(board_id)
    members = [
        {
            "id": m.get("id"),
            "full_name": m.get("fullName"),
            "username": m.get("username"),
            "member_type": m.get("memberType"),
            "confirmed": m.get("confirmed"),
            "avatar_url": m.get("avatarUrl"),
            "initials": m.get("initials"),
        }
        for m in as_list(response.data)
    ]

    return {
        "summary": f"Found {len(members)} member(s) on board",
        "board_id": board_id,
        "members": members,
        "rate_limit": response.rate_limit_dict(),
    }
