from __future__ import annotations

from typing import Any, Dict, Optional

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.models import MAX_TEXT_LENGTH, LabelRef
from trello_mcp.core.tools._shared import as_list, require_choice, require_trello_id

LABEL_COLORS = (
    "green",
    "yellow",
    "orange",
    "red",
    "purple",
    "blue",
    "sky",
    "lime",
    "pink",
    "black",
)


def _check_color(color: Optional[str]) -> Optional[str]:
    if color is not None:
        require_choice(color, LABEL_COLORS, "color")
    return color


def _check_name(name: str) -> str:
    if len(name) > MAX_TEXT_LENGTH:
        raise ValueError(f"name must be at most {MAX_TEXT_LENGTH} characters")
    return name


async def trello_get_board_labels(
    client: TrelloClient, board_id: str
) -> Dict[str, Any]:
    """Get the labels defined on a board, with how often each is used."""
    require_trello_id(board_id, "board_id")
    response = await client.get_board_labels(board_id)
    labels = [
        {**LabelRef.model_validate(raw).model_dump(), "uses": raw.get("uses")}
        for raw in as_list(response.data)
    ]

    return {
        "summary": f"Found {len(labels)} label(s) on board",
        "board_id": board_id,
        "labels": labels,
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_create_label(
    client: TrelloClient, board_id: str, name: str, color: Optional[str] = None
) -> Dict[str, Any]:
    """Create a label on a board. Omit color for a colorless label."""
    require_trello_id(board_id, "board_id")
    _check_name(name)
    _check_color(color)

    response = await client.create_label(board_id, name, color)
    label = LabelRef.model_validate(response.data)
    return {
        "summary": f'Created label "{label.name or name}"',
        "label": label.model_dump(),
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_update_label(
    client: TrelloClient,
    label_id: str,
    name: Optional[str] = None,
    color: Optional[str] = None,
) -> Dict[str, Any]:
    """Rename or recolor an existing label."""
    require_trello_id(label_id, "label_id")
    if name is None and color is None:
        raise ValueError("Provide name or color to update.")
    if name is not None:
        _check_name(name)
    _check_color(color)

    response = await client.update_label(label_id, name=name, color=color)
    label = LabelRef.model_validate(response.data)
    return {
        "summary": f'Updated label "{label.name or label.id}"',
        "label": label.model_dump(),
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_add_label_to_card(
    client: TrelloClient, card_id: str, label_id: str
) -> Dict[str, Any]:
    """Attach an existing board label to a card."""
    require_trello_id(card_id, "card_id")
    require_trello_id(label_id, "label_id")

    response = await client.add_label_to_card(card_id, label_id)
    label_ids = response.data if isinstance(response.data, list) else []
    return {
        "summary": f"Added label {label_id} to card {card_id}",
        "card_id": card_id,
        "label_ids": label_ids,
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_remove_label_from_card(
    client: TrelloClient, card_id: str, label_id: str
) -> Dict[str, Any]:
    """Detach a label from a card. The label itself stays on the board."""
    require_trello_id(card_id, "card_id")
    require_trello_id(label_id, "label_id")

    response = await client.remove_label_from_card(card_id, label_id)
    return {
        "summary": f"Removed label {label_id} from card {card_id}",
        "card_id": card_id,
        "label_id": label_id,
        "rate_limit": response.rate_limit_dict(),
    }
