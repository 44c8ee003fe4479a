from __future__ import annotations

from typing import Any, Dict, Optional, Union

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.models import CardCreateInput, CardRef, CardUpdateInput
from trello_mcp.core.tools._shared import require_trello_id, validate_position


async def create_card(client: TrelloClient, data: CardCreateInput) -> Dict[str, Any]:
    """Create a new card in a list (name, optional description, position, due date,
    members and labels)."""
    response = await client.create_card(data.to_payload())
    card = CardRef.model_validate(response.data)
    return {
        "summary": f"Created card: {card.name}",
        "card": card.to_summary(),
        "rate_limit": response.rate_limit_dict(),
    }


async def update_card(client: TrelloClient, data: CardUpdateInput) -> Dict[str, Any]:
    """
    Update properties of an existing card.
    Only provided fields are changed; pass due=null to remove the due date.
    """
    updates = data.to_payload()
    if not updates:
        raise ValueError("Provide at least one field to update.")

    response = await client.update_card(data.card_id, updates)
    card = CardRef.model_validate(response.data)
    return {
        "summary": f"Updated card: {card.name}",
        "card": card.to_summary(),
        "updated_fields": sorted(updates),
        "rate_limit": response.rate_limit_dict(),
    }


async def move_card(
    client: TrelloClient,
    card_id: str,
    id_list: str,
    pos: Optional[Union[float, str]] = None,
) -> Dict[str, Any]:
    """Move a card to another list (e.g. from "To Do" to "Done")."""
    require_trello_id(card_id, "card_id")
    require_trello_id(id_list, "id_list")
    validate_position(pos)

    response = await client.move_card(card_id, id_list, pos)
    card = CardRef.model_validate(response.data)
    return {
        "summary": f"Moved card: {card.name}",
        "card": card.to_summary(),
        "rate_limit": response.rate_limit_dict(),
    }


async def get_card(
    client: TrelloClient, card_id: str, include_details: bool = False
) -> Dict[str, Any]:
    """Get a card. include_details adds members, labels, checklists and badges."""
    require_trello_id(card_id, "card_id")
    response = await client.get_card(card_id, include_details)
    payload = response.data if isinstance(response.data, dict) else {}
    card = CardRef.model_validate(payload)

    result = card.to_summary()
    if include_details:
        result["checklists"] = [
            {
                "id": cl.get("id"),
                "name": cl.get("name"),
                "items": [
                    {
                        "id": item.get("id"),
                        "name": item.get("name"),
                        "state": item.get("state"),
                    }
                    for item in cl.get("checkItems") or []
                    if isinstance(item, dict)
                ],
            }
            for cl in payload.get("checklists") or []
            if isinstance(cl, dict)
        ]
        result["badges"] = payload.get("badges") or {}

    return {
        "summary": f"Card: {card.name}",
        "card": result,
        "rate_limit": response.rate_limit_dict(),
    }
