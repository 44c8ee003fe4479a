import json

import pytest
import respx
from httpx import Response
from trello_mcp.core.client import TrelloClient, TrelloCredentials
from trello_mcp.core.tools.lists import (
    trello_add_comment,
    trello_create_list,
    trello_get_list_cards,
)

BASE = "https://api.trello.com/1"
BOARD_ID = "5f1b2c3d4e5f6a7b8c9d0e1f"
LIST_ID = "6a1b2c3d4e5f6a7b8c9d0e11"
CARD_ID = "7b1b2c3d4e5f6a7b8c9d0e21"


@pytest.fixture
def client():
    return TrelloClient(TrelloCredentials(api_key="mock-key", token="mock-token"))


@pytest.mark.asyncio
@respx.mock
async def test_get_list_cards(client):
    route = respx.get(f"{BASE}/lists/{LIST_ID}/cards").mock(
        return_value=Response(
            200, json=[{"id": CARD_ID, "name": "Task", "idList": LIST_ID}]
        )
    )

    result = await trello_get_list_cards(client, LIST_ID)

    assert route.calls[0].request.url.params["filter"] == "open"
    assert result["summary"] == "Found 1 open card(s) in list"
    assert result["cards"][0]["name"] == "Task"


@pytest.mark.asyncio
@respx.mock
async def test_get_list_cards_with_field_subset(client):
    route = respx.get(f"{BASE}/lists/{LIST_ID}/cards").mock(
        return_value=Response(200, json=[{"id": CARD_ID, "due": None}])
    )

    result = await trello_get_list_cards(client, LIST_ID, fields=["due"])

    assert route.calls[0].request.url.params["fields"] == "due"
    assert result["cards"] == [{"id": CARD_ID, "due": None}]


@pytest.mark.asyncio
@respx.mock
async def test_create_list(client):
    route = respx.post(f"{BASE}/lists").mock(
        return_value=Response(
            200,
            json={"id": LIST_ID, "name": "Review", "pos": 1024, "idBoard": BOARD_ID},
        )
    )

    result = await trello_create_list(client, "Review", BOARD_ID, pos=1024)

    body = json.loads(route.calls[0].request.content)
    assert body == {"name": "Review", "idBoard": BOARD_ID, "pos": 1024}
    assert result["summary"] == "Created list: Review"
    assert result["list"]["board_id"] == BOARD_ID


@pytest.mark.asyncio
async def test_create_list_requires_name(client):
    with pytest.raises(ValueError, match="name"):
        await trello_create_list(client, "  ", BOARD_ID)


@pytest.mark.asyncio
@respx.mock
async def test_add_comment(client):
    route = respx.post(f"{BASE}/cards/{CARD_ID}/actions/comments").mock(
        return_value=Response(
            200,
            json={
                "id": "a1",
                "date": "2024-05-01T10:00:00.000Z",
                "data": {"text": "Looks good", "card": {"id": CARD_ID, "name": "T"}},
                "memberCreator": {"id": "m1", "fullName": "Ada", "username": "ada"},
            },
        )
    )

    result = await trello_add_comment(client, CARD_ID, "Looks good")

    assert json.loads(route.calls[0].request.content) == {"text": "Looks good"}
    assert result["comment"]["text"] == "Looks good"
    assert result["comment"]["author"]["username"] == "ada"
    assert result["comment"]["card"]["id"] == CARD_ID


@pytest.mark.asyncio
async def test_add_comment_requires_text(client):
    with pytest.raises(ValueError, match="text"):
        await trello_add_comment(client, CARD_ID, "")
