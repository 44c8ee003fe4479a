from __future__ import annotations

from typing import Any, Dict, List, Optional

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.models import BoardRef, OrganizationRef
from trello_mcp.core.tools._shared import LIST_FILTERS, require_choice

_MEMBER_BOARD_FILTERS = ("all", "open", "closed", "members", "organization", "public")


def _organization_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    org = OrganizationRef.model_validate(data)
    return {
        "id": org.id,
        "name": org.name,
        "display_name": org.display_name,
        "description": data.get("desc"),
        "url": org.url,
    }


def _board_summary(board: BoardRef) -> Dict[str, Any]:
    summary = board.to_summary()
    summary["permissions"] = board.prefs.get("permissionLevel") or "unknown"
    return summary


def _member_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": data.get("id"),
        "full_name": data.get("fullName"),
        "username": data.get("username"),
        "bio": data.get("bio"),
        "url": data.get("url"),
        "member_type": data.get("memberType"),
        "confirmed": data.get("confirmed"),
    }


async def trello_get_user_boards(
    client: TrelloClient, filter: str = "open"
) -> Dict[str, Any]:
    """Get the current user's profile together with their boards and workspaces."""
    require_choice(filter, LIST_FILTERS, "filter")
    response = await client.get_current_user()
    user = response.data if isinstance(response.data, dict) else {}

    boards = [
        BoardRef.model_validate(b)
        for b in user.get("boards") or []
        if isinstance(b, dict)
    ]
    if filter == "open":
        boards = [b for b in boards if not b.closed]
    elif filter == "closed":
        boards = [b for b in boards if b.closed]

    return {
        "summary": f"User: {user.get('fullName') or user.get('username')}",
        "user": _member_profile(user),
        "boards": [_board_summary(b) for b in boards],
        "organizations": [
            _organization_summary(o)
            for o in user.get("organizations") or []
            if isinstance(o, dict)
        ],
        "rate_limit": response.rate_limit_dict(),
    }


async def trello_get_member(
    client: TrelloClient,
    member_id: str,
    fields: Optional[List[str]] = None,
    include_boards: Optional[str] = None,
    include_organizations: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Get a member by id or username ("me" for the current user).
    include_boards / include_organizations take a Trello filter such as "open"
    or "all" and embed those collections in the result.
    """
    if not member_id or not member_id.strip():
        raise ValueError("member_id is required")
    if include_boards is not None:
        require_choice(include_boards, _MEMBER_BOARD_FILTERS, "include_boards")

    response = await client.get_member(
        member_id,
        fields=fields,
        boards=include_boards,
        organizations=include_organizations,
    )
    member = response.data if isinstance(response.data, dict) else {}

    result: Dict[str, Any] = {
        "summary": f"Member: {member.get('fullName') or member.get('username')}",
        "member": {
            **_member_profile(member),
            "avatar_url": member.get("avatarUrl"),
            "initials": member.get("initials"),
        },
    }
    if include_boards:
        result["boards"] = [
            _board_summary(BoardRef.model_validate(b))
            for b in member.get("boards") or []
            if isinstance(b, dict)
        ]
    if include_organizations:
        result["organizations"] = [
            _organization_summary(o)
            for o in member.get("organizations") or []
            if isinstance(o, dict)
        ]
    result["rate_limit"] = response.rate_limit_dict()
    return result
