from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

TRELLO_ID_PATTERN = r"^[a-fA-F0-9]{24}$"

TrelloId = Annotated[str, StringConstraints(pattern=TRELLO_ID_PATTERN)]
Position = Union[Annotated[float, Field(ge=0)], Literal["top", "bottom"]]

MAX_TEXT_LENGTH = 16384

# CardUpdateInput attribute -> Trello field
_CARD_UPDATE_FIELDS = {
    "name": "name",
    "desc": "desc",
    "closed": "closed",
    "due_complete": "dueComplete",
    "id_list": "idList",
    "pos": "pos",
    "id_members": "idMembers",
    "id_labels": "idLabels",
}


# --- Reference Models (API payloads) ---


class LabelRef(BaseModel):
    id: str
    name: Optional[str] = None
    color: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class MemberRef(BaseModel):
    id: str
    full_name: Optional[str] = Field(default=None, alias="fullName")
    username: Optional[str] = None
    member_type: Optional[str] = Field(default=None, alias="memberType")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "username": self.username,
        }


class ListRef(BaseModel):
    id: str
    name: str
    closed: bool = False
    pos: Optional[float] = None
    subscribed: Optional[bool] = None
    id_board: Optional[str] = Field(default=None, alias="idBoard")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.pos,
            "closed": self.closed,
        }


class CardRef(BaseModel):
    id: str
    name: str
    desc: str = ""
    closed: bool = False
    short_url: Optional[str] = Field(default=None, alias="shortUrl")
    pos: Optional[float] = None
    id_board: Optional[str] = Field(default=None, alias="idBoard")
    id_list: Optional[str] = Field(default=None, alias="idList")
    due: Optional[str] = None
    due_complete: bool = Field(default=False, alias="dueComplete")
    date_last_activity: Optional[str] = Field(default=None, alias="dateLastActivity")
    labels: List[LabelRef] = Field(default_factory=list)
    members: List[MemberRef] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.desc or "No description",
            "url": self.short_url,
            "list_id": self.id_list,
            "board_id": self.id_board,
            "position": self.pos,
            "due": self.due,
            "due_complete": self.due_complete,
            "closed": self.closed,
            "last_activity": self.date_last_activity,
            "labels": [label.model_dump() for label in self.labels],
            "members": [m.to_summary() for m in self.members],
        }


class BoardRef(BaseModel):
    id: str
    name: str
    desc: str = ""
    closed: bool = False
    short_url: Optional[str] = Field(default=None, alias="shortUrl")
    date_last_activity: Optional[str] = Field(default=None, alias="dateLastActivity")
    prefs: Dict[str, Any] = Field(default_factory=dict)
    lists: Optional[List[ListRef]] = None
    cards: Optional[List[CardRef]] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.desc or "No description",
            "url": self.short_url,
            "last_activity": self.date_last_activity,
            "closed": self.closed,
        }


class OrganizationRef(BaseModel):
    id: str
    name: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    url: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Input Models (Tool Payloads) ---


class CardCreateInput(BaseModel):
    name: Annotated[str, StringConstraints(min_length=1, max_length=MAX_TEXT_LENGTH)]
    id_list: TrelloId
    desc: Optional[Annotated[str, StringConstraints(max_length=MAX_TEXT_LENGTH)]] = None
    pos: Optional[Position] = None
    due: Optional[datetime] = None
    id_members: Optional[List[TrelloId]] = None
    id_labels: Optional[List[TrelloId]] = None

    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "idList": self.id_list}
        if self.desc is not None:
            payload["desc"] = self.desc
        if self.pos is not None:
            payload["pos"] = self.pos
        if self.due is not None:
            payload["due"] = self.due.isoformat()
        if self.id_members is not None:
            payload["idMembers"] = self.id_members
        if self.id_labels is not None:
            payload["idLabels"] = self.id_labels
        return payload


class CardUpdateInput(BaseModel):
    """Only fields that are explicitly set are sent; `due=None` clears the date."""

    card_id: TrelloId
    name: Optional[
        Annotated[str, StringConstraints(min_length=1, max_length=MAX_TEXT_LENGTH)]
    ] = None
    desc: Optional[Annotated[str, StringConstraints(max_length=MAX_TEXT_LENGTH)]] = None
    closed: Optional[bool] = None
    due: Optional[datetime] = None
    due_complete: Optional[bool] = None
    id_list: Optional[TrelloId] = None
    pos: Optional[Position] = None
    id_members: Optional[List[TrelloId]] = None
    id_labels: Optional[List[TrelloId]] = None

    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for attr, wire in _CARD_UPDATE_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                payload[wire] = value
        if "due" in self.model_fields_set:
            payload["due"] = self.due.isoformat() if self.due else None
        return payload


__all__ = [
    "TRELLO_ID_PATTERN",
    "TrelloId",
    "Position",
    "LabelRef",
    "MemberRef",
    "ListRef",
    "CardRef",
    "BoardRef",
    "OrganizationRef",
    "CardCreateInput",
    "CardUpdateInput",
]
