"""
Board aggregate schema.

  Board → Column[] → Card[]

The backend speaks camelCase JSON with Mongo-style `_id` keys. Every type
here decodes from that shape (`from_dict`) and encodes back to it
(`to_dict`). Column and card lists are kept sorted by `position`.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


class Priority(Enum):
    """Card priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "Priority":
        try:
            return cls[(value or "").upper()]
        except KeyError:
            return cls.MEDIUM


class ChatRole(Enum):
    """Author of a chat transcript entry."""
    USER = "user"
    ASSISTANT = "assistant"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (a trailing `Z` is accepted). None passes through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Member:
    """Read-only projection of a user, used for display and search-to-add."""
    id: str
    username: str
    email: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"_id": self.id, "username": self.username, "email": self.email}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            username=data.get("username", ""),
            email=data.get("email", ""),
        )


@dataclass
class Card:
    """A single card inside a column."""

    id: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    assigned_to: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    position: int = 0                   # zero-based rank within its column
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "dueDate": format_timestamp(self.due_date),
            "assignedTo": list(self.assigned_to),
            "labels": list(self.labels),
            "position": self.position,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            title=data.get("title", ""),
            description=data.get("description") or "",
            priority=Priority.from_str(data.get("priority")),
            due_date=parse_timestamp(data.get("dueDate")),
            assigned_to=list(data.get("assignedTo") or []),
            labels=list(data.get("labels") or []),
            position=int(data.get("position") or 0),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class Column:
    """An ordered list of cards with an optional capacity limit."""

    id: str
    title: str
    color: Optional[str] = None
    limit: Optional[int] = None
    position: int = 0
    cards: List[Card] = field(default_factory=list)

    @property
    def is_over_limit(self) -> bool:
        """True when the column holds more cards than its limit allows."""
        return self.limit is not None and len(self.cards) > self.limit

    def index_of(self, card_id: str) -> int:
        """Index of a card in this column, or -1."""
        for i, card in enumerate(self.cards):
            if card.id == card_id:
                return i
        return -1

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "_id": self.id,
            "title": self.title,
            "color": self.color,
            "position": self.position,
            "cards": [c.to_dict() for c in self.cards],
        }
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        cards = [Card.from_dict(c) for c in data.get("cards") or []]
        cards.sort(key=lambda c: c.position)
        limit = data.get("limit")
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            title=data.get("title", ""),
            color=data.get("color"),
            limit=int(limit) if limit not in (None, "") else None,
            position=int(data.get("position") or 0),
            cards=cards,
        )


@dataclass
class Board:
    """The whole aggregate shown on a board page."""

    id: str
    title: str
    description: str = ""
    background_color: Optional[str] = None
    notes: str = ""
    is_public: bool = False
    columns: List[Column] = field(default_factory=list)
    members: List[Member] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def find_column(self, column_id: str) -> Optional[Column]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def find_card(self, card_id: str) -> Optional[Card]:
        for column in self.columns:
            for card in column.cards:
                if card.id == card_id:
                    return card
        return None

    def column_of(self, card_id: str) -> Optional[Column]:
        """Column currently containing the card, or None."""
        for column in self.columns:
            if column.index_of(card_id) >= 0:
                return column
        return None

    @property
    def card_count(self) -> int:
        return sum(len(c.cards) for c in self.columns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "title": self.title,
            "description": self.description,
            "backgroundColor": self.background_color,
            "notes": self.notes,
            "isPublic": self.is_public,
            "columns": [c.to_dict() for c in self.columns],
            "members": [m.to_dict() for m in self.members],
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        columns = [Column.from_dict(c) for c in data.get("columns") or []]
        columns.sort(key=lambda c: c.position)
        # The list endpoint may return bare member ids instead of objects
        members = [
            Member.from_dict(m) if isinstance(m, dict) else Member(id=str(m), username="")
            for m in data.get("members") or []
        ]
        return cls(
            id=str(data.get("_id") or data.get("id") or ""),
            title=data.get("title", ""),
            description=data.get("description") or "",
            background_color=data.get("backgroundColor"),
            notes=data.get("notes") or "",
            is_public=bool(data.get("isPublic", False)),
            columns=columns,
            members=members,
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class ChatBubble:
    """One entry in the assistant transcript."""

    id: str
    role: ChatRole
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> Dict[str, str]:
        """Wire form sent to the chat completion endpoint."""
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatBubble":
        return cls(
            id=str(data.get("id", "")),
            role=ChatRole(data.get("role", "user")),
            content=data.get("content", ""),
            timestamp=parse_timestamp(data.get("timestamp")) or datetime.now(timezone.utc),
        )
