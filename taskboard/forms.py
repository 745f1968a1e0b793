"""
Form objects for board, column, card and profile input.

`validate()` raises ValidationError before anything touches the network;
`to_payload()` produces the request body the backend expects.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional, Dict, Any, List, Union

from .errors import ValidationError
from .schema import Card, Priority

DEFAULT_COLOR = "#007bff"
COLOR_RE = re.compile(r"#[0-9a-fA-F]{6}")

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def _require_title(title: str, what: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError(f"{what} title is required")
    return title


def _check_color(color: Optional[str]) -> None:
    if color and not COLOR_RE.fullmatch(color):
        raise ValidationError(f"Invalid color: '{color}' (expected #rrggbb)")


@dataclass
class ColumnForm:
    title: str = ""
    color: str = DEFAULT_COLOR
    limit: Union[int, str, None] = None

    def validate(self) -> None:
        _require_title(self.title, "Column")
        _check_color(self.color)
        if self.limit in (None, ""):
            return
        try:
            limit = int(self.limit)
        except (ValueError, TypeError):
            raise ValidationError(f"Card limit must be an integer, got: '{self.limit}'")
        if limit < 1:
            raise ValidationError(f"Card limit must be >= 1, got: {limit}")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"title": self.title.strip(), "color": self.color}
        if self.limit not in (None, ""):
            payload["limit"] = int(self.limit)
        return payload


@dataclass
class CardForm:
    title: str = ""
    description: str = ""
    priority: Union[Priority, str] = Priority.MEDIUM
    due_date: str = ""      # YYYY-MM-DD, empty for none

    @classmethod
    def from_card(cls, card: Card) -> "CardForm":
        """Pre-fill an edit form; the due date keeps only its date part."""
        return cls(
            title=card.title,
            description=card.description or "",
            priority=card.priority,
            due_date=card.due_date.date().isoformat() if card.due_date else "",
        )

    @property
    def priority_value(self) -> str:
        if isinstance(self.priority, Priority):
            return self.priority.value
        return str(self.priority)

    def validate(self) -> None:
        _require_title(self.title, "Card")
        allowed = [p.value for p in Priority]
        if self.priority_value not in allowed:
            raise ValidationError(
                f"Invalid priority: '{self.priority_value}'. Allowed: {', '.join(allowed)}"
            )
        if self.due_date:
            try:
                date.fromisoformat(self.due_date)
            except ValueError:
                raise ValidationError(f"Invalid due date: '{self.due_date}' (expected YYYY-MM-DD)")

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "title": self.title.strip(),
            "description": self.description,
            "priority": self.priority_value,
        }
        if self.due_date:
            payload["dueDate"] = self.due_date
        return payload

    def to_update_payload(self) -> Dict[str, Any]:
        """Edit body: a blank due date is sent as null so the server clears it."""
        payload = self.to_payload()
        payload["dueDate"] = self.due_date or None
        return payload


@dataclass
class BoardForm:
    title: str = ""
    description: str = ""
    background_color: str = DEFAULT_COLOR
    is_public: bool = False

    def validate(self) -> None:
        _require_title(self.title, "Board")
        _check_color(self.background_color)

    def to_payload(self, member_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        return {
            "title": self.title.strip(),
            "description": self.description,
            "backgroundColor": self.background_color,
            "isPublic": self.is_public,
            "members": list(member_ids or []),
        }


@dataclass
class ProfileForm:
    username: str = ""
    current_password: str = ""
    new_password: str = ""
    confirm_password: str = ""

    @property
    def wants_password_change(self) -> bool:
        return bool(self.new_password)

    def validate(self) -> None:
        if len(self.username.strip()) < MIN_USERNAME_LENGTH:
            raise ValidationError(
                f"Username must be at least {MIN_USERNAME_LENGTH} characters"
            )
        if not self.wants_password_change:
            return
        if not self.current_password:
            raise ValidationError("Current password is required")
        if len(self.new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        if self.new_password != self.confirm_password:
            raise ValidationError("New passwords do not match")
