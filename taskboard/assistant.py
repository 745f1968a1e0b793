"""
Chat assistant session.

State (persisted as one JSON record, rewritten after every change):

  messages       - transcript of ChatBubbles
  isOpen         - panel shown
  isMinimized    - panel collapsed to its header
  isInitialized  - welcome bubble already injected

The welcome bubble is local only; it is never sent to the backend.
"""
import logging
import time
import uuid
from typing import List, Optional

from .api import ApiClient
from .errors import ApiError
from .notifications import Notifier
from .schema import ChatBubble, ChatRole
from .store import LocalStore, CHAT_STATE_KEY

logger = logging.getLogger(__name__)

WELCOME_ID = "welcome"

WELCOME_TEMPLATE = """Hey **{username}**! 👋

I can see you've got **{board_count} board{plural}** going on, and I can peek at all your tasks too! Think of me as your organizing buddy who's here to help you make sense of everything.

I'm pretty good at:
- **Looking at your tasks** and helping you figure out what's urgent
- **Suggesting ways** to organize your workflow better
- **Helping you prioritize** when things feel overwhelming
- **Just chatting** about your projects and what's on your mind

What's going on with your tasks today? Anything stressing you out or need help with? 😊"""


def make_message_id() -> str:
    """Sortable unique bubble id (ms timestamp + random hex)."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def welcome_message(username: Optional[str], board_count: int) -> ChatBubble:
    return ChatBubble(
        id=WELCOME_ID,
        role=ChatRole.ASSISTANT,
        content=WELCOME_TEMPLATE.format(
            username=username or "there",
            board_count=board_count,
            plural="" if board_count == 1 else "s",
        ),
    )


class AssistantSession:
    """Conversation log plus panel visibility, rehydrated from the local store."""

    def __init__(
        self,
        api: ApiClient,
        store: LocalStore,
        notifier: Optional[Notifier] = None,
        storage_key: str = CHAT_STATE_KEY,
    ):
        self.api = api
        self.store = store
        self.notifier = notifier or Notifier()
        self.storage_key = storage_key

        self.messages: List[ChatBubble] = []
        self.is_open = False
        self.is_minimized = False
        self.is_initialized = False
        self.is_loading = False
        self._rehydrate()

    # ──────────────────────────────────────────
    # Persistence
    # ──────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "isOpen": self.is_open,
            "isMinimized": self.is_minimized,
            "messages": [m.to_dict() for m in self.messages],
            "isInitialized": self.is_initialized,
        }

    def _rehydrate(self) -> None:
        saved = self.store.get_json(self.storage_key)
        if saved is None:
            return
        try:
            self.is_open = bool(saved.get("isOpen", False))
            self.is_minimized = bool(saved.get("isMinimized", False))
            self.is_initialized = bool(saved.get("isInitialized", False))
            self.messages = [ChatBubble.from_dict(m) for m in saved.get("messages") or []]
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse saved chat state: {e}")
            self.messages = []
            self.is_open = self.is_minimized = self.is_initialized = False

    def _save(self) -> None:
        self.store.set_json(self.storage_key, self.to_dict())

    # ──────────────────────────────────────────
    # Panel visibility
    # ──────────────────────────────────────────

    def open(self, username: Optional[str] = None, board_count: int = 0) -> None:
        """Show the panel; the first open of an empty session adds the welcome bubble."""
        self.is_open = True
        self.is_minimized = False
        if not self.messages and not self.is_initialized:
            self.messages = [welcome_message(username, board_count)]
            self.is_initialized = True
        self._save()

    def close(self) -> None:
        self.is_open = False
        self._save()

    def minimize(self) -> None:
        self.is_minimized = True
        self._save()

    def expand(self) -> None:
        self.is_minimized = False
        self._save()

    def clear(self) -> None:
        """Drop the transcript; the next open greets again."""
        self.messages = []
        self.is_initialized = False
        self._save()

    # ──────────────────────────────────────────
    # Conversation
    # ──────────────────────────────────────────

    def context_messages(self) -> List[dict]:
        """Transcript in wire form, without the welcome bubble."""
        return [m.to_message() for m in self.messages if m.id != WELCOME_ID]

    def send(self, text: str) -> Optional[ChatBubble]:
        """
        Append a user entry, ask the backend to complete the conversation,
        append the reply. Returns the assistant bubble, or None when the
        input was ignored or the call failed.
        """
        content = (text or "").strip()
        if not content or self.is_loading:
            return None

        history = self.context_messages()
        user_message = ChatBubble(id=make_message_id(), role=ChatRole.USER, content=content)
        self.messages.append(user_message)
        self._save()

        self.is_loading = True
        try:
            reply = self.api.chat(history + [user_message.to_message()])
        except ApiError as e:
            self.notifier.error(e.describe("Failed to get AI response"))
            return None
        finally:
            self.is_loading = False

        assistant_message = ChatBubble(
            id=make_message_id(), role=ChatRole.ASSISTANT, content=reply
        )
        self.messages.append(assistant_message)
        self._save()
        return assistant_message
