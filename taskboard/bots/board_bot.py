#!/usr/bin/env python3
"""
Taskboard Board Bot
───────────────────
Drives boards, columns, cards and the chat assistant from Telegram.

Setup:
    export TASKBOARD_BOT_TOKEN=your_token_here
    export TASKBOARD_API_TOKEN=backend_jwt     # optional, else stored login
    taskboard-bot

Commands:
    /boards
    /newboard <title…> [color=#rrggbb] [public=yes|no]
    /delboard <board_id>                       (confirm)
    /open <board_id>
    /addcolumn <title…> [color=#rrggbb] [limit=N]
    /delcolumn <column_id>                     (confirm)
    /addcard <column_id> <title…> [priority=…] [due=YYYY-MM-DD]
    /editcard <card_id> [title…] [priority=…] [due=YYYY-MM-DD|none]
    /delcard <card_id>                         (confirm)
    /move <card_id> <column_id> <index>
    /notes [text…]
    /members [query…]
    /chat [open|close|minimize|expand]
    /ask <text…>
    /clearchat                                 (confirm)
    /help
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from telegram import Update

from taskboard.assistant import AssistantSession
from taskboard.board_view import BoardController
from taskboard.config import CONFIG_PATH
from taskboard.dashboard import DashboardController
from taskboard.errors import ConfigError, ValidationError
from taskboard.forms import BoardForm, CardForm, ColumnForm
from taskboard.notifications import Notification, Notifier
from taskboard.schema import Board, Card, ChatRole, Member, Priority
from taskboard.store import CHAT_STATE_KEY

from .bot_base import BotBase

logger = logging.getLogger(__name__)

PRIORITY_EMOJI = {
    Priority.LOW: "🟢",
    Priority.MEDIUM: "🟡",
    Priority.HIGH: "🟠",
    Priority.URGENT: "🔴",
}

TRANSCRIPT_TAIL = 6


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Formatting
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def format_card(card: Card) -> str:
    """One line per card: priority, id, title, due date."""
    line = f"  {PRIORITY_EMOJI.get(card.priority, '⚪')} [{card.id}] {card.title}"
    if card.due_date:
        line += f" (due {card.due_date.date().isoformat()})"
    return line


def format_board(board: Board) -> str:
    """Render a board as columns of cards, in display order."""
    lines = [f"📋 {board.title} [{board.id}]"]
    if board.description:
        lines.append(board.description)

    if not board.columns:
        lines.append("\nNo columns yet. Add one with /addcolumn <title>")

    for column in board.columns:
        count = f"{len(column.cards)}/{column.limit}" if column.limit else str(len(column.cards))
        warn = " ⚠️" if column.is_over_limit else ""
        lines.append(f"\n▸ {column.title} ({count}){warn} [{column.id}]")
        if not column.cards:
            lines.append("  (empty)")
        for card in column.cards:
            lines.append(format_card(card))

    return "\n".join(lines)


def format_board_list(boards: List[Board]) -> str:
    if not boards:
        return "No boards yet. Create one with /newboard <title>"

    lines = [f"📋 Boards ({len(boards)}):"]
    for board in boards:
        lock = "🌐" if board.is_public else "🔒"
        lines.append(f"{lock} [{board.id}] {board.title}")
    return "\n".join(lines)


def format_members(members: List[Member], heading: str) -> str:
    if not members:
        return f"{heading}: none"
    lines = [f"{heading}:"]
    for member in members:
        email = f" <{member.email}>" if member.email else ""
        lines.append(f"👤 [{member.id}] {member.username}{email}")
    return "\n".join(lines)


def format_notification(notification: Notification) -> str:
    return f"{'❌' if notification.is_error else '✅'} {notification.description}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Per-user state
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@dataclass
class UserContext:
    """Controllers owned by one Telegram user."""

    notifier: Notifier
    dashboard: DashboardController
    assistant: AssistantSession
    board: Optional[BoardController] = None
    username: str = ""
    outbox: List[Notification] = field(default_factory=list)


class BoardBot(BotBase):

    def __init__(self, config_path: Optional[str] = None):
        super().__init__(str(config_path or CONFIG_PATH), "board_bot")
        self._contexts: Dict[int, UserContext] = {}
        self.actions = {
            "boards": self.do_boards,
            "newboard": self.do_newboard,
            "delboard": self.do_delboard,
            "open": self.do_open,
            "addcolumn": self.do_addcolumn,
            "delcolumn": self.do_delcolumn,
            "addcard": self.do_addcard,
            "editcard": self.do_editcard,
            "delcard": self.do_delcard,
            "move": self.do_move,
            "notes": self.do_notes,
            "members": self.do_members,
            "chat": self.do_chat,
            "ask": self.do_ask,
            "clearchat": self.do_clearchat,
        }

    def context_for(self, user_id: int) -> UserContext:
        """Get or create the controllers for a Telegram user."""
        ctx = self._contexts.get(user_id)
        if ctx is None:
            notifier = Notifier()
            ctx = UserContext(
                notifier=notifier,
                dashboard=DashboardController(
                    self.api,
                    session=self.session,
                    notifier=notifier,
                    search_limit=self.cfg.client.search_limit,
                ),
                assistant=AssistantSession(
                    self.api,
                    self.store,
                    notifier=notifier,
                    storage_key=f"{CHAT_STATE_KEY}:{user_id}",
                ),
            )
            notifier.subscribe(ctx.outbox.append)
            self._contexts[user_id] = ctx
        return ctx

    async def perform(self, update: Update, command_name: str, params: dict) -> str:
        """Dispatch to the action, then prepend any notifications it raised."""
        handler = self.actions.get(command_name)
        if handler is None:
            return f"❌ Unknown command: {command_name}"

        user = update.effective_user
        ctx = self.context_for(user.id)
        if self.session.user:
            ctx.username = self.session.user.username
        else:
            ctx.username = user.first_name or user.username or ""

        ctx.outbox.clear()
        # Actions make blocking HTTP calls
        reply = await asyncio.to_thread(handler, ctx, params)
        lines = [format_notification(n) for n in ctx.outbox]
        ctx.outbox.clear()
        if reply:
            lines.append(reply)
        return "\n\n".join(lines)

    @staticmethod
    def _open_board(ctx: UserContext) -> BoardController:
        if ctx.board is None or ctx.board.board is None:
            raise ValidationError("Open a board first with /open <board_id>")
        return ctx.board

    # ──────────────────────────────────────────
    # Dashboard
    # ──────────────────────────────────────────

    def do_boards(self, ctx: UserContext, params: dict) -> str:
        if not ctx.dashboard.load():
            return f"❌ {ctx.dashboard.error}"
        return format_board_list(ctx.dashboard.boards)

    def do_newboard(self, ctx: UserContext, params: dict) -> str:
        form = BoardForm(
            title=params["title"],
            background_color=params["color"],
            is_public=params["public"] == "yes",
        )
        board = ctx.dashboard.create_board(form)
        return f"📋 {board.title} [{board.id}]" if board else ""

    def do_delboard(self, ctx: UserContext, params: dict) -> str:
        board_id = params["board_id"]
        if ctx.dashboard.delete_board(board_id) and ctx.board and ctx.board.board_id == board_id:
            ctx.board = None
        return ""

    def do_members(self, ctx: UserContext, params: dict) -> str:
        query = params.get("query", "")
        if query:
            found = ctx.dashboard.search_users(query)
            return format_members(found, f"Users matching '{query}'")
        board = self._open_board(ctx).board
        return format_members(board.members, f"Members of {board.title}")

    # ──────────────────────────────────────────
    # Board page
    # ──────────────────────────────────────────

    def do_open(self, ctx: UserContext, params: dict) -> str:
        controller = BoardController(self.api, params["board_id"], ctx.notifier)
        if not controller.load():
            return f"❌ {controller.error}"
        ctx.board = controller
        return format_board(controller.board)

    def do_addcolumn(self, ctx: UserContext, params: dict) -> str:
        controller = self._open_board(ctx)
        form = ColumnForm(
            title=params["title"],
            color=params["color"],
            limit=params.get("limit"),
        )
        if controller.add_column(form) is None:
            return ""
        return format_board(controller.board)

    def do_delcolumn(self, ctx: UserContext, params: dict) -> str:
        controller = self._open_board(ctx)
        if not controller.delete_column(params["column_id"]):
            return ""
        return format_board(controller.board)

    def do_addcard(self, ctx: UserContext, params: dict) -> str:
        controller = self._open_board(ctx)
        form = CardForm(
            title=params["title"],
            priority=params["priority"],
            due_date=params.get("due", ""),
        )
        card = controller.add_card(params["column_id"], form)
        return format_card(card).strip() if card else ""

    def do_editcard(self, ctx: UserContext, params: dict) -> str:
        controller = self._open_board(ctx)
        card_id = params["card_id"]
        form = controller.card_form(card_id)
        if params.get("title"):
            form.title = params["title"]
        if params.get("priority"):
            form.priority = params["priority"]
        if "due" in params:
            form.due_date = params["due"]
        if not controller.edit_card(card_id, form):
            return ""
        return format_card(controller.board.find_card(card_id)).strip()

    def do_delcard(self, ctx: UserContext, params: dict) -> str:
        controller = self._open_board(ctx)
        controller.delete_card(params["card_id"])
        return ""

    def do_move(self, ctx: UserContext, params: dict) -> str:
        controller = self._open_board(ctx)
        moved = controller.move(params["card_id"], params["column_id"], params["index"])
        if not moved and not ctx.outbox:
            return "⚠️ Nothing moved\n\n" + format_board(controller.board)
        # Either the confirmed move or the reloaded server state
        return format_board(controller.board)

    def do_notes(self, ctx: UserContext, params: dict) -> str:
        controller = self._open_board(ctx)
        text = params.get("text")
        if text:
            controller.save_notes(text)
            return ""
        return f"📝 {controller.board.notes}" if controller.board.notes else "📝 No notes yet."

    # ──────────────────────────────────────────
    # Assistant
    # ──────────────────────────────────────────

    def do_chat(self, ctx: UserContext, params: dict) -> str:
        assistant = ctx.assistant
        action = params["action"]

        if action == "close":
            assistant.close()
            return "💬 Assistant closed."
        if action == "minimize":
            assistant.minimize()
            return "💬 Assistant minimized."
        if action == "expand":
            assistant.expand()
        else:
            if not ctx.dashboard.boards:
                ctx.dashboard.load()
            assistant.open(ctx.username, len(ctx.dashboard.boards))

        tail = assistant.messages[-TRANSCRIPT_TAIL:]
        if not tail:
            return "💬 No messages yet. Ask something with /ask <text>"
        lines = []
        for bubble in tail:
            who = "🧑" if bubble.role == ChatRole.USER else "🤖"
            lines.append(f"{who} {bubble.content}")
        return "\n\n".join(lines)

    def do_ask(self, ctx: UserContext, params: dict) -> str:
        bubble = ctx.assistant.send(params["text"])
        return f"🤖 {bubble.content}" if bubble else ""

    def do_clearchat(self, ctx: UserContext, params: dict) -> str:
        ctx.assistant.clear()
        return "🧹 Conversation cleared."


def main():
    try:
        bot = BoardBot()
    except ConfigError as e:
        raise SystemExit(f"Config error: {e}")
    bot.run()


if __name__ == "__main__":
    main()
