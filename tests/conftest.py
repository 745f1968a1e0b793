"""Shared test fixtures for the taskboard client tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from taskboard.api import ApiClient
from taskboard.notifications import Notifier
from taskboard.schema import Board, Card, Column, Member
from taskboard.store import LocalStore


def _cards(*ids):
    return [Card(id=card_id, title=f"Card {card_id}", position=i) for i, card_id in enumerate(ids)]


@pytest.fixture
def make_board():
    """Factory for a three-column board: todo [a, b, c], doing [d], done []."""

    def _make(board_id="b1"):
        return Board(
            id=board_id,
            title="Sprint",
            description="Current sprint",
            notes="remember the demo",
            columns=[
                Column(id="todo", title="To Do", position=0, cards=_cards("a", "b", "c")),
                Column(id="doing", title="Doing", position=1, limit=2, cards=_cards("d")),
                Column(id="done", title="Done", position=2, cards=[]),
            ],
            members=[Member(id="u1", username="alice", email="alice@example.com")],
        )

    return _make


@pytest.fixture
def board(make_board):
    return make_board()


@pytest.fixture
def api():
    """ApiClient double; every method is a MagicMock."""
    return MagicMock(spec=ApiClient)


@pytest.fixture
def store(tmp_path):
    return LocalStore(str(tmp_path / "state.db"))


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def make_update():
    """Factory for a Telegram Update double carrying a command message."""

    def _make(text, user_id=1001, username="alice"):
        update = MagicMock()
        update.effective_user.id = user_id
        update.effective_user.username = username
        update.effective_user.first_name = username.title()
        update.effective_user.full_name = username.title()
        update.message.text = text
        update.message.reply_text = AsyncMock()
        return update

    return _make
