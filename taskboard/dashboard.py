"""
Dashboard controller: the board list, board create/edit/delete with member
selection, and the user's profile.
"""
import logging
from dataclasses import replace
from typing import List, Optional

from .api import ApiClient
from .errors import ApiError
from .forms import DEFAULT_COLOR, BoardForm, ProfileForm
from .notifications import Notifier
from .schema import Board, Member
from .session import AuthSession

logger = logging.getLogger(__name__)


class DashboardController:
    """State behind the dashboard page."""

    def __init__(
        self,
        api: ApiClient,
        session: Optional[AuthSession] = None,
        notifier: Optional[Notifier] = None,
        search_limit: int = 5,
    ):
        self.api = api
        self.session = session
        self.notifier = notifier or Notifier()
        self.search_limit = search_limit
        self.boards: List[Board] = []
        self.error = ""
        self.loading = False
        self.selected_members: List[Member] = []

    def load(self) -> bool:
        self.loading = True
        try:
            self.boards = self.api.list_boards()
        except ApiError as e:
            self.error = e.describe("Failed to fetch boards")
            logger.warning(f"Board list load failed: {self.error}")
            return False
        finally:
            self.loading = False
        self.error = ""
        return True

    def find_board(self, board_id: str) -> Optional[Board]:
        for board in self.boards:
            if board.id == board_id:
                return board
        return None

    # ──────────────────────────────────────────
    # Member selection
    # ──────────────────────────────────────────

    def search_users(self, query: str, limit: Optional[int] = None) -> List[Member]:
        """Search users to add as members. Blank queries don't hit the network."""
        if not query.strip():
            return []
        try:
            return self.api.search_users(query.strip(), limit or self.search_limit)
        except ApiError as e:
            logger.warning(f"User search failed: {e}")
            self.notifier.error("Failed to search users")
            return []

    def add_member(self, user: Member) -> bool:
        if any(m.id == user.id for m in self.selected_members):
            return False
        self.selected_members.append(user)
        return True

    def remove_member(self, user_id: str) -> None:
        self.selected_members = [m for m in self.selected_members if m.id != user_id]

    def start_editing(self, board_id: str) -> BoardForm:
        """Pre-fill a form and the member selection from an existing board."""
        board = self.find_board(board_id)
        if board is None:
            raise KeyError(board_id)
        self.selected_members = list(board.members)
        return BoardForm(
            title=board.title,
            description=board.description,
            background_color=board.background_color or DEFAULT_COLOR,
            is_public=board.is_public,
        )

    # ──────────────────────────────────────────
    # Boards
    # ──────────────────────────────────────────

    def create_board(self, form: BoardForm) -> Optional[Board]:
        form.validate()
        members = list(self.selected_members)
        try:
            board = self.api.create_board(form.to_payload([m.id for m in members]))
        except ApiError as e:
            self.notifier.error(e.describe("Failed to create board"))
            return None
        board = replace(board, members=members)
        self.boards.append(board)
        self.selected_members = []
        logger.info(f"Board {board.id} created")
        self.notifier.success("Board created successfully")
        return board

    def edit_board(self, board_id: str, form: BoardForm) -> Optional[Board]:
        form.validate()
        members = list(self.selected_members)
        payload = form.to_payload([m.id for m in members])
        try:
            updated = self.api.update_board(board_id, payload)
        except ApiError as e:
            self.notifier.error(e.describe("Failed to update board"))
            return None
        if updated is None:
            current = self.find_board(board_id) or Board(id=board_id, title="")
            updated = replace(
                current,
                title=payload["title"],
                description=payload["description"],
                background_color=payload["backgroundColor"],
                is_public=payload["isPublic"],
            )
        updated = replace(updated, members=members)
        self.boards = [updated if b.id == board_id else b for b in self.boards]
        self.selected_members = []
        logger.info(f"Board {board_id} updated")
        self.notifier.success("Board updated successfully")
        return updated

    def delete_board(self, board_id: str) -> bool:
        try:
            self.api.delete_board(board_id)
        except ApiError as e:
            self.notifier.error(e.describe("Failed to delete board"))
            return False
        self.boards = [b for b in self.boards if b.id != board_id]
        logger.info(f"Board {board_id} deleted")
        self.notifier.success("Board deleted successfully")
        return True

    # ──────────────────────────────────────────
    # Profile
    # ──────────────────────────────────────────

    def profile_form(self) -> ProfileForm:
        user = self.session.user if self.session else None
        return ProfileForm(username=user.username if user else "")

    def update_profile(self, form: ProfileForm) -> bool:
        """
        Update username and/or password.

        All validation runs before the first request. The username update
        happens first; if the password change then fails, the new username
        stays.
        """
        form.validate()
        current = self.session.user.username if self.session and self.session.user else None
        username = form.username.strip()
        try:
            if username != current:
                self.api.update_profile(username)
                if self.session:
                    self.session.update_user(username=username)
                self.notifier.success("Username updated successfully")
            if form.wants_password_change:
                self.api.change_password(form.current_password, form.new_password)
                self.notifier.success("Password updated successfully")
        except ApiError as e:
            self.notifier.error(e.describe("Failed to update profile"))
            return False
        return True
