"""
HTTP client for the board backend.

Every method either returns decoded data or raises ApiError; callers decide
how a failure is shown. The bearer token is pulled from `token_provider` on
each request so a login or logout takes effect immediately.
"""
import logging
from typing import Optional, Dict, Any, Callable, List

import requests

from .errors import ApiError
from .schema import Board, Card, Column, Member

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000/api"


class ApiClient:
    """JSON REST client for boards, columns, cards, users and the chatbot."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()

    # ──────────────────────────────────────────
    # Transport
    # ──────────────────────────────────────────

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None when empty)."""
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            r = self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(None) from e

        if not r.ok:
            message = None
            try:
                body = r.json()
                if isinstance(body, dict):
                    message = body.get("message")
            except ValueError:
                pass
            logger.warning(f"{method} {path} -> {r.status_code} {message or ''}".rstrip())
            raise ApiError(message, status=r.status_code)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise ApiError("Malformed response from server", status=r.status_code) from e

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("POST", path, json=body or {})

    def put(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("PUT", path, json=body or {})

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # ──────────────────────────────────────────
    # Auth
    # ──────────────────────────────────────────

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """Returns {token, user}."""
        return self.post("/auth/login", {"email": email, "password": password})

    def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        """Returns {token, user}."""
        return self.post(
            "/auth/register",
            {"username": username, "email": email, "password": password},
        )

    # ──────────────────────────────────────────
    # Boards
    # ──────────────────────────────────────────

    def list_boards(self) -> List[Board]:
        return [Board.from_dict(b) for b in self.get("/boards") or []]

    def get_board(self, board_id: str) -> Board:
        data = self.get(f"/boards/{board_id}")
        if not isinstance(data, dict):
            raise ApiError("Malformed response from server")
        return Board.from_dict(data)

    def create_board(self, payload: Dict[str, Any]) -> Board:
        return Board.from_dict(self.post("/boards", payload))

    def update_board(self, board_id: str, payload: Dict[str, Any]) -> Optional[Board]:
        data = self.put(f"/boards/{board_id}", payload)
        return Board.from_dict(data) if isinstance(data, dict) else None

    def delete_board(self, board_id: str) -> None:
        self.delete(f"/boards/{board_id}")

    # ──────────────────────────────────────────
    # Columns
    # ──────────────────────────────────────────

    def create_column(self, board_id: str, payload: Dict[str, Any]) -> Column:
        data = dict(self.post(f"/columns/board/{board_id}", payload))
        data.setdefault("cards", [])
        return Column.from_dict(data)

    def delete_column(self, column_id: str) -> None:
        self.delete(f"/columns/{column_id}")

    # ──────────────────────────────────────────
    # Cards
    # ──────────────────────────────────────────

    def create_card(self, column_id: str, payload: Dict[str, Any]) -> Card:
        return Card.from_dict(self.post(f"/cards/column/{column_id}", payload))

    def update_card(self, card_id: str, payload: Dict[str, Any]) -> Any:
        return self.put(f"/cards/{card_id}", payload)

    def move_card(self, card_id: str, column_id: str, position: int) -> Any:
        """Persist a move. The backend assigns authoritative positions."""
        return self.update_card(card_id, {"columnId": column_id, "position": position})

    def delete_card(self, card_id: str) -> None:
        self.delete(f"/cards/{card_id}")

    # ──────────────────────────────────────────
    # Users
    # ──────────────────────────────────────────

    def search_users(self, query: str, limit: int = 5) -> List[Member]:
        data = self.get("/users/search", params={"query": query, "limit": limit})
        return [Member.from_dict(u) for u in data or []]

    def update_profile(self, username: str) -> Any:
        return self.put("/users/profile", {"username": username})

    def change_password(self, current_password: str, new_password: str) -> Any:
        return self.put(
            "/users/change-password",
            {"currentPassword": current_password, "newPassword": new_password},
        )

    # ──────────────────────────────────────────
    # Chatbot
    # ──────────────────────────────────────────

    def chat(self, messages: List[Dict[str, str]]) -> str:
        """Complete a conversation. Returns the assistant's reply text."""
        data = self.post("/chatbot/chat", {"messages": messages})
        if not isinstance(data, dict) or "response" not in data:
            raise ApiError("Failed to get AI response")
        return data["response"]

    def chat_context(self) -> Dict[str, Any]:
        """Board context the backend feeds the assistant (debugging aid)."""
        return self.get("/chatbot/context")

    def health(self) -> bool:
        """Check if the backend is reachable."""
        try:
            r = self.session.get(f"{self.base_url}/health", timeout=2)
            return r.ok
        except requests.RequestException:
            return False
