"""
Authenticated user session.

The token and user profile are persisted under fixed keys in the local
store and rehydrated with `restore()`.
"""
import logging
from typing import Optional, Dict, Any

from .api import ApiClient
from .schema import Member
from .store import LocalStore, TOKEN_KEY, USER_KEY

logger = logging.getLogger(__name__)


class AuthSession:
    """Login state shared by every controller through the API client."""

    def __init__(self, store: LocalStore):
        self.store = store
        self.token: Optional[str] = None
        self.user: Optional[Member] = None

    def get_token(self) -> Optional[str]:
        """Token provider for ApiClient."""
        return self.token

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user)

    def restore(self) -> bool:
        """Load token + user from the store. Both must be present."""
        token = self.store.get_item(TOKEN_KEY)
        user = self.store.get_json(USER_KEY)
        if token and isinstance(user, dict):
            self.token = token
            self.user = Member.from_dict(user)
            return True
        return False

    def _accept(self, data: Dict[str, Any]) -> Member:
        self.token = data["token"]
        self.user = Member.from_dict(data["user"])
        self.store.set_item(TOKEN_KEY, self.token)
        self.store.set_json(USER_KEY, self.user.to_dict())
        logger.info(f"Signed in as {self.user.username}")
        return self.user

    def login(self, api: ApiClient, email: str, password: str) -> Member:
        """Raises ApiError on bad credentials."""
        return self._accept(api.login(email, password))

    def register(self, api: ApiClient, username: str, email: str, password: str) -> Member:
        return self._accept(api.register(username, email, password))

    def logout(self) -> None:
        self.store.remove_item(TOKEN_KEY)
        self.store.remove_item(USER_KEY)
        self.token = None
        self.user = None

    def update_user(self, **fields) -> Optional[Member]:
        """Merge fields into the cached profile and persist it. No-op when signed out."""
        if self.user is None:
            return None
        data = self.user.to_dict()
        data.update(fields)
        self.user = Member.from_dict(data)
        self.store.set_json(USER_KEY, self.user.to_dict())
        return self.user
