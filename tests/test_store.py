"""
Tests for LocalStore and AuthSession persistence.
"""

from unittest.mock import MagicMock

from taskboard.session import AuthSession
from taskboard.store import LocalStore, TOKEN_KEY, USER_KEY


class TestLocalStore:

    def test_get_missing(self, store):
        assert store.get_item("nope") is None

    def test_set_and_overwrite(self, store):
        store.set_item("k", "one")
        store.set_item("k", "two")
        assert store.get_item("k") == "two"
        assert store.keys() == ["k"]

    def test_remove(self, store):
        store.set_item("k", "v")
        store.remove_item("k")
        assert store.get_item("k") is None

    def test_json_roundtrip(self, store):
        store.set_json("obj", {"a": [1, 2], "b": "ü"})
        assert store.get_json("obj") == {"a": [1, 2], "b": "ü"}

    def test_corrupt_json_reads_none(self, store):
        store.set_item("obj", "{not json")
        assert store.get_json("obj") is None

    def test_survives_reopen(self, tmp_path):
        path = str(tmp_path / "nested" / "state.db")
        LocalStore(path).set_item("k", "v")
        assert LocalStore(path).get_item("k") == "v"


class TestAuthSession:

    def setup_method(self):
        self.api = MagicMock()
        self.api.login.return_value = {
            "token": "jwt-1",
            "user": {"_id": "u1", "username": "alice", "email": "a@x.io"},
        }

    def test_login_persists(self, store):
        session = AuthSession(store)
        user = session.login(self.api, "a@x.io", "secret")
        assert user.username == "alice"
        assert session.is_authenticated
        assert store.get_item(TOKEN_KEY) == "jwt-1"
        assert store.get_json(USER_KEY)["username"] == "alice"

    def test_restore(self, store):
        AuthSession(store).login(self.api, "a@x.io", "secret")
        session = AuthSession(store)
        assert session.restore()
        assert session.get_token() == "jwt-1"
        assert session.user.id == "u1"

    def test_restore_needs_both(self, store):
        store.set_item(TOKEN_KEY, "jwt-1")
        assert not AuthSession(store).restore()

    def test_logout_clears(self, store):
        session = AuthSession(store)
        session.login(self.api, "a@x.io", "secret")
        session.logout()
        assert not session.is_authenticated
        assert store.get_item(TOKEN_KEY) is None
        assert store.get_item(USER_KEY) is None

    def test_update_user(self, store):
        session = AuthSession(store)
        session.login(self.api, "a@x.io", "secret")
        session.update_user(username="alicia")
        assert session.user.username == "alicia"
        assert store.get_json(USER_KEY)["username"] == "alicia"

    def test_update_user_signed_out(self, store):
        assert AuthSession(store).update_user(username="x") is None
