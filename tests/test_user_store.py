"""
tests/test_user_store.py -- Unit tests for auth/store.py UserStore.

Each test gets a fresh named shared-memory SQLite database from the
user_store fixture, so tests never see each other's rows.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from auth.errors import StoreError, UniqueViolation
from auth.models import UserRecord
from auth.store import UserRepository, UserStore


def _record(username: str = "alice", email: str | None = None) -> UserRecord:
    return UserRecord(username=username, password_digest="$argon2id$v=19$m=8,t=1,p=1$c2FsdA$aGFzaA", email=email)


class TestSave:
    def test_save_assigns_id_and_created_at(self, user_store):
        saved = user_store.save(_record())
        assert saved.id is not None
        assert saved.created_at

    def test_round_trip(self, user_store):
        user_store.save(_record(email="alice@example.com"))
        found = user_store.find_by_username("alice")
        assert found.username == "alice"
        assert found.email == "alice@example.com"
        assert found.password_digest.startswith("$argon2id$")

    def test_duplicate_username_raises_unique_violation(self, user_store):
        user_store.save(_record())
        with pytest.raises(UniqueViolation):
            user_store.save(_record(email="other@example.com"))
        assert user_store.find_by_username("alice").email is None

    def test_unique_violation_is_a_store_error(self):
        assert issubclass(UniqueViolation, StoreError)

    def test_database_failure_raises_store_error(self, user_store):
        with patch.object(user_store.engine, "connect", side_effect=OperationalError("stmt", {}, Exception("down"))):
            with pytest.raises(StoreError) as excinfo:
                user_store.save(_record())
        assert not isinstance(excinfo.value, UniqueViolation)


class TestQueries:
    def test_find_missing_returns_none(self, user_store):
        assert user_store.find_by_username("ghost") is None

    def test_lookup_is_case_sensitive(self, user_store):
        user_store.save(_record("Alice"))
        assert user_store.find_by_username("alice") is None

    def test_list_usernames_sorted(self, user_store):
        for name in ("carol", "alice", "bob"):
            user_store.save(_record(name))
        assert user_store.list_usernames() == ["alice", "bob", "carol"]

    def test_has_users(self, user_store):
        assert user_store.has_users() is False
        user_store.save(_record())
        assert user_store.has_users() is True

    def test_lookup_failure_raises_store_error(self, user_store):
        with patch.object(user_store.engine, "connect", side_effect=OperationalError("stmt", {}, Exception("down"))):
            with pytest.raises(StoreError):
                user_store.find_by_username("alice")


class TestRepositoryInterface:
    def test_user_store_provides_every_repository_method(self):
        methods = ("find_by_username", "save", "list_usernames", "has_users", "close")
        for name in methods:
            assert callable(getattr(UserRepository, name))
            assert callable(getattr(UserStore, name))
