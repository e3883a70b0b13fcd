"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper.
UserRepository is the interface AuthPipeline depends on; UserStore is the
SQLAlchemy implementation and _row_to_user is the mapper. Pipeline and route
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Username uniqueness is enforced by the UNIQUE constraint, not by a
  read-then-write in Python. Two concurrent registrations of the same name
  both pass the pipeline's lookup, and the second INSERT fails with
  IntegrityError, which save() reports as UniqueViolation.

  list_usernames() selects the username column only. Digests never leave
  this module except inside a UserRecord handed to the pipeline.

DB path: tokengate_users.db at the project root unless DATABASE_URL is set.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StoreError, UniqueViolation
from auth.models import UserRecord

# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class UserRepository(Protocol):
    def find_by_username(self, username: str) -> UserRecord | None: ...

    def save(self, user: UserRecord) -> UserRecord: ...

    def list_usernames(self) -> list[str]: ...

    def has_users(self) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_digest", Text, nullable=False),  # argon2 encoded string
    Column("email", String(255)),  # stored as given, not validated
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        id=row.id,
        username=row.username,
        password_digest=row.password_digest,
        email=row.email,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQLAlchemy-backed UserRepository.

    Usage:
        store = UserStore()
        store.save(UserRecord(username="alice", password_digest=hasher.hash("Passw0rd!")))
        user = store.find_by_username("alice")
        store.close()

    Every SQLAlchemyError is re-raised as StoreError (UniqueViolation for
    IntegrityError) so callers depend on auth.errors, not on SQLAlchemy.
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def find_by_username(self, username: str) -> UserRecord | None:
        """Exact, case-sensitive lookup. Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError(f"User lookup failed: {type(exc).__name__}") from exc
        return _row_to_user(row) if row is not None else None

    def save(self, user: UserRecord) -> UserRecord:
        """Insert a new user and return it with id and created_at filled in.

        Raises UniqueViolation if the username already exists; the store is
        left unchanged in that case.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        password_digest=user.password_digest,
                        email=user.email,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise UniqueViolation("Username already exists.") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"User save failed: {type(exc).__name__}") from exc
        user.id = result.inserted_primary_key[0]
        user.created_at = created_at
        return user

    def list_usernames(self) -> list[str]:
        """Return every username, ordered. Digests are never selected."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(select(_users.c.username).order_by(_users.c.username)).fetchall()
        except SQLAlchemyError as exc:
            raise StoreError(f"User listing failed: {type(exc).__name__}") from exc
        return [r.username for r in rows]

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
