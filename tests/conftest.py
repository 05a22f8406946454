"""Shared fixtures: an in-memory Supabase double, a fake identity provider,
and a fully wired engine over an in-memory SQLite cache."""

from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional

os.environ.setdefault("LOG_FILE", str(Path(tempfile.gettempdir()) / "condoguard-tests.log"))

import pytest
from postgrest.exceptions import APIError

from condoguard.config import AppConfig
from condoguard.container import EngineContainer, create_engine
from condoguard.database import DatabaseManager
from condoguard.identity import AuthListener
from condoguard.logger import StructuredLogger
from condoguard.models.enums import AuthEvent
from condoguard.models.session import Session, SessionUser
from condoguard.schema import initialize_schema

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Supabase query-builder double
# ---------------------------------------------------------------------------


@dataclass
class FakeResponse:
    data: Any
    count: Optional[int] = None


class FakeQuery:
    def __init__(self, backend: "FakeSupabase", table: str) -> None:
        self._backend = backend
        self._table = table
        self._op = "select"
        self._columns: list[str] = []
        self._filters: list[Callable[[dict[str, Any]], bool]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._single = False
        self._count: Optional[str] = None
        self._head = False
        self._payload: Any = None

    # -- verbs -------------------------------------------------------------

    def select(self, columns: str = "*", count: Optional[str] = None, head: Optional[bool] = None) -> "FakeQuery":
        self._op = "select"
        self._columns = [c.strip() for c in columns.split(",")]
        self._count = count
        self._head = bool(head)
        return self

    def insert(self, payload: dict[str, Any]) -> "FakeQuery":
        self._op = "insert"
        self._payload = payload
        return self

    def upsert(self, payload: dict[str, Any], on_conflict: str = "id") -> "FakeQuery":
        self._op = "upsert"
        self._payload = payload
        return self

    def update(self, payload: dict[str, Any]) -> "FakeQuery":
        self._op = "update"
        self._payload = payload
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    # -- modifiers ---------------------------------------------------------

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list[Any]) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def maybe_single(self) -> "FakeQuery":
        self._single = True
        return self

    # -- execution ---------------------------------------------------------

    def execute(self) -> Optional[FakeResponse]:
        self._backend.calls.append((self._table, self._op))
        failure = self._backend.failures.get((self._table, self._op))
        if failure is not None:
            raise failure

        if self._op in ("insert", "upsert", "update"):
            self._reject_missing_columns(self._payload)

        rows = self._backend.tables.setdefault(self._table, [])
        if self._op == "select":
            return self._select(rows)
        if self._op == "insert":
            row = dict(self._payload)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", NOW.isoformat())
            rows.append(row)
            return FakeResponse(data=[dict(row)])
        if self._op == "upsert":
            row = dict(self._payload)
            for existing in rows:
                if existing["id"] == row["id"]:
                    existing.update(row)
                    return FakeResponse(data=[dict(existing)])
            rows.append(row)
            return FakeResponse(data=[dict(row)])
        if self._op == "update":
            matched = [r for r in rows if self._matches(r)]
            for r in matched:
                r.update(self._payload)
            return FakeResponse(data=[dict(r) for r in matched])
        if self._op == "delete":
            matched = [r for r in rows if self._matches(r)]
            self._backend.tables[self._table] = [r for r in rows if not self._matches(r)]
            return FakeResponse(data=[dict(r) for r in matched])
        raise AssertionError(f"unsupported op {self._op}")

    def _reject_missing_columns(self, payload: dict[str, Any]) -> None:
        missing = self._backend.missing_columns.get(self._table, set())
        for column in payload:
            if column in missing:
                raise APIError(
                    {
                        "code": "PGRST204",
                        "message": f"Could not find the '{column}' column of '{self._table}' in the schema cache",
                        "details": None,
                        "hint": None,
                    }
                )

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(f(row) for f in self._filters)

    def _select(self, rows: list[dict[str, Any]]) -> Optional[FakeResponse]:
        missing = self._backend.missing_columns.get(self._table, set())
        for column in self._columns:
            if column in missing:
                raise APIError(
                    {
                        "code": "42703",
                        "message": f"column {self._table}.{column} does not exist",
                        "details": None,
                        "hint": None,
                    }
                )
        matched = [r for r in rows if self._matches(r)]
        if self._order is not None:
            column, desc = self._order
            matched.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self._head:
            return FakeResponse(data=[], count=len(matched) if self._count else None)
        projected = [self._project(r) for r in matched]
        if self._single:
            if not projected:
                return None
            return FakeResponse(data=projected[0])
        return FakeResponse(data=projected)

    def _project(self, row: dict[str, Any]) -> dict[str, Any]:
        if self._columns == ["*"]:
            return dict(row)
        return {c: row.get(c) for c in self._columns}


class FakeSupabase:
    """Just enough of ``supabase.Client`` for the repositories."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.missing_columns: dict[str, set[str]] = {}
        self.calls: list[tuple[str, str]] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def count(self, table: str, op: str) -> int:
        return sum(1 for call in self.calls if call == (table, op))


# ---------------------------------------------------------------------------
# Identity provider double
# ---------------------------------------------------------------------------


class FakeSubscription:
    def __init__(self) -> None:
        self.active = True

    def unsubscribe(self) -> None:
        self.active = False


@dataclass
class FakeIdentity:
    session: Optional[Session] = None
    listeners: list[AuthListener] = field(default_factory=list)
    sign_out_calls: int = 0
    subscription: FakeSubscription = field(default_factory=FakeSubscription)

    def get_session(self) -> Optional[Session]:
        return self.session

    def get_user(self) -> Optional[SessionUser]:
        return self.session.user if self.session is not None else None

    def subscribe(self, listener: AuthListener) -> FakeSubscription:
        self.listeners.append(listener)
        return self.subscription

    def sign_out(self) -> None:
        self.sign_out_calls += 1
        self.session = None

    def emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        self.session = session
        for listener in self.listeners:
            listener(event, session)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_user(
    user_id: str = "user-1",
    *,
    email: str = "ana@example.com",
    full_name: Optional[str] = "Ana Souza",
    role: Optional[str] = None,
    avatar_url: Optional[str] = None,
    age: timedelta = timedelta(days=30),
) -> SessionUser:
    metadata: dict[str, Any] = {}
    if full_name is not None:
        metadata["full_name"] = full_name
    if role is not None:
        metadata["role"] = role
    if avatar_url is not None:
        metadata["avatar_url"] = avatar_url
    return SessionUser(id=user_id, email=email, user_metadata=metadata, created_at=NOW - age)


def make_session(user: Optional[SessionUser] = None, token: str = "access-1") -> Session:
    return Session(access_token=token, refresh_token="refresh-1", user=user or make_user())


def profile_row(user_id: str = "user-1", role: Optional[str] = "sindico", **extra: Any) -> dict[str, Any]:
    row = {
        "id": user_id,
        "full_name": "Ana Souza",
        "email": "ana@example.com",
        "phone": None,
        "avatar_url": None,
        "role": role,
    }
    row.update(extra)
    return row


def access_row(
    access_id: str = "acc-1",
    *,
    user_id: str = "user-1",
    tenant_id: str = "123",
    status: str = "aprovado",
    created_at: str = "2026-03-01T10:00:00+00:00",
) -> dict[str, Any]:
    return {
        "id": access_id,
        "condominio_id": tenant_id,
        "user_id": user_id,
        "status": status,
        "colaborador_nome": "Ana Souza",
        "nivel_acesso": None,
        "created_at": created_at,
    }


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def logger() -> StructuredLogger:
    return StructuredLogger(name="condoguard.tests")


@pytest.fixture()
def supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def db(supabase: FakeSupabase, logger: StructuredLogger) -> DatabaseManager:
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=":memory:",
        logger=logger,
        client=supabase,  # type: ignore[arg-type]
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture()
def identity() -> FakeIdentity:
    return FakeIdentity()


@pytest.fixture()
def engine(db: DatabaseManager, identity: FakeIdentity) -> EngineContainer:
    return create_engine(db=db, config=AppConfig(), identity=identity, clock=lambda: NOW)
