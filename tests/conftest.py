"""Shared test fixtures for the field survey API."""

from typing import Any, Dict, List, Optional

import azure.functions as func
import pytest
from psycopg import sql

from features_api.config import FeaturesConfig
from responses_api.config import ResponsesConfig


def sql_text(query: Any) -> str:
    """Render a composed statement without a connection (identifiers double-quoted)."""
    if isinstance(query, sql.Composed):
        return "".join(sql_text(part) for part in query)
    if isinstance(query, sql.Identifier):
        return ".".join(f'"{name}"' for name in query._obj)
    if isinstance(query, sql.SQL):
        return query._obj
    return str(query)


class FakeCursor:
    """Cursor double: records statements and replays scripted results."""

    def __init__(self, db: "FakeDatabase"):
        self.db = db
        self.rowcount = -1
        self._rows: List[Dict[str, Any]] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        text = sql_text(query)
        if "set_config('statement_timeout'" in text:
            self.db.timeouts.append(params)
            return
        self.db.executed.append((text, params))
        if self.db.error is not None:
            raise self.db.error
        result = self.db.results.pop(0) if self.db.results else []
        if isinstance(result, int):
            self.rowcount = result
            self._rows = []
        else:
            self.rowcount = len(result)
            self._rows = list(result)

    def fetchall(self):
        return self._rows

    def fetchone(self):
        return self._rows[0] if self._rows else None


class FakeConnection:
    def __init__(self, db: "FakeDatabase"):
        self.db = db
        self.closed = False

    def cursor(self):
        return FakeCursor(self.db)

    def commit(self):
        self.db.commits += 1

    def rollback(self):
        self.db.rollbacks += 1

    def close(self):
        self.closed = True
        self.db.closed += 1


class FakeDatabase:
    """
    Scripted stand-in for psycopg.connect.

    Each executed statement (statement_timeout setup excluded) consumes one
    entry of `results`: a list of row dicts, or an int rowcount for DML.
    """

    def __init__(self):
        self.results: List[Any] = []
        self.executed: List[tuple] = []
        self.timeouts: List[Any] = []
        self.error: Optional[Exception] = None
        self.connect_error: Optional[Exception] = None
        self.commits = 0
        self.rollbacks = 0
        self.closed = 0
        self.connections = 0
        self.conninfos: List[str] = []

    def connect(self, conninfo, **kwargs):
        if self.connect_error is not None:
            raise self.connect_error
        self.connections += 1
        self.conninfos.append(conninfo)
        return FakeConnection(self)

    @property
    def last_sql(self) -> str:
        return self.executed[-1][0]

    @property
    def last_params(self):
        return self.executed[-1][1]


@pytest.fixture
def fake_db(monkeypatch):
    """Patch psycopg.connect as seen by the repositories."""
    import infrastructure.postgresql as postgresql

    db = FakeDatabase()
    monkeypatch.setattr(postgresql.psycopg, "connect", db.connect)
    return db


@pytest.fixture
def features_config():
    return FeaturesConfig(
        features_schema="geo",
        features_table="features",
        geometry_column="geom",
        precision=6,
        query_timeout_seconds=30
    )


@pytest.fixture
def responses_config():
    return ResponsesConfig(
        responses_schema="public",
        responses_table="responses",
        query_timeout_seconds=30,
        insert_workers=4
    )


def make_request(
    method: str = "GET",
    url: str = "/api/features",
    params: Optional[Dict[str, str]] = None,
    route_params: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b""
) -> func.HttpRequest:
    return func.HttpRequest(
        method=method,
        url=url,
        params=params or {},
        route_params=route_params or {},
        headers=headers or {},
        body=body
    )
