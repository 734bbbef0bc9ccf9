"""
Shared pytest fixtures: an in-memory stand-in for BackendClient.

FakeBackend answers the same select / insert / upsert / update / delete /
auth calls as BackendClient, from plain dict tables, and reports missing
tables and columns with the same error shapes the hosted backend uses.
"""

import re
from typing import Any, Optional

import pytest

from arc.access.backend_client import AuthError, BackendError, Filter, QueryResult
from arc.access.session_store import StoredSession, StoredUser


def _matches(row: dict, flt: Filter) -> bool:
    value = row.get(flt.column)
    if flt.op == "eq":
        expected = flt.value
        if isinstance(expected, bool):
            return value is expected
        return value is not None and str(value) == str(expected)
    if flt.op == "ilike":
        if value is None:
            return False
        pattern = "".join(
            ".*" if ch == "%" else "." if ch == "_" else re.escape(ch) for ch in str(flt.value)
        )
        return re.fullmatch(pattern, str(value), re.IGNORECASE | re.DOTALL) is not None
    raise ValueError(f"unsupported filter op {flt.op}")


class FakeBackend:
    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.columns: dict[str, set[str]] = {}
        self.failures: dict[tuple[str, str], list] = {}
        self.calls: list[tuple[str, str, tuple]] = []
        self.users: dict[str, tuple[str, StoredUser]] = {}
        self.valid_tokens: dict[str, StoredUser] = {}
        self.access_token: Optional[str] = None
        self.sign_out_calls = 0

    # ── setup helpers ─────────────────────────────────────────────

    def add_table(self, name: str, rows=(), columns=None):
        self.tables[name] = [dict(r) for r in rows]
        if columns is not None:
            self.columns[name] = set(columns)

    def fail(self, method: str, table: str, message: str, code: Optional[str] = None, once: bool = False):
        """Make `method` ("select", "insert", ... or "*") on `table` return an error."""
        self.failures[(method, table)] = [BackendError(message=message, code=code, status=400), once]

    def add_user(self, email: str, password: str, user_id: str):
        self.users[email] = (password, StoredUser(id=user_id, email=email))

    def queried_tables(self) -> list[str]:
        return [table for _, table, _ in self.calls]

    # ── internals ─────────────────────────────────────────────────

    def _failure(self, method: str, table: str) -> Optional[BackendError]:
        for key in ((method, table), ("*", table)):
            entry = self.failures.get(key)
            if entry is not None:
                error, once = entry
                if once:
                    del self.failures[key]
                return error
        return None

    def _known_columns(self, table: str) -> Optional[set[str]]:
        if table in self.columns:
            return self.columns[table]
        rows = self.tables.get(table)
        if not rows:
            return None
        return set().union(*(r.keys() for r in rows))

    def _check(self, method: str, table: str, columns: list[str]) -> Optional[BackendError]:
        failure = self._failure(method, table)
        if failure is not None:
            return failure
        if table not in self.tables:
            return BackendError(
                message=f'relation "public.{table}" does not exist', code="42P01", status=404,
            )
        known = self._known_columns(table)
        if known is not None:
            for col in columns:
                if col not in known:
                    return BackendError(
                        message=f"column {table}.{col} does not exist", code="42703", status=400,
                    )
        return None

    # ── table access ──────────────────────────────────────────────

    def select(self, table, columns="*", filters=(), order=None, ascending=True, offset=None, limit=None):
        filters = list(filters)
        self.calls.append(("select", table, tuple(f.to_param() for f in filters)))
        wanted = [] if columns == "*" else [c.strip() for c in columns.split(",")]
        referenced = wanted + [f.column for f in filters] + ([order] if order else [])
        error = self._check("select", table, referenced)
        if error is not None:
            return QueryResult(error=error, status=error.status)

        rows = [r for r in self.tables[table] if all(_matches(r, f) for f in filters)]
        if order:
            rows = sorted(rows, key=lambda r: str(r.get(order) or "").lower(), reverse=not ascending)
        start = offset or 0
        rows = rows[start:start + limit] if limit is not None else rows[start:]
        if wanted:
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return QueryResult(data=[dict(r) for r in rows], status=200)

    def insert(self, table, rows):
        self.calls.append(("insert", table, ()))
        error = self._check("insert", table, [])
        if error is not None:
            return QueryResult(error=error, status=error.status)
        added = [dict(r) for r in rows]
        self.tables[table].extend(added)
        return QueryResult(data=[dict(r) for r in added], status=201)

    def upsert(self, table, rows, on_conflict):
        self.calls.append(("upsert", table, ()))
        error = self._check("upsert", table, [])
        if error is not None:
            return QueryResult(error=error, status=error.status)
        keys = [k.strip() for k in on_conflict.split(",")]
        out = []
        for row in rows:
            for existing in self.tables[table]:
                if all(existing.get(k) == row.get(k) for k in keys):
                    existing.update(row)
                    out.append(dict(existing))
                    break
            else:
                self.tables[table].append(dict(row))
                out.append(dict(row))
        return QueryResult(data=out, status=201)

    def update(self, table, values, filters):
        filters = list(filters)
        self.calls.append(("update", table, tuple(f.to_param() for f in filters)))
        error = self._check("update", table, [f.column for f in filters])
        if error is not None:
            return QueryResult(error=error, status=error.status)
        changed = []
        for row in self.tables[table]:
            if all(_matches(row, f) for f in filters):
                row.update(values)
                changed.append(dict(row))
        return QueryResult(data=changed, status=200)

    def delete(self, table, filters):
        filters = list(filters)
        self.calls.append(("delete", table, tuple(f.to_param() for f in filters)))
        error = self._check("delete", table, [f.column for f in filters])
        if error is not None:
            return QueryResult(error=error, status=error.status)
        kept, removed = [], []
        for row in self.tables[table]:
            (removed if all(_matches(row, f) for f in filters) else kept).append(row)
        self.tables[table] = kept
        return QueryResult(data=removed, status=200)

    # ── auth ──────────────────────────────────────────────────────

    def set_access_token(self, token):
        self.access_token = token

    def sign_in_with_password(self, email, password):
        entry = self.users.get(email)
        if entry is None or entry[0] != password:
            raise AuthError("Invalid login credentials")
        user = entry[1]
        token = f"token-{user.id}"
        self.valid_tokens[token] = user
        self.access_token = token
        return StoredSession(access_token=token, user=user, refresh_token=f"refresh-{user.id}")

    def get_user(self, access_token):
        return self.valid_tokens.get(access_token)

    def sign_out(self):
        self.sign_out_calls += 1
        self.access_token = None


@pytest.fixture
def backend():
    return FakeBackend()
