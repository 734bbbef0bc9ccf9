"""
Backend client for the hosted registry database.

Speaks two HTTP surfaces of the backend project:
  /auth/v1/...   password sign-in, token validation, sign-out
  /rest/v1/...   PostgREST table access (select / insert / upsert / update / delete)

Table calls never raise on backend or transport failure. They return a
QueryResult whose `error` carries a structured BackendError, so callers
can inspect the message and decide whether a schema variant is missing or
the failure is real. Auth calls raise AuthError with the provider's own
message, which is shown to the user verbatim.

The client is an explicit handle: construct one per portal session and
pass it to every data-access function.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from arc.access.session_store import StoredSession, StoredUser

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: float = 15.0
NETWORK_ERROR_CODE: str = "NETWORK"


@dataclass
class BackendError(Exception):
    """Structured error returned by the REST surface (or raised by transport)."""
    message: str
    code: Optional[str] = None
    status: Optional[int] = None
    details: Optional[str] = None
    hint: Optional[str] = None

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"(code {self.code})")
        if self.details:
            parts.append(f"- {self.details}")
        return " ".join(parts)


class AuthError(Exception):
    """Credential or token failure reported by the auth surface."""


@dataclass
class QueryResult:
    data: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[BackendError] = None
    status: Optional[int] = None

    def first(self) -> Optional[dict[str, Any]]:
        return self.data[0] if self.data else None


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def to_param(self) -> tuple[str, str]:
        value = self.value
        if self.op == "ilike":
            value = str(value).replace("%", "*")
        elif isinstance(value, bool):
            value = "true" if value else "false"
        return self.column, f"{self.op}.{value}"


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def ilike(column: str, pattern: str) -> Filter:
    """Case-insensitive LIKE; % is the wildcard."""
    return Filter(column, "ilike", pattern)


def _error_from_response(resp: requests.Response) -> BackendError:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, Mapping):
        message = (
            body.get("message")
            or body.get("error_description")
            or body.get("msg")
            or body.get("error")
            or resp.reason
            or f"HTTP {resp.status_code}"
        )
        code = body.get("code")
        return BackendError(
            message=str(message),
            code=str(code) if code is not None else None,
            status=resp.status_code,
            details=body.get("details"),
            hint=body.get("hint"),
        )
    return BackendError(
        message=(resp.text or resp.reason or f"HTTP {resp.status_code}").strip(),
        status=resp.status_code,
    )


class BackendClient:
    """Thin HTTP client bound to one backend project."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self._access_token: Optional[str] = None
        self._session = session or requests.Session()
        self._session.headers.update({
            "apikey": anon_key,
            "Accept": "application/json",
        })

    # ── session token ──────────────────────────────────────────────

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def set_access_token(self, token: Optional[str]) -> None:
        self._access_token = token

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._access_token or self.anon_key}"}
        if extra:
            headers.update(extra)
        return headers

    # ── low-level request ──────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Sequence[tuple[str, str]]] = None,
        json_body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        return self._session.request(
            method,
            url,
            params=list(params or []),
            json=json_body,
            headers=self._headers(headers),
            timeout=self.timeout,
        )

    def _table_call(
        self,
        method: str,
        table: str,
        *,
        params: Sequence[tuple[str, str]] = (),
        json_body: Any = None,
        prefer: Optional[str] = None,
    ) -> QueryResult:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = self._request(
                method, f"/rest/v1/{table}", params=params, json_body=json_body, headers=headers,
            )
        except requests.RequestException as exc:
            logger.warning("[backend] %s %s failed: %s", method, table, exc)
            return QueryResult(error=BackendError(message=str(exc), code=NETWORK_ERROR_CODE))

        if resp.status_code >= 400:
            error = _error_from_response(resp)
            logger.debug("[backend] %s %s -> %s %s", method, table, resp.status_code, error)
            return QueryResult(error=error, status=resp.status_code)

        if not resp.content:
            return QueryResult(status=resp.status_code)
        try:
            body = resp.json()
        except ValueError:
            return QueryResult(
                error=BackendError(message="Backend returned a non-JSON response", status=resp.status_code),
                status=resp.status_code,
            )
        if isinstance(body, dict):
            body = [body]
        return QueryResult(data=list(body or []), status=resp.status_code)

    # ── table access ───────────────────────────────────────────────

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Iterable[Filter] = (),
        order: Optional[str] = None,
        ascending: bool = True,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> QueryResult:
        params: list[tuple[str, str]] = [("select", columns)]
        params.extend(f.to_param() for f in filters)
        if order:
            params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
        if offset is not None:
            params.append(("offset", str(offset)))
        if limit is not None:
            params.append(("limit", str(limit)))
        return self._table_call("GET", table, params=params)

    def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> QueryResult:
        return self._table_call(
            "POST", table, json_body=list(rows), prefer="return=representation",
        )

    def upsert(self, table: str, rows: Sequence[Mapping[str, Any]], on_conflict: str) -> QueryResult:
        return self._table_call(
            "POST",
            table,
            params=[("on_conflict", on_conflict)],
            json_body=list(rows),
            prefer="resolution=merge-duplicates,return=representation",
        )

    def update(self, table: str, values: Mapping[str, Any], filters: Iterable[Filter]) -> QueryResult:
        return self._table_call(
            "PATCH",
            table,
            params=[f.to_param() for f in filters],
            json_body=dict(values),
            prefer="return=representation",
        )

    def delete(self, table: str, filters: Iterable[Filter]) -> QueryResult:
        params = [f.to_param() for f in filters]
        if not params:
            # PostgREST refuses unfiltered deletes; fail here with a clear message.
            return QueryResult(error=BackendError(message=f"Refusing unfiltered delete on '{table}'"))
        return self._table_call("DELETE", table, params=params, prefer="return=representation")

    # ── auth ───────────────────────────────────────────────────────

    def sign_in_with_password(self, email: str, password: str) -> StoredSession:
        """
        Exchange credentials for a session.

        Raises AuthError with the provider's message on rejection or
        transport failure.
        """
        try:
            resp = self._session.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
                headers={"Authorization": f"Bearer {self.anon_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthError(f"Authentication service unreachable: {exc}") from exc

        if resp.status_code >= 400:
            raise AuthError(_error_from_response(resp).message)

        try:
            body = resp.json()
        except ValueError as exc:
            raise AuthError("Authentication service returned an invalid response.") from exc

        user = body.get("user") or {}
        if not body.get("access_token") or not user.get("id"):
            raise AuthError("Authentication service returned no session.")
        session = StoredSession(
            access_token=str(body["access_token"]),
            refresh_token=str(body["refresh_token"]) if body.get("refresh_token") else None,
            user=StoredUser(id=str(user["id"]), email=str(user["email"]) if user.get("email") else None),
        )
        self.set_access_token(session.access_token)
        logger.info("[backend] signed in user %s", session.user.id)
        return session

    def get_user(self, access_token: str) -> Optional[StoredUser]:
        """
        Validate a stored token.

        Returns None when the token is rejected; raises AuthError when the
        auth surface cannot be reached.
        """
        try:
            resp = self._session.get(
                f"{self.base_url}/auth/v1/user",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AuthError(f"Authentication service unreachable: {exc}") from exc
        if resp.status_code in (401, 403):
            return None
        if resp.status_code >= 400:
            raise AuthError(_error_from_response(resp).message)
        try:
            body = resp.json()
        except ValueError as exc:
            raise AuthError("Authentication service returned an invalid response.") from exc
        if not isinstance(body, Mapping) or not body.get("id"):
            return None
        return StoredUser(id=str(body["id"]), email=str(body["email"]) if body.get("email") else None)

    def sign_out(self) -> None:
        """Revoke the current token. Failure is logged; the local token is always dropped."""
        token = self._access_token
        self._access_token = None
        if not token:
            return
        try:
            resp = self._session.post(
                f"{self.base_url}/auth/v1/logout",
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
            if resp.status_code >= 400:
                logger.warning("[backend] sign-out returned %s", resp.status_code)
        except requests.RequestException as exc:
            logger.warning("[backend] sign-out failed: %s", exc)
