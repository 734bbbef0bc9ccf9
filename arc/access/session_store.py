"""
Persisted auth session store.

A session is kept under one key per backend project,
`sb-<project-ref>-auth-token`, where <project-ref> is the first hostname
label of the backend URL. The stored JSON value is either the session
itself or a `{"currentSession": {...}}` wrapper; both are read.

Any stored value that cannot be parsed into a session (bad JSON, missing
access token, missing user id) is treated as "no session". The store is
backed by any MutableMapping[str, str]: Streamlit session state in the
portal, a JsonFileStorage when ARC_SESSION_FILE is set, a dict in tests.
"""

from __future__ import annotations

import json
import logging
from collections.abc import MutableMapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterator, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredUser:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class StoredSession:
    access_token: str
    user: StoredUser
    refresh_token: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self))


def project_ref_from_url(url: Optional[str]) -> Optional[str]:
    """First hostname label of the backend URL (`<ref>.supabase.co` -> `<ref>`)."""
    if not url:
        return None
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return hostname.split(".")[0] or None


def auth_storage_key(project_ref: str) -> str:
    return f"sb-{project_ref}-auth-token"


def parse_stored_session(value: Any) -> Optional[StoredSession]:
    """Parse a stored JSON string (or already-decoded dict) into a session."""
    if value is None or value == "":
        return None
    if isinstance(value, (str, bytes)):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    if not isinstance(value, dict):
        return None

    session = value.get("currentSession") or value
    if not isinstance(session, dict):
        return None
    user = session.get("user")
    if not session.get("access_token") or not isinstance(user, dict) or not user.get("id"):
        return None
    return StoredSession(
        access_token=str(session["access_token"]),
        refresh_token=str(session["refresh_token"]) if session.get("refresh_token") else None,
        user=StoredUser(
            id=str(user["id"]),
            email=str(user["email"]) if user.get("email") else None,
        ),
    )


class JsonFileStorage(MutableMapping):
    """A str -> str mapping persisted to one JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("[session_store] unreadable session file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def __getitem__(self, key: str) -> str:
        return self._load()[key]

    def __setitem__(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def __delitem__(self, key: str) -> None:
        data = self._load()
        del data[key]
        self._save(data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._load())

    def __len__(self) -> int:
        return len(self._load())


class SessionStore:
    """Reads, writes and clears the session for one backend project."""

    def __init__(self, storage: MutableMapping, backend_url: str):
        self.storage = storage
        ref = project_ref_from_url(backend_url)
        self.key: Optional[str] = auth_storage_key(ref) if ref else None
        if self.key is None:
            logger.warning("[session_store] no project ref in backend URL; sessions will not persist")

    def read(self) -> Optional[StoredSession]:
        if self.key is None:
            return None
        session = parse_stored_session(self.storage.get(self.key))
        if session is None and self.key in self.storage:
            logger.info("[session_store] discarding unparseable stored session")
            self.clear()
        return session

    def write(self, session: StoredSession) -> None:
        if self.key is None:
            return
        self.storage[self.key] = session.to_json()

    def clear(self) -> None:
        if self.key is not None and self.key in self.storage:
            del self.storage[self.key]
