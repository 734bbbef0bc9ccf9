"""
Sign-in, session resume and role gating for the portal.

RULES:
- HOD lands on the HOD hub (section picker); SECTION_ADVISOR lands on the
  dashboard for their own section.
- STUDENT, an unknown role, or no profile at all is denied. The stored
  session is cleared and the token revoked before AccessDenied is raised,
  so a denied identity is never resumed on the next load.
- A SECTION_ADVISOR without a section is denied the same way.
- A stored token the auth surface rejects is cleared silently.

Public API:
  sign_in(client, store, email, password) -> PortalSession
  resume(client, store) -> PortalSession | None
  sign_out(client, store) -> None
  view_mode_for(profile) -> str
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from arc.access.backend_client import AuthError, BackendClient
from arc.access.profile_resolver import ROLE_HOD, ROLE_SECTION_ADVISOR, Profile, resolve_profile
from arc.access.session_store import SessionStore, StoredSession

logger = logging.getLogger(__name__)

VIEW_HOD_HUB = "HOD_HUB"
VIEW_ADVISOR = "ADVISOR"

ACCESS_DENIED_MESSAGE = "Access denied for this portal."


class AccessDenied(Exception):
    """Identity is valid but not permitted into the portal."""

    def __init__(self, reason: str = ""):
        super().__init__(ACCESS_DENIED_MESSAGE)
        self.reason = reason


@dataclass(frozen=True)
class PortalSession:
    session: StoredSession
    profile: Profile
    view_mode: str

    @property
    def section(self) -> Optional[str]:
        return self.profile.section

    @property
    def display_name(self) -> str:
        if self.profile.username:
            return self.profile.username
        if self.view_mode == VIEW_ADVISOR and self.profile.section:
            return f"Section {self.profile.section} Advisor"
        return self.profile.email or self.session.user.email or "Operator"


def view_mode_for(profile: Optional[Profile]) -> str:
    """Portal view for a profile; raises AccessDenied for anything else."""
    if profile is None:
        raise AccessDenied("no profile")
    if profile.role == ROLE_HOD:
        return VIEW_HOD_HUB
    if profile.role == ROLE_SECTION_ADVISOR:
        if not profile.section:
            raise AccessDenied("advisor has no section")
        return VIEW_ADVISOR
    raise AccessDenied(f"role {profile.role}")


def _deny(client: BackendClient, store: SessionStore, user_id: str, exc: AccessDenied) -> None:
    logger.warning("[auth_bootstrap] access denied for user %s: %s", user_id, exc.reason)
    store.clear()
    client.sign_out()


def _authorize(client: BackendClient, store: SessionStore, session: StoredSession) -> PortalSession:
    profile = resolve_profile(client, session.user.id, session.user.email)
    try:
        view_mode = view_mode_for(profile)
    except AccessDenied as exc:
        _deny(client, store, session.user.id, exc)
        raise
    logger.info("[auth_bootstrap] user %s authorized as %s", session.user.id, view_mode)
    return PortalSession(session=session, profile=profile, view_mode=view_mode)


def sign_in(client: BackendClient, store: SessionStore, email: str, password: str) -> PortalSession:
    """
    Authenticate with credentials and gate by role.

    Raises AuthError for rejected credentials, AccessDenied for a valid
    identity that may not use the portal, ProfileLookupError when the
    profile lookup itself fails.
    """
    email = (email or "").strip()
    if not email or not password:
        raise AuthError("Email and password are required.")
    session = client.sign_in_with_password(email, password)
    store.write(session)
    return _authorize(client, store, session)


def resume(client: BackendClient, store: SessionStore) -> Optional[PortalSession]:
    """
    Resume a persisted session, if any.

    Returns None when nothing is stored or the stored token was rejected.
    """
    session = store.read()
    if session is None:
        return None
    user = client.get_user(session.access_token)
    if user is None:
        logger.info("[auth_bootstrap] stored session rejected, clearing")
        store.clear()
        return None
    client.set_access_token(session.access_token)
    return _authorize(client, store, session)


def sign_out(client: BackendClient, store: SessionStore) -> None:
    store.clear()
    client.sign_out()
