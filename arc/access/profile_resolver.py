"""
Maps an authenticated identity to a portal Profile.

The `profiles` table is keyed differently across deployments: some store
the auth user id in `user_id`, some use it as the primary `id`, and some
only carry the email. Lookups are tried in that order; the first match
wins.

Role is fail-closed. Only STUDENT, SECTION_ADVISOR and HOD are accepted;
any other value, or no value at all, yields no profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from arc.access.backend_client import BackendClient, BackendError, eq
from arc.registry.field_resolver import resolve_field

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"

ROLE_STUDENT = "STUDENT"
ROLE_SECTION_ADVISOR = "SECTION_ADVISOR"
ROLE_HOD = "HOD"
ALLOWED_ROLES: frozenset[str] = frozenset({ROLE_STUDENT, ROLE_SECTION_ADVISOR, ROLE_HOD})


class ProfileLookupError(Exception):
    """Unexpected backend error while looking up a profile."""

    def __init__(self, message: str, error: Optional[BackendError] = None):
        super().__init__(message)
        self.error = error


@dataclass(frozen=True)
class Profile:
    id: str
    email: Optional[str]
    username: Optional[str]
    role: str
    raw_role: Optional[str]
    section: Optional[str]


def _is_missing_user_id_column(error: BackendError) -> bool:
    message = (error.message or "").lower()
    if error.code:
        return error.code.upper() in {"42703", "PGRST204"} and "user_id" in message
    return "user_id" in message and ("does not exist" in message or "could not find" in message)


def _lookup(client: BackendClient, column: str, value: str) -> tuple[Optional[dict[str, Any]], Optional[BackendError]]:
    result = client.select(PROFILES_TABLE, filters=[eq(column, value)], limit=1)
    return result.first(), result.error


def profile_from_row(data: dict[str, Any], user_id: str) -> Optional[Profile]:
    """Build a Profile from a raw profiles row, or None for a disallowed role."""
    role_value = resolve_field(data, ["role"])
    raw_role = str(role_value).strip().upper() if role_value is not None and str(role_value).strip() else None
    if raw_role not in ALLOWED_ROLES:
        logger.warning("[profile_resolver] profiles.role has unexpected value %r for user %s", raw_role, user_id)
        return None

    section_value = resolve_field(data, ["section"])
    section = str(section_value).strip().upper() if section_value is not None else None
    id_value = resolve_field(data, ["id"])
    email_value = resolve_field(data, ["email"])
    username_value = resolve_field(data, ["username"])

    return Profile(
        id=str(id_value) if id_value is not None else user_id,
        email=str(email_value) if email_value is not None else None,
        username=str(username_value) if username_value is not None else None,
        role=raw_role,
        raw_role=raw_role,
        section=section or None,
    )


def resolve_profile(client: BackendClient, user_id: str, email: Optional[str] = None) -> Optional[Profile]:
    """
    Look up the profile for an auth user.

    Parameters
    ----------
    client : BackendClient
    user_id : str
        Auth user id.
    email : str, optional
        Used as the final lookup key, trimmed and lower-cased.

    Returns
    -------
    Profile or None
        None when no row matches or the role is not allowed.
        Raises ProfileLookupError on any other backend error.
    """
    data, error = _lookup(client, "user_id", user_id)
    if error is not None:
        if not _is_missing_user_id_column(error):
            raise ProfileLookupError(f"Profile lookup by user_id failed: {error.message}", error)
        logger.debug("[profile_resolver] profiles.user_id missing, trying profiles.id")
        data, error = _lookup(client, "id", user_id)
        if error is not None:
            raise ProfileLookupError(f"Profile lookup by id failed: {error.message}", error)

    if data is None and email:
        normalized_email = email.strip().lower()
        logger.debug("[profile_resolver] no profile by id for %s, trying email", user_id)
        data, error = _lookup(client, "email", normalized_email)
        if error is not None:
            raise ProfileLookupError(f"Profile lookup by email failed: {error.message}", error)

    if data is None:
        logger.info("[profile_resolver] no profile for user %s", user_id)
        return None
    return profile_from_row(data, user_id)
