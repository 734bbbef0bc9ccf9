"""
Profile Resolver Test Suite

Tests cover:
- Lookup order: user_id, then id (only when user_id is missing), then email
- Fail-closed role handling
- Section and role normalization
"""

import pytest

from arc.access.profile_resolver import (
    PROFILES_TABLE,
    ROLE_HOD,
    ProfileLookupError,
    profile_from_row,
    resolve_profile,
)


def lookups(backend):
    return [params for method, table, params in backend.calls if table == PROFILES_TABLE]


# ---------------------------------------------------------------------------
# Lookup order
# ---------------------------------------------------------------------------

class TestLookupOrder:
    def test_by_user_id(self, backend):
        backend.add_table(PROFILES_TABLE, [{"id": "p1", "user_id": "u1", "role": "HOD"}])
        profile = resolve_profile(backend, "u1")
        assert profile.id == "p1"
        assert lookups(backend) == [(("user_id", "eq.u1"),)]

    def test_missing_user_id_column_falls_to_id(self, backend):
        backend.add_table(PROFILES_TABLE, [{"id": "u1", "role": "HOD"}])
        profile = resolve_profile(backend, "u1")
        assert profile.id == "u1"
        assert lookups(backend) == [(("user_id", "eq.u1"),), (("id", "eq.u1"),)]

    def test_email_last_and_normalized(self, backend):
        backend.add_table(PROFILES_TABLE, [
            {"id": "p9", "user_id": "other", "email": "hod@college.edu", "role": "HOD"},
        ])
        profile = resolve_profile(backend, "u1", email="  HOD@College.edu ")
        assert profile.id == "p9"
        assert lookups(backend)[-1] == (("email", "eq.hod@college.edu"),)

    def test_no_match(self, backend):
        backend.add_table(PROFILES_TABLE, [], columns={"id", "user_id", "email", "role"})
        assert resolve_profile(backend, "u1", email="x@y.z") is None

    def test_other_error_raises(self, backend):
        backend.fail("select", PROFILES_TABLE, "permission denied for table profiles", code="42501")
        with pytest.raises(ProfileLookupError) as excinfo:
            resolve_profile(backend, "u1")
        assert excinfo.value.error.code == "42501"
        assert len(lookups(backend)) == 1


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

class TestRoles:
    @pytest.mark.parametrize("role", ["HOD", "hod", " Hod "])
    def test_role_normalized(self, role):
        profile = profile_from_row({"id": "p1", "role": role}, "u1")
        assert profile.role == ROLE_HOD

    @pytest.mark.parametrize("role", ["TEACHER", "", None, "ADMIN"])
    def test_disallowed_role_is_none(self, role):
        assert profile_from_row({"id": "p1", "role": role}, "u1") is None

    def test_missing_role_is_none(self):
        assert profile_from_row({"id": "p1"}, "u1") is None

    def test_disallowed_role_from_backend(self, backend):
        backend.add_table(PROFILES_TABLE, [{"id": "p1", "user_id": "u1", "role": "TEACHER"}])
        assert resolve_profile(backend, "u1") is None


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------

class TestFields:
    def test_section_upper_cased(self):
        profile = profile_from_row({"id": "p1", "role": "SECTION_ADVISOR", "section": " q "}, "u1")
        assert profile.section == "Q"

    def test_blank_section_is_none(self):
        profile = profile_from_row({"id": "p1", "role": "SECTION_ADVISOR", "section": "  "}, "u1")
        assert profile.section is None

    def test_id_defaults_to_user_id(self):
        profile = profile_from_row({"role": "HOD"}, "u1")
        assert profile.id == "u1"

    def test_column_spelling_variants(self):
        profile = profile_from_row({"ID": "p1", "ROLE": "hod", "Email": "a@b.c", "USERNAME": "Dr. K"}, "u1")
        assert profile.id == "p1"
        assert profile.email == "a@b.c"
        assert profile.username == "Dr. K"
