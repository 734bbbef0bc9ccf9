"""
A.R.C. Field Resolver

Deterministic alias library for student-registry column names.

RULES:
- Deterministic string matching only. No fuzzy matching.
- Case-insensitive and punctuation-insensitive: every character that is not
  a letter or digit is stripped before comparison ("REG_NO" == "reg no" ==
  "regno").
- Candidates are tried in the caller's priority order; for each candidate
  the row's keys are scanned in their natural order.
- Same input always produces same output.
- A key that does not normalize to a known spelling is unmatched. It is
  reported, never guessed.

Public API:
  normalize_key(key) -> str
  resolve_field(row, candidates) -> value | None
  resolve_columns(columns, label) -> dict[str, str]
  get_unmatched_columns(columns, resolved_map) -> list[str]
  load_alias_overrides(path) -> dict[str, list[str]]
  STUDENT_COLUMN_VARIANTS
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def normalize_key(key: Any) -> str:
    """Strip every non-alphanumeric character and lower-case."""
    return _NON_ALNUM.sub("", str(key)).lower()


# ---------------------------------------------------------------------------
# Canonical field -> known historical spellings
# ---------------------------------------------------------------------------
# The registry tables were imported from spreadsheets more than once, so the
# same attribute appears as "REGNO", "REG_NO" or "reg_no" depending on the
# deployment. Order matters: earlier spellings win when a row carries more
# than one of them.
# ---------------------------------------------------------------------------

STUDENT_COLUMN_VARIANTS: dict[str, list[str]] = {
    # ── identity ────────────────────────────────────────────────────────────
    "id":                  ["id"],
    "reg_no":              ["reg_no", "regno", "REGNO", "REG_NO"],
    "name":                ["name", "NAME"],
    "dept":                ["dept", "DEPT"],
    "year":                ["year", "YEAR"],
    "section":             ["section", "SECTION"],
    "gender":              ["gender", "GENDER"],
    # ── contact ─────────────────────────────────────────────────────────────
    "mobile":              ["mobile_no", "mobileno", "MOBILE_NO", "MOBILE"],
    "alt_mobile":          ["alt_mobile", "altmobileno", "ALT_MOBILE_NO"],
    "official_email":      ["official_mail", "officialemail", "OFFICIAL_MAIL"],
    "personal_email":      ["email", "EMAIL", "personal_email", "personalemail"],
    # ── address & identity documents ────────────────────────────────────────
    "current_address":     ["current_address", "currentaddress", "CURRENT_ADDRESS"],
    "permanent_address":   ["permanent_address", "permanentaddress", "PERMANENT_ADDRESS"],
    "pincode":             ["pincode", "PINCODE"],
    "state":               ["state", "STATE"],
    "aadhar":              ["aadhar_no", "aadhar", "AADHAR_NO"],
    "pan":                 ["pan_no", "pan", "PAN_NO"],
    "father_name":         ["father_name", "fathername", "FATHER_NAME"],
    "mother_name":         ["mother_name", "mothername", "MOTHER_NAME"],
    "guardian_name":       ["guardian_name", "GUARDIAN_NAME", "guardianname"],
    "dob":                 ["dob", "date_of_birth", "dateofbirth", "birthdate"],
    # ── schooling ───────────────────────────────────────────────────────────
    # Both "_pct" and "_marks" spellings exist: the column was renamed
    # upstream without a migration.
    "tenth_percentage":    ["10th_board_pct", "10TH_BOARD_PCT", "10TH_BOARD_MARKS", "10th_board_marks"],
    "twelfth_percentage":  ["12th_board_pct", "12TH_BOARD_PCT", "12TH_BOARD_MARKS", "12th_board_marks"],
    "tenth_year":          ["10th_board_year", "10TH_BOARD_YEAR", "tenth_year"],
    "twelfth_year":        ["12th_board_year", "12TH_BOARD_YEAR", "twelfth_year"],
    "diploma_year":        ["diploma_year", "DIPLOMA_YEAR", "diplomaYear"],
    "diploma_percentage":  ["diploma_pct", "diploma_percentage", "DIPLOMA_PCT", "DIPLOMA_PERCENTAGE"],
    # ── semester results ────────────────────────────────────────────────────
    "gpa_sem1":            ["gpa_sem1", "GPA_SEM1"],
    "gpa_sem2":            ["gpa_sem2", "GPA_SEM2"],
    "gpa_sem3":            ["gpa_sem3", "GPA_SEM3"],
    "gpa_sem4":            ["gpa_sem4", "GPA_SEM4"],
    "gpa_sem5":            ["gpa_sem5", "GPA_SEM5"],
    "gpa_sem6":            ["gpa_sem6", "GPA_SEM6"],
    "gpa_sem7":            ["gpa_sem7", "GPA_SEM7"],
    "gpa_sem8":            ["gpa_sem8", "GPA_SEM8"],
    "cgpa_overall":        ["cgpa", "CGPA", "cgpa_overall"],
    # ── placement & career ──────────────────────────────────────────────────
    "tech_stack":          ["known_tech_stack", "KNOWN_TECH_STACK", "tech_stack"],
    "resume_url":          ["resume_link", "RESUME_LINK", "resume_url"],
    "relocate":            ["willing_to_relocate", "WILLING_TO_RELOCATE"],
    "category":            ["placement_hs", "PLACEMENT_HS"],
    "placement_status":    ["placement_status", "company_offer_link", "COMPANY_OFFER_LINK"],
    "internship_company":  ["internship_company", "INTERNSHIP_COMPANY_NAME", "internship_company_name"],
    "internship_offer_link": [
        "internship_offer_link",
        "INTERNSHIP_OFFER_LETTER_LINK",
        "internship_offer_letter_link",
        "internship_offer",
    ],
    # ── LeetCode ────────────────────────────────────────────────────────────
    "leetcode_id":         ["leetcode_id", "LEETCODE_ID"],
    "lc_total":            ["lc_total_problems", "lc_total", "LC_TOTAL_PROBLEMS"],
    "lc_easy":             ["lc_easy", "LC_EASY"],
    "lc_med":              ["lc_medium", "lc_med", "LC_MEDIUM"],
    "lc_hard":             ["lc_hard", "LC_HARD"],
    "lc_rating":           ["lc_rating", "LC_RATING"],
    "lc_badges":           ["lc_badges", "LC_BADGES"],
    "lc_max":              ["lc_max_rating", "LC_MAX_RATING", "lc_max"],
    # ── CodeChef ────────────────────────────────────────────────────────────
    "codechef_id":         ["codechef_id", "CODECHEF_ID"],
    "cc_total":            ["cc_total_problems", "CC_TOTAL_PROBLEMS", "cc_total"],
    "cc_rank":             ["cc_rank", "CC_RANK"],
    "cc_badges":           ["cc_badges", "CC_BADGES"],
    "cc_rating":           ["cc_rating", "CC_RATING"],
    # ── SkillRack ───────────────────────────────────────────────────────────
    "sr_problems":         ["sr_problems_solved", "sr_problems", "SR_PROBLEMS_SOLVED"],
    "sr_rank":             ["sr_rank", "SR_RANK"],
    "skillrack_id":        ["skillrack_id", "skillrackid", "SKILLRACK_ID", "SKILL_RACK_ID", "sr_id"],
    # ── social ──────────────────────────────────────────────────────────────
    "github":              ["github_id", "GITHUB_ID", "github_link", "GITHUB_LINK", "github"],
    "linkedin":            ["linkedin_url", "LINKEDIN_URL", "linkedin"],
    # ── center of excellence ────────────────────────────────────────────────
    "coe_name":            ["coe_name", "COE_NAME"],
    "coe_incharge":        ["coe_incharge_name", "COE_INCHARGE_NAME", "coe_incharge"],
    "coe_projects":        ["coe_projects_done", "COE_PROJECTS_DONE", "coe_projects"],
    # ── bookkeeping ─────────────────────────────────────────────────────────
    "updated_at":          ["updated_at", "updatedAt"],
}

# Residency is derived from two raw columns rather than passed through.
RESIDENCY_TEXT_VARIANTS: list[str] = ["residency_status", "RESIDENCY_STATUS", "residency", "RESIDENCY"]
RESIDENCY_FLAG_VARIANTS: list[str] = ["is_hosteller", "IS_HOSTELLER"]


# ---------------------------------------------------------------------------
# Reverse lookup (normalized spelling -> canonical field)
# ---------------------------------------------------------------------------

def _build_alias_lookup(variants: Mapping[str, list[str]]) -> dict[str, str]:
    """
    Flatten the variant table into {normalized_spelling: canonical_field}.

    Raises ValueError when one normalized spelling is claimed by two
    canonical fields (the table would be ambiguous).
    """
    lookup: dict[str, str] = {}
    sources = list(variants.items()) + [
        ("is_hosteller", RESIDENCY_TEXT_VARIANTS + RESIDENCY_FLAG_VARIANTS),
    ]
    for canonical, spellings in sources:
        for spelling in spellings:
            key = normalize_key(spelling)
            existing = lookup.get(key)
            if existing is not None and existing != canonical:
                raise ValueError(
                    f"Alias table conflict: spelling '{spelling}' (normalized: '{key}') "
                    f"maps to '{canonical}' but was already mapped to '{existing}'."
                )
            lookup[key] = canonical
    return lookup


_ALIAS_LOOKUP: dict[str, str] = _build_alias_lookup(STUDENT_COLUMN_VARIANTS)


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------

def load_alias_overrides(path: str) -> dict[str, list[str]]:
    """
    Read an alias override file: {"canonical_field": ["spelling", ...], ...}.

    Raises ValueError for unknown canonical fields or malformed entries.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Alias override file '{path}' must contain a JSON object.")
    overrides: dict[str, list[str]] = {}
    for canonical, spellings in data.items():
        if canonical not in STUDENT_COLUMN_VARIANTS:
            raise ValueError(
                f"Alias override file '{path}' names unknown field '{canonical}'. "
                f"Known fields: {sorted(STUDENT_COLUMN_VARIANTS)}"
            )
        if not isinstance(spellings, list) or not all(isinstance(s, str) for s in spellings):
            raise ValueError(f"Alias override for '{canonical}' must be a list of strings.")
        overrides[canonical] = spellings
    return overrides


def apply_alias_overrides(overrides: Mapping[str, list[str]]) -> None:
    """
    Prepend override spellings to the built-in table and rebuild the lookup.

    Override spellings are tried before the built-in ones. Applying the same
    overrides twice is harmless.
    """
    global _ALIAS_LOOKUP
    merged = {k: list(v) for k, v in STUDENT_COLUMN_VARIANTS.items()}
    for canonical, spellings in overrides.items():
        existing = merged[canonical]
        merged[canonical] = list(spellings) + [s for s in existing if s not in spellings]
    _ALIAS_LOOKUP = _build_alias_lookup(merged)
    STUDENT_COLUMN_VARIANTS.update(merged)
    logger.info("[field_resolver] applied alias overrides for %d field(s)", len(overrides))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_field(row: Any, candidates: Iterable[str]) -> Optional[Any]:
    """
    Return the value stored under the first matching spelling, or None.

    Parameters
    ----------
    row : Mapping
        Raw record with unknown exact key spellings. Anything that is not a
        mapping resolves to None.
    candidates : iterable of str
        Acceptable spellings in priority order.
    """
    if not isinstance(row, Mapping):
        return None
    normalized_keys = [(normalize_key(k), k) for k in row.keys()]
    for candidate in candidates:
        wanted = normalize_key(candidate)
        for normalized, original in normalized_keys:
            if normalized == wanted:
                return row[original]
    return None


def resolve_columns(columns: Iterable[str], label: str) -> dict[str, str]:
    """
    Map raw column names to canonical field names.

    Parameters
    ----------
    columns : iterable of str
        Raw column names as returned by the backend.
    label : str
        Human-readable label (usually the table name). Used only in log
        messages.

    Returns
    -------
    dict[str, str]
        {raw_column: canonical_field} for every recognized column, in input
        order. Unrecognized columns are not included.
    """
    resolved: dict[str, str] = {}
    for col in columns:
        canonical = _ALIAS_LOOKUP.get(normalize_key(col))
        if canonical is not None:
            resolved[col] = canonical
            logger.debug("[field_resolver] %s: '%s' → '%s'", label, col, canonical)
    return resolved


def get_unmatched_columns(columns: Iterable[str], resolved_map: Mapping[str, str]) -> list[str]:
    """Raw columns with no match in the alias table, original spelling kept."""
    return [col for col in columns if col not in resolved_map]
