"""
A.R.C. Row Normalizer

Maps a raw registry row (unknown exact column spellings) onto the canonical
StudentRow shape. Every field is resolved independently through the alias
table in field_resolver; a missing column leaves that one field as None and
never affects the others.

Values are passed through untouched. The only derived field is residency
(is_hosteller), which is read from a free-text status column when present
and from a boolean-like flag column otherwise.

normalize_student_row() never raises.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Optional

from arc.registry import field_resolver
from arc.registry.field_resolver import (
    RESIDENCY_FLAG_VARIANTS,
    RESIDENCY_TEXT_VARIANTS,
    resolve_field,
)

logger = logging.getLogger(__name__)

HOSTEL_TEXT_VALUES: frozenset[str] = frozenset({"hosteller", "hostel", "host"})
HOSTEL_FLAG_VALUES: frozenset[str] = frozenset({"true", "1", "yes", "hosteller"})


@dataclass
class StudentRow:
    """Canonical intermediate record. None means the source had no value."""
    id: Any = None
    reg_no: Any = None
    name: Any = None
    dept: Any = None
    year: Any = None
    section: Any = None
    gender: Any = None
    mobile: Any = None
    alt_mobile: Any = None
    official_email: Any = None
    personal_email: Any = None
    current_address: Any = None
    permanent_address: Any = None
    pincode: Any = None
    state: Any = None
    aadhar: Any = None
    pan: Any = None
    father_name: Any = None
    mother_name: Any = None
    guardian_name: Any = None
    dob: Any = None
    tenth_percentage: Any = None
    twelfth_percentage: Any = None
    tenth_year: Any = None
    twelfth_year: Any = None
    diploma_year: Any = None
    diploma_percentage: Any = None
    gpa_sem1: Any = None
    gpa_sem2: Any = None
    gpa_sem3: Any = None
    gpa_sem4: Any = None
    gpa_sem5: Any = None
    gpa_sem6: Any = None
    gpa_sem7: Any = None
    gpa_sem8: Any = None
    cgpa_overall: Any = None
    tech_stack: Any = None
    resume_url: Any = None
    relocate: Any = None
    category: Any = None
    placement_status: Any = None
    internship_company: Any = None
    internship_offer_link: Any = None
    leetcode_id: Any = None
    lc_total: Any = None
    lc_easy: Any = None
    lc_med: Any = None
    lc_hard: Any = None
    lc_rating: Any = None
    lc_badges: Any = None
    lc_max: Any = None
    codechef_id: Any = None
    cc_total: Any = None
    cc_rank: Any = None
    cc_badges: Any = None
    cc_rating: Any = None
    sr_problems: Any = None
    sr_rank: Any = None
    skillrack_id: Any = None
    github: Any = None
    linkedin: Any = None
    coe_name: Any = None
    coe_incharge: Any = None
    coe_projects: Any = None
    updated_at: Any = None
    is_hosteller: Optional[bool] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


STUDENT_ROW_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(StudentRow))


def derive_residency(raw: Any) -> Optional[bool]:
    """
    Hosteller flag from a raw row.

    A non-blank text status wins over the boolean flag column. Returns None
    when neither column carries a value.
    """
    status = resolve_field(raw, RESIDENCY_TEXT_VARIANTS)
    if status is not None and str(status).strip() != "":
        return str(status).strip().lower() in HOSTEL_TEXT_VALUES

    flag = resolve_field(raw, RESIDENCY_FLAG_VARIANTS)
    if flag is None:
        return None
    if isinstance(flag, bool):
        return flag
    return str(flag).strip().lower() in HOSTEL_FLAG_VALUES


def normalize_student_row(raw: Any) -> StudentRow:
    """
    Resolve every canonical field of a raw row.

    Parameters
    ----------
    raw : Mapping or anything
        Row as returned by the backend. Non-mapping input yields an
        all-None StudentRow.

    Returns
    -------
    StudentRow
    """
    values: dict[str, Any] = {}
    for canonical, spellings in field_resolver.STUDENT_COLUMN_VARIANTS.items():
        try:
            values[canonical] = resolve_field(raw, spellings)
        except Exception as e:  # a hostile mapping must not abort the row
            logger.debug("[row_normalizer] could not resolve '%s': %s", canonical, e)
            values[canonical] = None
    try:
        values["is_hosteller"] = derive_residency(raw)
    except Exception as e:
        logger.debug("[row_normalizer] could not derive residency: %s", e)
        values["is_hosteller"] = None
    return StudentRow(**{k: v for k, v in values.items() if k in STUDENT_ROW_FIELDS})


def normalize_student_rows(raw_rows: Any) -> list[StudentRow]:
    """Normalize a list of raw rows; None or non-list input yields []."""
    if not isinstance(raw_rows, list):
        return []
    return [normalize_student_row(r) for r in raw_rows]
