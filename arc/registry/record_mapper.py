"""
A.R.C. Record Mapper

Turns a canonical StudentRow into the UI-facing StudentRecord. The mapping
is total: every StudentRecord field is always populated, no matter how
sparse the source row was.

Coercion rules:
- numeric fields: numbers as-is, numeric-looking strings parsed, anything
  else (absent, blank, unparseable, NaN, infinite) becomes 0
- text fields: str() of the value, absent becomes ""
- is_hosteller: unknown becomes False
- tech_stack: a list is kept, a string is split on , ; | (trimmed, empties
  dropped)
- initials: first character of the trimmed name, upper-cased
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Union

from arc.registry.row_normalizer import StudentRow

Number = Union[int, float]

NUMERIC_FIELDS: frozenset[str] = frozenset({
    "tenth_percentage", "twelfth_percentage", "diploma_percentage",
    "gpa_sem1", "gpa_sem2", "gpa_sem3", "gpa_sem4",
    "gpa_sem5", "gpa_sem6", "gpa_sem7", "gpa_sem8", "cgpa_overall",
    "lc_total", "lc_easy", "lc_med", "lc_hard", "lc_rating", "lc_badges", "lc_max",
    "cc_total", "cc_badges", "cc_rating",
    "sr_problems",
})

_LIST_SPLIT = re.compile(r"[,;|]")


@dataclass
class StudentRecord:
    id: str = ""
    reg_no: str = ""
    name: str = ""
    dept: str = ""
    year: str = ""
    section: str = ""
    gender: str = ""
    mobile: str = ""
    alt_mobile: str = ""
    official_email: str = ""
    personal_email: str = ""
    current_address: str = ""
    permanent_address: str = ""
    pincode: str = ""
    state: str = ""
    aadhar: str = ""
    pan: str = ""
    father_name: str = ""
    mother_name: str = ""
    guardian_name: str = ""
    dob: str = ""
    tenth_percentage: Number = 0
    twelfth_percentage: Number = 0
    tenth_year: str = ""
    twelfth_year: str = ""
    diploma_year: str = ""
    diploma_percentage: Number = 0
    gpa_sem1: Number = 0
    gpa_sem2: Number = 0
    gpa_sem3: Number = 0
    gpa_sem4: Number = 0
    gpa_sem5: Number = 0
    gpa_sem6: Number = 0
    gpa_sem7: Number = 0
    gpa_sem8: Number = 0
    cgpa_overall: Number = 0
    tech_stack: list[str] = field(default_factory=list)
    resume_url: str = ""
    relocate: str = ""
    category: str = ""
    placement_status: str = ""
    internship_company: str = ""
    internship_offer_link: str = ""
    leetcode_id: str = ""
    lc_total: Number = 0
    lc_easy: Number = 0
    lc_med: Number = 0
    lc_hard: Number = 0
    lc_rating: Number = 0
    lc_badges: Number = 0
    lc_max: Number = 0
    codechef_id: str = ""
    cc_total: Number = 0
    cc_rank: str = ""
    cc_badges: Number = 0
    cc_rating: Number = 0
    sr_problems: Number = 0
    sr_rank: str = ""
    skillrack_id: str = ""
    github: str = ""
    linkedin: str = ""
    coe_name: str = ""
    coe_incharge: str = ""
    coe_projects: str = ""
    updated_at: str = ""
    is_hosteller: bool = False
    initials: str = ""

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


STUDENT_RECORD_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(StudentRecord))

TEXT_FIELDS: frozenset[str] = frozenset(
    name for name in STUDENT_RECORD_FIELDS
    if name not in NUMERIC_FIELDS and name not in {"tech_stack", "is_hosteller", "initials"}
)


# ---------------------------------------------------------------------------
# Coercions
# ---------------------------------------------------------------------------

def to_number(value: Any, default: Number = 0) -> Number:
    """Permissive numeric parse; integral values come back as int."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().rstrip("%").strip()
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


def to_text(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"true", "1", "yes"}


def to_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [part.strip() for part in _LIST_SPLIT.split(str(value)) if part.strip()]


def initials_for(name: str) -> str:
    stripped = name.strip()
    return stripped[0].upper() if stripped else ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def to_record(row: StudentRow) -> StudentRecord:
    """Map a StudentRow to a fully populated StudentRecord. Never raises."""
    source = row.as_dict() if isinstance(row, StudentRow) else {}
    values: dict[str, Any] = {}
    for name in TEXT_FIELDS:
        values[name] = to_text(source.get(name))
    for name in NUMERIC_FIELDS:
        values[name] = to_number(source.get(name))
    values["tech_stack"] = to_list(source.get("tech_stack"))
    values["is_hosteller"] = to_bool(source.get("is_hosteller"))
    if not values["id"]:
        values["id"] = values["reg_no"]
    values["initials"] = initials_for(values["name"])
    return StudentRecord(**values)


def to_records(rows: list[StudentRow]) -> list[StudentRecord]:
    return [to_record(r) for r in rows]


def record_to_row(record: StudentRecord) -> StudentRow:
    """StudentRow view of a record; to_record(record_to_row(r)) == r."""
    data = record.as_dict()
    data.pop("initials", None)
    data["tech_stack"] = list(data["tech_stack"])
    return StudentRow(**data)
