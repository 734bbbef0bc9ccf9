"""
A.R.C. Field Catalog

In-memory list of registry field labels, grouped by category. Advisors
pick from it when requesting updates, and can add or remove labels for the
current session. Nothing here is persisted.

RULES:
- Labels are stored upper-cased and trimmed.
- Adding a blank label, or one already present in the category, is a no-op.
- Removing a label that is not present is a no-op.
- Category order and label order are preserved.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


DEFAULT_FIELD_GROUPS: dict[str, list[str]] = {
    "Core Profile": [
        "REG NO", "NAME", "DEPT", "YEAR", "SECTION", "GENDER",
        "MOBILE NO", "ALT MOBILE NO", "OFFICIAL MAIL", "EMAIL",
    ],
    "Identity & Residence": [
        "CURRENT ADDRESS", "PERMANENT ADDRESS", "PINCODE", "STATE",
        "AADHAR NO", "PAN NO", "FATHER NAME", "MOTHER NAME",
    ],
    "Academic Matrix": [
        "10TH BOARD %", "12TH BOARD %", "10TH YEAR", "12TH YEAR",
        "GPA SEM1", "GPA SEM2", "GPA SEM3", "CGPA (3 SEM)",
    ],
    "Coding & Career": [
        "KNOWN TECH STACK", "RESUME LINK", "WILLING TO RELOCATE", "PLACEMENT/HS",
        "COMPANY/OFFER LINK", "LEETCODE ID", "LC TOTAL", "LC EASY", "LC MED",
        "LC HARD", "LC RATING", "LC BADGES", "LC MAX", "CODECHEF ID", "CC TOTAL",
        "CC RANK", "CC BADGES", "CC RATING", "SR PROBLEMS", "SR RANK",
        "GITHUB ID", "LINKEDIN",
    ],
    "Center of Excellence": ["COE NAME", "COE INCHARGE", "COE PROJECTS"],
}

_SLUG = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class FieldDescriptor:
    id: str
    label: str
    category: str


def _descriptor_id(category: str, label: str) -> str:
    return f"{_SLUG.sub('-', category.lower()).strip('-')}:{_SLUG.sub('-', label.lower()).strip('-')}"


class FieldCatalog:
    def __init__(self, groups: Optional[dict[str, list[str]]] = None):
        self.groups: dict[str, list[str]] = copy.deepcopy(groups if groups is not None else DEFAULT_FIELD_GROUPS)

    @property
    def categories(self) -> list[str]:
        return list(self.groups)

    def add_field(self, label: str, category: str) -> bool:
        """Add a label to a category. Returns True when the catalog changed."""
        if category not in self.groups:
            raise KeyError(f"Unknown field category '{category}'")
        normalized = (label or "").strip().upper()
        if not normalized or normalized in self.groups[category]:
            return False
        self.groups[category].append(normalized)
        logger.info("[field_catalog] added '%s' to '%s'", normalized, category)
        return True

    def remove_field(self, category: str, label: str) -> bool:
        fields = self.groups.get(category)
        label = (label or "").strip().upper()
        if not fields or label not in fields:
            return False
        fields.remove(label)
        logger.info("[field_catalog] removed '%s' from '%s'", label, category)
        return True

    def remove_fields(self, pairs: Iterable[tuple[str, str]]) -> int:
        """Remove several (category, label) pairs; returns how many were removed."""
        return sum(1 for category, label in pairs if self.remove_field(category, label))

    def labels(self) -> list[str]:
        return [label for fields in self.groups.values() for label in fields]

    def descriptors(self) -> list[FieldDescriptor]:
        return [
            FieldDescriptor(id=_descriptor_id(category, label), label=label, category=category)
            for category, fields in self.groups.items()
            for label in fields
        ]
