"""
A.R.C. Update Requests

Pending field-update requests per section, per-student completion
tracking, and direct student-row writes.

Tables:
  field_update_requests     (section, field_label)
  field_update_completions  (section, reg_no, field_label, completed_at)

RULES:
- Section codes are trimmed and upper-cased, and matched
  case-insensitively.
- Writes never raise; they return an OperationResult.
- Replacing a section's requests is delete-then-insert. If the insert
  fails after the delete succeeded, the previous labels are re-inserted
  and the failure is still reported.
- Reads that fail are logged and come back empty.

Public API:
  fetch_needs_updation(client, section) -> list[str]
  set_needs_updation(client, section, labels) -> OperationResult
  clear_needs_updation(client, section) -> OperationResult
  mark_field_updated(client, section, reg_no, label) -> OperationResult
  fetch_students_with_pending_updates(client, section, engine) -> PendingUpdateSummary
  check_and_auto_clear_updates(client, section, engine) -> dict
  update_student_by_reg_no(client, reg_no, updates) -> OperationResult
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence

from arc.access.backend_client import BackendClient, eq, ilike
from arc.registry.query_fallback import (
    RegistryQueryError,
    StudentQueryEngine,
    is_missing_schema_error,
    normalize_section,
)

logger = logging.getLogger(__name__)

REQUESTS_TABLE = "field_update_requests"
COMPLETIONS_TABLE = "field_update_completions"
STUDENTS_TABLE = "Students"
REG_NO_COLUMNS: tuple[str, ...] = ("REGNO", "REG_NO", "reg_no")


@dataclass
class OperationResult:
    success: bool
    error: Optional[str] = None
    data: Any = None
    note: Optional[str] = None


@dataclass
class PendingStudent:
    reg_no: str
    name: str
    missing_fields: list[str]
    completed_count: int
    total_required: int


@dataclass
class PendingUpdateSummary:
    students: list[PendingStudent] = field(default_factory=list)
    all_complete: bool = True
    total_students: int = 0
    required_fields: list[str] = field(default_factory=list)
    error: Optional[str] = None


def _dedupe(labels: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for label in labels:
        label = str(label).strip()
        if label and label not in seen:
            seen.append(label)
    return seen


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def _read_labels(client: BackendClient, section: str) -> tuple[list[str], Optional[str]]:
    result = client.select(REQUESTS_TABLE, columns="field_label", filters=[ilike("section", section)])
    if result.error is not None:
        return [], result.error.message
    return [str(r.get("field_label")) for r in result.data if r.get("field_label") is not None], None


def fetch_needs_updation(client: BackendClient, section: str) -> list[str]:
    """Field labels currently requested for a section."""
    labels, error = _read_labels(client, normalize_section(section))
    if error:
        logger.warning("[update_requests] fetch_needs_updation(%s) failed: %s", section, error)
    return labels


def set_needs_updation(client: BackendClient, section: str, labels: Sequence[str]) -> OperationResult:
    """
    Replace the requested labels of a section.

    Parameters
    ----------
    client : BackendClient
    section : str
    labels : sequence of str
        New label set. Empty clears the section.

    Returns
    -------
    OperationResult
    """
    normalized = normalize_section(section)
    if not normalized:
        return OperationResult(False, error="Section is required.")
    wanted = _dedupe(labels)

    previous, error = _read_labels(client, normalized)
    if error:
        logger.warning("[update_requests] could not read current requests for %s: %s", normalized, error)
        return OperationResult(False, error=error)

    deleted = client.delete(REQUESTS_TABLE, [ilike("section", normalized)])
    if deleted.error is not None:
        logger.warning("[update_requests] delete for %s failed: %s", normalized, deleted.error)
        return OperationResult(False, error=deleted.error.message)

    if not wanted:
        return OperationResult(True, data=[])

    inserted = client.insert(REQUESTS_TABLE, [{"section": normalized, "field_label": f} for f in wanted])
    if inserted.error is None:
        logger.info("[update_requests] %s now requests %d fields", normalized, len(wanted))
        return OperationResult(True, data=wanted)

    logger.warning("[update_requests] insert for %s failed: %s", normalized, inserted.error)
    note = None
    if previous:
        restored = client.insert(REQUESTS_TABLE, [{"section": normalized, "field_label": f} for f in previous])
        if restored.error is None:
            note = "previous requests restored"
        else:
            logger.error("[update_requests] could not restore requests for %s: %s", normalized, restored.error)
            note = "previous requests could not be restored"
    return OperationResult(False, error=inserted.error.message, note=note)


def clear_needs_updation(client: BackendClient, section: str) -> OperationResult:
    normalized = normalize_section(section)
    result = client.delete(REQUESTS_TABLE, [ilike("section", normalized)])
    if result.error is not None:
        logger.warning("[update_requests] clear for %s failed: %s", normalized, result.error)
        return OperationResult(False, error=result.error.message)
    return OperationResult(True)


# ---------------------------------------------------------------------------
# Completions
# ---------------------------------------------------------------------------

def mark_field_updated(client: BackendClient, section: str, reg_no: str, label: str) -> OperationResult:
    """Record that a student has updated one requested field."""
    row = {
        "section": normalize_section(section),
        "reg_no": str(reg_no or "").strip(),
        "field_label": label,
        "completed_at": datetime.now(timezone.utc).isoformat(),
    }
    result = client.upsert(COMPLETIONS_TABLE, [row], on_conflict="section,reg_no,field_label")
    if result.error is not None:
        logger.warning("[update_requests] mark_field_updated failed: %s", result.error)
        return OperationResult(False, error=result.error.message)
    return OperationResult(True, data=result.first())


def fetch_students_with_pending_updates(
    client: BackendClient, section: str, engine: StudentQueryEngine,
) -> PendingUpdateSummary:
    """Students of a section that still miss at least one requested field."""
    normalized = normalize_section(section)
    required, error = _read_labels(client, normalized)
    if error:
        logger.warning("[update_requests] pending check for %s failed: %s", normalized, error)
        return PendingUpdateSummary(all_complete=False, error=error)
    required = _dedupe(required)
    if not required:
        return PendingUpdateSummary()

    try:
        rows = engine.fetch_by_section(normalized)
    except RegistryQueryError as e:
        logger.warning("[update_requests] student lookup for %s failed: %s", normalized, e)
        return PendingUpdateSummary(all_complete=False, required_fields=required, error=str(e))
    if not rows:
        return PendingUpdateSummary(required_fields=required)

    completions = client.select(
        COMPLETIONS_TABLE, columns="reg_no,field_label", filters=[ilike("section", normalized)],
    )
    completed_by_student: dict[str, set[str]] = {}
    if completions.error is not None:
        # Missing completions table means nobody has completed anything yet.
        logger.warning("[update_requests] completions unavailable for %s: %s", normalized, completions.error)
    else:
        for c in completions.data:
            key = str(c.get("reg_no") or "").strip().upper()
            completed_by_student.setdefault(key, set()).add(c.get("field_label"))

    pending: list[PendingStudent] = []
    for row in rows:
        reg_no = str(row.reg_no or "").strip()
        done = completed_by_student.get(reg_no.upper(), set())
        missing = [label for label in required if label not in done]
        if missing:
            pending.append(PendingStudent(
                reg_no=reg_no,
                name=str(row.name or ""),
                missing_fields=missing,
                completed_count=len(required) - len(missing),
                total_required=len(required),
            ))

    return PendingUpdateSummary(
        students=pending,
        all_complete=not pending,
        total_students=len(rows),
        required_fields=required,
    )


def check_and_auto_clear_updates(
    client: BackendClient, section: str, engine: StudentQueryEngine,
) -> dict[str, Any]:
    """Clear requests and completions once every student of the section is done."""
    summary = fetch_students_with_pending_updates(client, section, engine)
    if summary.error:
        return {"cleared": False, "error": summary.error}
    if summary.all_complete and summary.total_students > 0:
        normalized = normalize_section(section)
        cleared = clear_needs_updation(client, normalized)
        if not cleared.success:
            return {"cleared": False, "error": cleared.error}
        completions = client.delete(COMPLETIONS_TABLE, [ilike("section", normalized)])
        if completions.error is not None:
            logger.warning("[update_requests] could not clear completions for %s: %s", normalized, completions.error)
        logger.info("[update_requests] %s: all students complete, requests cleared", normalized)
        return {"cleared": True, "message": "All students completed updates - requests cleared automatically"}
    return {"cleared": False, "pending": len(summary.students), "total": summary.total_students}


# ---------------------------------------------------------------------------
# Student writes
# ---------------------------------------------------------------------------

def update_student_by_reg_no(
    client: BackendClient,
    reg_no: str,
    updates: Mapping[str, Any],
    table: str = STUDENTS_TABLE,
    reg_no_columns: Sequence[str] = REG_NO_COLUMNS,
) -> OperationResult:
    """
    Update one student row, trying each registration-number column spelling
    in order until a row matches.
    """
    normalized = str(reg_no or "").strip()
    if not normalized:
        return OperationResult(False, error="Registration number is required.")
    if not updates:
        return OperationResult(False, error="No updates given.")

    for column in reg_no_columns:
        result = client.update(table, updates, [eq(column, normalized)])
        if result.error is not None:
            if is_missing_schema_error(result.error):
                logger.debug("[update_requests] %s.%s missing, trying next spelling", table, column)
                continue
            logger.warning("[update_requests] update of %s failed: %s", normalized, result.error)
            return OperationResult(False, error=result.error.message)
        if result.data:
            logger.info("[update_requests] updated %s via %s.%s", normalized, table, column)
            return OperationResult(True, data=result.first())
        logger.debug("[update_requests] no row with %s = %s", column, normalized)

    return OperationResult(False, error=f"No student with registration number {normalized}.")
