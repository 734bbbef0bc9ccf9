"""
A.R.C. Query Fallback Engine

Fetches student rows when the exact table name and column spellings of the
deployed registry are not known in advance. An ordered list of
TableCandidate variants is tried until one answers.

RULES:
- A candidate whose table or column does not exist is skipped; the next
  candidate is tried.
- A candidate that answers with zero rows is remembered and skipped; zero
  rows is not an error.
- Any other backend error (permissions, network, malformed filter) aborts
  the whole chain with RegistryQueryError. No further candidate is tried.
- When every filtered query comes back empty or missing, a paged full
  fetch of each candidate is filtered client-side on the normalized
  section. The first candidate whose full fetch returns rows decides the
  result, even when no row matches the section.
- Every returned row has passed through normalize_student_row().

Public API:
  StudentQueryEngine(client, candidates=DEFAULT_CANDIDATES, page_size=1000)
    .fetch_by_section(section) -> list[StudentRow]
    .fetch_all()               -> list[StudentRow]
    .fetch_available_sections() -> list[str]
    .fetch_student_columns()   -> list[str]
  is_missing_schema_error(error) -> bool
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from arc.access.backend_client import BackendClient, BackendError, ilike
from arc.registry.row_normalizer import StudentRow, normalize_student_row, normalize_student_rows

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE: int = 1000
SECTIONS_TABLE: str = "sections"

_MISSING_SCHEMA_MARKERS: tuple[str, ...] = ("does not exist", "could not find")
_MISSING_SCHEMA_CODES: frozenset[str] = frozenset({"42P01", "42703", "PGRST204", "PGRST205"})


class RegistryQueryError(Exception):
    """An unexpected backend error aborted the candidate chain."""

    def __init__(self, message: str, error: Optional[BackendError] = None):
        super().__init__(message)
        self.error = error


@dataclass(frozen=True)
class TableCandidate:
    table: str
    section_column: str
    name_column: str


DEFAULT_CANDIDATES: tuple[TableCandidate, ...] = (
    TableCandidate("Students", "SECTION", "NAME"),
    TableCandidate("students", "section", "name"),
)


def is_missing_schema_error(error: Optional[BackendError]) -> bool:
    """
    True when the error says a relation or column does not exist.

    A coded error is judged by its code alone; the message is only read
    when the backend sent no code.
    """
    if error is None:
        return False
    if error.code:
        return error.code.upper() in _MISSING_SCHEMA_CODES
    message = (error.message or "").lower()
    return any(marker in message for marker in _MISSING_SCHEMA_MARKERS)


def normalize_section(section: Any) -> str:
    return str(section if section is not None else "").strip().upper()


class _CandidateMissing(Exception):
    pass


class StudentQueryEngine:
    """Ordered-candidate student queries against an injected backend client."""

    def __init__(
        self,
        client: BackendClient,
        candidates: Sequence[TableCandidate] = DEFAULT_CANDIDATES,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        if not candidates:
            raise ValueError("StudentQueryEngine needs at least one TableCandidate")
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.client = client
        self.candidates = tuple(candidates)
        self.page_size = page_size

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(self, action: str, candidate: TableCandidate, error: BackendError) -> RegistryQueryError:
        logger.warning(
            "[query_fallback] %s on '%s' failed: %s", action, candidate.table, error,
        )
        return RegistryQueryError(
            f"Registry query on '{candidate.table}' failed: {error.message}", error,
        )

    def _fetch_all_raw(self, candidate: TableCandidate) -> list[dict[str, Any]]:
        """
        Paged full fetch of one candidate ordered by name.

        Raises _CandidateMissing when the table or name column does not
        exist, RegistryQueryError on any other error.
        """
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            result = self.client.select(
                candidate.table,
                order=candidate.name_column,
                ascending=True,
                offset=offset,
                limit=self.page_size,
            )
            if result.error is not None:
                if is_missing_schema_error(result.error):
                    logger.debug(
                        "[query_fallback] full fetch: '%s' missing (%s)", candidate.table, result.error,
                    )
                    raise _CandidateMissing(candidate.table)
                raise self._fail("full fetch", candidate, result.error)
            page = result.data
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            offset += self.page_size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch_by_section(self, section: Any) -> list[StudentRow]:
        """
        Rows of one section, trying every candidate before the client-side
        fallback.

        Parameters
        ----------
        section : str
            Section code. Trimmed and upper-cased before use.

        Returns
        -------
        list[StudentRow]
            Possibly empty. Raises RegistryQueryError on a non-schema error.
        """
        wanted = normalize_section(section)
        patterns = [wanted, f"{wanted}%"]

        for candidate in self.candidates:
            for pattern in patterns:
                result = self.client.select(
                    candidate.table,
                    filters=[ilike(candidate.section_column, pattern)],
                    order=candidate.name_column,
                    ascending=True,
                )
                if result.error is None:
                    if result.data:
                        logger.info(
                            "[query_fallback] section '%s': %d rows from '%s' (pattern '%s')",
                            wanted, len(result.data), candidate.table, pattern,
                        )
                        return normalize_student_rows(result.data)
                    logger.debug(
                        "[query_fallback] '%s'.%s ilike '%s': zero rows",
                        candidate.table, candidate.section_column, pattern,
                    )
                    continue
                if is_missing_schema_error(result.error):
                    logger.debug(
                        "[query_fallback] '%s'.%s missing, skipping candidate (%s)",
                        candidate.table, candidate.section_column, result.error,
                    )
                    break
                raise self._fail("section query", candidate, result.error)

        logger.info("[query_fallback] section '%s': falling back to client-side filter", wanted)
        for candidate in self.candidates:
            try:
                raw_rows = self._fetch_all_raw(candidate)
            except _CandidateMissing:
                continue
            if not raw_rows:
                continue
            normalized = [normalize_student_row(r) for r in raw_rows]
            matched = [r for r in normalized if normalize_section(r.section) == wanted]
            logger.info(
                "[query_fallback] section '%s': %d of %d rows matched client-side in '%s'",
                wanted, len(matched), len(normalized), candidate.table,
            )
            return matched

        logger.info("[query_fallback] section '%s': no candidate returned rows", wanted)
        return []

    def fetch_all(self) -> list[StudentRow]:
        """Every row of the first candidate that returns rows."""
        for candidate in self.candidates:
            try:
                raw_rows = self._fetch_all_raw(candidate)
            except _CandidateMissing:
                continue
            if raw_rows:
                logger.info("[query_fallback] fetch_all: %d rows from '%s'", len(raw_rows), candidate.table)
                return normalize_student_rows(raw_rows)
        return []

    def fetch_available_sections(self) -> list[str]:
        """
        Section codes, ascending.

        A non-empty `sections` table wins. Otherwise the distinct non-empty
        section values of the first student candidate that has any.
        """
        result = self.client.select(SECTIONS_TABLE, columns="section", order="section", ascending=True)
        if result.error is None and result.data:
            sections = [normalize_section(r.get("section")) for r in result.data]
            return sorted({s for s in sections if s})
        if result.error is not None:
            logger.debug("[query_fallback] sections table unavailable: %s", result.error)

        for candidate in self.candidates:
            result = self.client.select(candidate.table, columns=candidate.section_column)
            if result.error is not None:
                if is_missing_schema_error(result.error):
                    continue
                raise self._fail("section listing", candidate, result.error)
            distinct = {normalize_section(r.get(candidate.section_column)) for r in result.data}
            distinct.discard("")
            if distinct:
                return sorted(distinct)
        return []

    def fetch_student_columns(self) -> list[str]:
        """Raw column names from one sample row of the first reachable candidate."""
        for candidate in self.candidates:
            result = self.client.select(candidate.table, limit=1)
            if result.error is not None:
                if is_missing_schema_error(result.error):
                    continue
                raise self._fail("column lookup", candidate, result.error)
            sample = result.first()
            return list(sample.keys()) if sample else []
        return []
