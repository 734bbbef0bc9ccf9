"""
Section Roster Analyzer
Search, sort, paging and section aggregates over StudentRecords,
plus the plain-text section brief and its PDF export.
"""

from __future__ import annotations

import hashlib
import math
from datetime import datetime
from io import BytesIO
from typing import Iterable

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from arc.registry.record_mapper import NUMERIC_FIELDS, STUDENT_RECORD_FIELDS, StudentRecord

# ============================================================================
# CONFIGURATION
# ============================================================================

BATCH_SIZE = 15
HIGH_CGPA_THRESHOLD = 8.5
TOP_N = 5

SORT_ASC = "asc"
SORT_DESC = "desc"

# Sort buttons shown on the dashboard
SORT_OPTIONS = {
    "name": "Name",
    "cgpa_overall": "CGPA Matrix",
    "lc_rating": "LeetCode Pulse",
}

BANNER = "═" * 75


# ============================================================================
# FRAME
# ============================================================================

def records_to_frame(records: Iterable[StudentRecord]) -> pd.DataFrame:
    """One row per StudentRecord, columns in record field order."""
    rows = [r.as_dict() for r in records]
    if not rows:
        return pd.DataFrame(columns=list(STUDENT_RECORD_FIELDS))
    return pd.DataFrame(rows, columns=list(STUDENT_RECORD_FIELDS))


def frame_to_records(df: pd.DataFrame) -> list[StudentRecord]:
    return [StudentRecord(**row) for row in df.to_dict(orient="records")]


# ============================================================================
# SEARCH / SORT / PAGING
# ============================================================================

def filter_roster(df: pd.DataFrame, search: str) -> pd.DataFrame:
    """Case-insensitive name substring, or reg-no substring."""
    term = (search or "").strip()
    if not term or df.empty:
        return df
    by_name = df["name"].astype(str).str.lower().str.contains(term.lower(), regex=False)
    by_reg = df["reg_no"].astype(str).str.contains(term, regex=False)
    return df[by_name | by_reg]


def sort_roster(df: pd.DataFrame, field: str, ascending: bool = True) -> pd.DataFrame:
    """Numeric fields sort numerically, everything else by lower-cased text."""
    if df.empty or field not in df.columns:
        return df
    if field in NUMERIC_FIELDS:
        return df.sort_values(field, ascending=ascending, kind="mergesort")
    return df.sort_values(
        field, ascending=ascending, kind="mergesort",
        key=lambda s: s.astype(str).str.lower(),
    )


def toggle_sort(current_field: str, current_direction: str, field: str) -> tuple[str, str]:
    """Same field flips direction; a new field starts descending."""
    if field == current_field:
        return field, SORT_DESC if current_direction == SORT_ASC else SORT_ASC
    return field, SORT_DESC


def paginate(df: pd.DataFrame, limit: int = BATCH_SIZE) -> pd.DataFrame:
    return df.head(max(limit, 0))


# ============================================================================
# AGGREGATES
# ============================================================================

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_section_aggregates(df: pd.DataFrame) -> dict:
    """Average CGPA, average LeetCode count / rating, residency split."""
    total = len(df)
    if total == 0:
        return {
            "total": 0,
            "hostellers": 0,
            "cgpa": "0.00",
            "lc": "0 / 0",
            "residency": "0 / 0",
        }

    avg_cgpa = float(pd.to_numeric(df["cgpa_overall"], errors="coerce").fillna(0).mean())
    avg_lc = _round_half_up(float(pd.to_numeric(df["lc_total"], errors="coerce").fillna(0).mean()))
    avg_rating = _round_half_up(float(pd.to_numeric(df["lc_rating"], errors="coerce").fillna(0).mean()))
    hostellers = int(df["is_hosteller"].astype(bool).sum())

    return {
        "total": total,
        "hostellers": hostellers,
        "cgpa": f"{avg_cgpa:.2f}",
        "lc": f"{avg_lc} / {avg_rating}",
        "residency": f"{hostellers} Host / {total - hostellers} Day",
    }


# ============================================================================
# SECTION BRIEF
# ============================================================================

def _section_block(title: str) -> str:
    return f"{BANNER}\n{title}\n{BANNER}\n\n"


def generate_roster_brief(df: pd.DataFrame, section: str, aggregates: dict) -> str:
    """Plain-text section brief."""
    data_hash = hashlib.md5(df.to_csv(index=False).encode()).hexdigest()[:8]

    report = f"""
{BANNER}
SECTION ROSTER BRIEF
{BANNER}

Section: {section}
Students: {aggregates['total']}
Data Hash: {data_hash}
Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}

"""
    report += _section_block("SECTION AGGREGATES")
    report += f"""Average CGPA: {aggregates['cgpa']}
Average LeetCode (count / rating): {aggregates['lc']}
Residency: {aggregates['residency']}

"""
    if df.empty:
        report += "No student records for this section.\n"
        return report

    cgpa = pd.to_numeric(df["cgpa_overall"], errors="coerce").fillna(0)
    high = int((cgpa >= HIGH_CGPA_THRESHOLD).sum())
    report += f"Students at or above {HIGH_CGPA_THRESHOLD} CGPA: {high} ({high / len(df) * 100:.1f}%)\n\n"

    report += _section_block("TOP PERFORMERS: CGPA")
    for i, row in enumerate(sort_roster(df, "cgpa_overall", ascending=False).head(TOP_N).itertuples(), 1):
        report += f"  {i}. {row.reg_no}  {row.name}  {float(row.cgpa_overall):.2f}\n"
    report += "\n"

    report += _section_block("TOP PERFORMERS: LEETCODE RATING")
    for i, row in enumerate(sort_roster(df, "lc_rating", ascending=False).head(TOP_N).itertuples(), 1):
        report += f"  {i}. {row.reg_no}  {row.name}  {row.lc_rating} ({row.lc_total} solved)\n"
    report += "\n"

    report += _section_block("PLACEMENT STATUS")
    statuses = df["placement_status"].astype(str).str.strip().replace("", "Not recorded")
    for status, count in statuses.value_counts().items():
        report += f"  {status}: {count}\n"
    report += "\n"

    return report


# ============================================================================
# PDF EXPORT
# ============================================================================

def generate_roster_pdf(df: pd.DataFrame, section: str, aggregates: dict) -> BytesIO:
    """Roster PDF: aggregates callout plus one table row per student."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(letter),
        topMargin=0.6 * inch, bottomMargin=0.6 * inch,
    )
    story = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "RosterTitle",
        parent=styles["Heading1"],
        fontSize=22,
        textColor=colors.HexColor("#6b46c1"),
        spaceAfter=6,
        alignment=TA_CENTER,
    )
    subtitle_style = ParagraphStyle(
        "RosterSubtitle",
        parent=styles["Normal"],
        fontSize=10,
        textColor=colors.HexColor("#6b7280"),
        spaceAfter=16,
        alignment=TA_CENTER,
    )
    cell_style = ParagraphStyle(
        "RosterCell",
        parent=styles["Normal"],
        fontSize=8,
        leading=10,
    )

    story.append(Paragraph("A.R.C. Section Roster", title_style))
    story.append(Paragraph(
        f"Section {section}, generated {datetime.now().strftime('%Y-%m-%d %H:%M')}",
        subtitle_style,
    ))

    summary = Table(
        [["AVG SECTION CGPA", "AVG LC (CNT / RTG)", "RESIDENCY"],
         [aggregates["cgpa"], aggregates["lc"], aggregates["residency"]]],
        colWidths=[3 * inch] * 3,
    )
    summary.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#ede9fe")),
        ("TEXTCOLOR", (0, 0), (-1, -1), colors.HexColor("#1f2937")),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTNAME", (0, 1), (-1, 1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 8),
        ("FONTSIZE", (0, 1), (-1, 1), 14),
        ("TOPPADDING", (0, 0), (-1, -1), 8),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ("BOX", (0, 0), (-1, -1), 0.5, colors.HexColor("#c4b5fd")),
    ]))
    story.append(summary)
    story.append(Spacer(1, 0.25 * inch))

    header = ["#", "Reg No", "Name", "CGPA", "LC Total", "LC Rating", "Residency", "Placement"]
    rows = [header]
    for i, row in enumerate(df.itertuples(), 1):
        rows.append([
            str(i),
            str(row.reg_no),
            Paragraph(str(row.name), cell_style),
            f"{float(row.cgpa_overall):.2f}",
            str(row.lc_total),
            str(row.lc_rating),
            "Hosteller" if row.is_hosteller else "Day Scholar",
            Paragraph(str(row.placement_status), cell_style),
        ])
    if len(rows) == 1:
        rows.append(["", "", "No student records", "", "", "", "", ""])

    roster = Table(
        rows,
        colWidths=[0.4 * inch, 1.0 * inch, 2.6 * inch, 0.7 * inch, 0.8 * inch, 0.8 * inch, 1.1 * inch, 1.8 * inch],
        repeatRows=1,
    )
    roster.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#6b46c1")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f8fafc")]),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#e5e7eb")),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    story.append(roster)

    doc.build(story)
    buffer.seek(0)
    return buffer
