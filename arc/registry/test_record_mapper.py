"""
Record Mapper Test Suite

Tests cover:
- Defaults for an empty row
- Permissive numeric parsing
- tech_stack splitting
- initials
- record -> row -> record stability
"""

import math

import pytest

from arc.registry.record_mapper import (
    NUMERIC_FIELDS,
    TEXT_FIELDS,
    StudentRecord,
    record_to_row,
    to_bool,
    to_list,
    to_number,
    to_record,
    to_records,
)
from arc.registry.row_normalizer import StudentRow, normalize_student_row


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

class TestDefaults:
    def test_empty_row_defaults(self):
        record = to_record(StudentRow())
        for name in NUMERIC_FIELDS:
            assert getattr(record, name) == 0, name
        for name in TEXT_FIELDS:
            assert getattr(record, name) == "", name
        assert record.is_hosteller is False
        assert record.tech_stack == []
        assert record.initials == ""

    def test_non_row_input_is_total(self):
        assert to_record(None) == StudentRecord()

    def test_id_falls_back_to_reg_no(self):
        record = to_record(StudentRow(reg_no="24CS0001"))
        assert record.id == "24CS0001"

    def test_explicit_id_kept(self):
        record = to_record(StudentRow(id=7, reg_no="24CS0001"))
        assert record.id == "7"

    def test_year_kept_as_text(self):
        assert to_record(StudentRow(year=2024)).year == "2024"


# ---------------------------------------------------------------------------
# Coercions
# ---------------------------------------------------------------------------

class TestToNumber:
    @pytest.mark.parametrize("value,expected", [
        ("8.5", 8.5),
        (" 92 ", 92),
        ("91.5%", 91.5),
        (7, 7),
        (7.0, 7),
        (True, 1),
    ])
    def test_parses(self, value, expected):
        assert to_number(value) == expected

    @pytest.mark.parametrize("value", [None, "", "  ", "N/A", "abc", float("nan"), float("inf"), "inf", [1]])
    def test_unparseable_is_zero(self, value):
        assert to_number(value) == 0

    def test_integral_comes_back_as_int(self):
        assert isinstance(to_number("120"), int)

    def test_result_is_finite(self):
        assert math.isfinite(to_number("1e308"))


class TestToBool:
    @pytest.mark.parametrize("value", [True, "true", "1", "YES", 1])
    def test_true(self, value):
        assert to_bool(value) is True

    @pytest.mark.parametrize("value", [None, False, "no", "", 0])
    def test_false(self, value):
        assert to_bool(value) is False


class TestToList:
    def test_list_kept(self):
        assert to_list(["SDE", "ML"]) == ["SDE", "ML"]

    def test_string_split_on_all_separators(self):
        assert to_list("SDE, FSD;ML | Cloud") == ["SDE", "FSD", "ML", "Cloud"]

    def test_empties_dropped(self):
        assert to_list(" ,;| SDE ,, ") == ["SDE"]

    def test_none(self):
        assert to_list(None) == []


# ---------------------------------------------------------------------------
# Initials
# ---------------------------------------------------------------------------

class TestInitials:
    def test_first_letter_upper(self):
        assert to_record(StudentRow(name="  jane doe")).initials == "J"

    def test_blank_name(self):
        assert to_record(StudentRow(name="   ")).initials == ""


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------

class TestRecordToRow:
    def test_mapping_a_record_view_is_stable(self):
        record = to_record(normalize_student_row({
            "REGNO": "24CS0009",
            "NAME": "Arun",
            "CGPA": "8.72",
            "KNOWN_TECH_STACK": "SDE, ML",
            "residency_status": "Hostel",
            "LC_RATING": "1650",
        }))
        assert to_record(record_to_row(record)) == record

    def test_default_record_is_stable(self):
        record = StudentRecord()
        assert to_record(record_to_row(record)) == record

    def test_row_has_no_initials(self):
        assert "initials" not in record_to_row(StudentRecord(name="A")).as_dict()

    def test_to_records(self):
        records = to_records([StudentRow(name="A"), StudentRow(name="B")])
        assert [r.initials for r in records] == ["A", "B"]


# ---------------------------------------------------------------------------
# Worked example
# ---------------------------------------------------------------------------

def test_registry_record_example():
    row = normalize_student_row({
        "REGNO": "24CS0001", "NAME": "Jane Doe", "CGPA": "8.5", "IS_HOSTELLER": "yes",
    })
    record = to_record(row)
    assert record.reg_no == "24CS0001"
    assert record.name == "Jane Doe"
    assert record.initials == "J"
    assert record.cgpa_overall == 8.5
    assert record.is_hosteller is True
    assert record.lc_total == 0
    assert record.section == ""
    assert record.tech_stack == []
