from arc.registry.query_fallback import StudentQueryEngine, TableCandidate
from portal_state import LatestRequestGuard, load_section_records


class TestLatestRequestGuard:
    def test_latest_commits(self):
        state = {}
        guard = LatestRequestGuard(state)
        token = guard.issue("roster")
        assert guard.commit("roster", token, "records", ["a"])
        assert state["records"] == ["a"]

    def test_stale_result_dropped(self):
        state = {}
        guard = LatestRequestGuard(state)
        first = guard.issue("roster")
        second = guard.issue("roster")
        assert not guard.commit("roster", first, "records", ["old"])
        assert guard.commit("roster", second, "records", ["new"])
        assert state["records"] == ["new"]

    def test_views_are_independent(self):
        guard = LatestRequestGuard({})
        roster = guard.issue("roster")
        guard.issue("sections")
        assert guard.is_latest("roster", roster)

    def test_survives_new_guard_over_same_state(self):
        state = {}
        token = LatestRequestGuard(state).issue("roster")
        LatestRequestGuard(state).issue("roster")
        assert not LatestRequestGuard(state).is_latest("roster", token)


class TestSectionTarget:
    def test_result_for_left_section_dropped(self):
        state = {"active_section": "Q"}
        guard = LatestRequestGuard(state, active_key="active_section")
        token = guard.issue("roster", "Q")
        state["active_section"] = "R"
        assert not guard.commit("roster", token, "roster_records", ["q rows"])
        assert "roster_records" not in state

    def test_result_for_current_section_kept(self):
        state = {"active_section": "Q"}
        guard = LatestRequestGuard(state, active_key="active_section")
        token = guard.issue("roster", "Q")
        assert guard.commit("roster", token, "roster_records", ["q rows"])


def test_load_section_records(backend):
    backend.add_table("Students", [
        {"REGNO": "2", "NAME": "Bea", "SECTION": "Q", "CGPA": "9.1"},
        {"REGNO": "1", "NAME": "Ann", "SECTION": "Q", "CGPA": "bad"},
    ])
    engine = StudentQueryEngine(backend, [TableCandidate("Students", "SECTION", "NAME")])
    records = load_section_records(engine, "q")
    assert [r.name for r in records] == ["Ann", "Bea"]
    assert records[1].cgpa_overall == 9.1
    assert records[0].cgpa_overall == 0
