"""
SiteCheck — Ledger Operation Tests
===================================
Tests: machine registry, GA2 submission, permit workflow, dashboard
"""

import datetime

import pytest

from sitecheck.ledger.models import (
    CHECKLIST, CHECKLIST_KEYS, IllegalTransitionError, NotFoundError, ValidationError,
    machines_by_id,
)
from sitecheck.ledger.operations import (
    blank_check_form, dashboard_summary, decide, find_machine, machine_display,
    nav_tabs, records_rows, register_machine, registration_display, remove_machine,
    resolve_scan, set_certification, set_profile, set_role, submit_check, submit_permit,
)
from sitecheck.labels.qr import build_deep_link
from tests.conftest import FIXED_NOW, all_checked, register


# ============================================================================
# MACHINE REGISTRY
# ============================================================================

class TestMachineRegistry:

    def test_register_prepends(self, state):
        m = register(state, "Crane A", type="Tower Crane", registration_number="TC-1")
        machines = state.machines.load()
        assert machines[0].id == m.id
        assert len(machines) == 4
        assert m.certification == {}
        assert m.owner_company == ""

    def test_label_required(self, state):
        before = len(state.machines.load())
        with pytest.raises(ValidationError) as exc:
            register_machine(state, {"label": "   ", "type": "Dumper"})
        assert exc.value.field == "label"
        assert len(state.machines.load()) == before

    def test_ids_distinct_over_many_registrations(self, state):
        ids = {register(state, f"Machine {i}").id for i in range(250)}
        assert len(ids) == 250

    def test_set_certification_merges(self, state):
        m = register(state)
        set_certification(state, m.id, {"cert_number": "GA1-778"})
        set_certification(state, m.id, {"valid_until": "2026-12-31"})
        cert = find_machine(state, m.id).certification
        assert cert == {"cert_number": "GA1-778", "valid_until": "2026-12-31"}

    def test_set_certification_unknown_id_is_noop(self, state):
        before = [m.to_dict() for m in state.machines.load()]
        assert set_certification(state, "missing", {"cert_number": "X"}) is None
        assert [m.to_dict() for m in state.machines.load()] == before

    @pytest.mark.parametrize("bad", ["31/12/2026", "next week", {"y": 2026}, 20261231, ["2026-12-31"]])
    def test_set_certification_rejects_non_dates(self, state, bad):
        m = register(state)
        set_certification(state, m.id, {"valid_until": "2026-12-31"})
        with pytest.raises(ValidationError) as exc:
            set_certification(state, m.id, {"cert_number": "GA1-9", "valid_until": bad})
        assert exc.value.field == "valid_until"
        assert find_machine(state, m.id).certification == {"valid_until": "2026-12-31"}

    def test_set_certification_clears_and_trims(self, state):
        m = register(state)
        set_certification(state, m.id, {"cert_number": " GA1-5 ", "valid_until": " 2027-01-15 "})
        set_certification(state, m.id, {"valid_until": None})
        assert find_machine(state, m.id).certification == {"cert_number": "GA1-5", "valid_until": ""}


    def test_remove_leaves_dangling_refs_displayable(self, profiled_state):
        m = register(profiled_state, "Dumper 3", registration_number="DMP-3")
        entry = submit_check(profiled_state, m.id, all_checked())
        assert remove_machine(profiled_state, m.id) is True
        assert find_machine(profiled_state, m.id) is None

        lookup = machines_by_id(profiled_state.machines.load())
        assert machine_display(lookup, entry.machine_id) == m.id
        assert registration_display(lookup, entry.machine_id) == m.id
        assert profiled_state.checks.load()[0].machine_id == m.id

    def test_remove_unknown(self, state):
        assert remove_machine(state, "nope") is False

    def test_resolve_scan_raw_and_deeplink(self, state):
        m = register(state)
        assert resolve_scan(state, m.id).id == m.id
        link = build_deep_link("https://site.example/GA2", m.id)
        assert resolve_scan(state, link).id == m.id

    def test_resolve_scan_unknown(self, state):
        with pytest.raises(NotFoundError):
            resolve_scan(state, "https://site.example/?mid=ghost#scan")


# ============================================================================
# GA2 CHECK-IN
# ============================================================================

class TestCheckIn:

    def test_submit_creates_entry(self, profiled_state):
        m = register(profiled_state)
        entry = submit_check(profiled_state, m.id, all_checked(), "ok", True, now=FIXED_NOW)
        assert entry.machine_id == m.id
        assert entry.user_name == "Pat Murphy"
        assert entry.company == "Quinn Plant"
        assert entry.date_iso == "2026-03-14T07:45:12"
        assert all(entry.checklist.values())
        assert profiled_state.checks.load() == [entry]

    def test_newest_first(self, profiled_state):
        m = register(profiled_state)
        first = submit_check(profiled_state, m.id, {})
        second = submit_check(profiled_state, m.id, {})
        assert [e.id for e in profiled_state.checks.load()] == [second.id, first.id]

    def test_empty_profile_name_rejected(self, state):
        set_profile(state, name="", company="Quinn Plant")
        m = register(state)
        with pytest.raises(ValidationError) as exc:
            submit_check(state, m.id, all_checked())
        assert exc.value.field == "profile.name"
        assert len(state.checks.load()) == 0

    def test_empty_profile_company_rejected(self, state):
        set_profile(state, name="Pat", company="")
        m = register(state)
        with pytest.raises(ValidationError) as exc:
            submit_check(state, m.id, {})
        assert exc.value.field == "profile.company"

    def test_missing_machine_rejected(self, profiled_state):
        for machine_id in ("", None, "not-registered"):
            with pytest.raises(ValidationError) as exc:
                submit_check(profiled_state, machine_id, {})
            assert exc.value.field == "machine"
        assert profiled_state.checks.load() == []

    def test_profile_copied_by_value(self, profiled_state):
        m = register(profiled_state)
        submit_check(profiled_state, m.id, {})
        set_profile(profiled_state, name="Someone Else", company="Other Co")
        entry = profiled_state.checks.load()[0]
        assert entry.user_name == "Pat Murphy"
        assert entry.company == "Quinn Plant"

    def test_checklist_normalised(self, profiled_state):
        m = register(profiled_state)
        entry = submit_check(profiled_state, m.id, {"brakes": 1, "bogus": True})
        assert set(entry.checklist) == set(CHECKLIST_KEYS)
        assert entry.checklist["brakes"] is True
        assert entry.checklist["walkaround"] is False

    @pytest.mark.parametrize("passed", ["false", "true", 0, 1, None])
    def test_non_bool_result_rejected(self, profiled_state, passed):
        m = register(profiled_state)
        with pytest.raises(ValidationError) as exc:
            submit_check(profiled_state, m.id, all_checked(), passed=passed)
        assert exc.value.field == "passed"
        assert profiled_state.checks.load() == []

    def test_blank_form(self):

        form = blank_check_form()
        assert form["notes"] == ""
        assert form["passed"] is True
        assert list(form["checklist"]) == [k for k, _ in CHECKLIST]
        assert not any(form["checklist"].values())

    def test_checklist_has_ten_items(self):
        assert len(CHECKLIST) == 10
        assert len(set(CHECKLIST_KEYS)) == 10


# ============================================================================
# PERMITS
# ============================================================================

class TestPermits:

    def _permit(self, state, **overrides):
        form = {"requester_name": "Ann Byrne", "company": "Sparks Ltd",
                "work_type": "Hot works", "location": "Roof"}
        form.update(overrides)
        return submit_permit(state, form)

    def test_submit_pending(self, state):
        p = self._permit(state)
        assert p.status == "pending"
        assert p.decided_by is None
        assert state.permits.load()[0].id == p.id

    @pytest.mark.parametrize("field", ["requester_name", "company", "work_type"])
    def test_required_fields(self, state, field):
        with pytest.raises(ValidationError) as exc:
            self._permit(state, **{field: ""})
        assert exc.value.field == field
        assert state.permits.load() == []

    def test_approve(self, state):
        p = self._permit(state)
        decided = decide(state, p.id, "approved", "J. Smith", now=FIXED_NOW)
        assert decided.status == "approved"
        stored = state.permits.load()[0]
        assert stored.status == "approved"
        assert stored.decided_by == "J. Smith"
        assert stored.decided_at == "2026-03-14T07:45:12"

    def test_reject_then_approve_refused(self, state):
        p = self._permit(state)
        decide(state, p.id, "rejected", "Office")
        with pytest.raises(IllegalTransitionError):
            decide(state, p.id, "approved", "J. Smith")
        stored = state.permits.load()[0]
        assert stored.status == "rejected"
        assert stored.decided_by == "Office"

    def test_second_approval_refused(self, state):
        p = self._permit(state)
        decide(state, p.id, "approved", "A")
        with pytest.raises(IllegalTransitionError):
            decide(state, p.id, "approved", "B")
        assert state.permits.load()[0].decided_by == "A"

    def test_bad_outcome(self, state):
        p = self._permit(state)
        with pytest.raises(ValidationError):
            decide(state, p.id, "pending", "A")
        assert state.permits.load()[0].status == "pending"

    def test_unknown_permit(self, state):
        with pytest.raises(NotFoundError):
            decide(state, "missing", "approved", "A")


# ============================================================================
# ROLE / DASHBOARD / RECORDS
# ============================================================================

class TestDashboard:

    def test_role_toggle(self, state):
        assert set_role(state, "office") == "office"
        assert state.role.load() == "office"
        with pytest.raises(ValidationError):
            set_role(state, "admin")
        assert nav_tabs("office")["hint"]
        assert nav_tabs("worker")["hint"] == ""
        assert len(nav_tabs("worker")["tabs"]) == 5

    def test_summary_counts(self, profiled_state):
        m = register(profiled_state)
        today = datetime.date(2026, 3, 14)
        submit_check(profiled_state, m.id, {}, now=FIXED_NOW)
        submit_check(profiled_state, m.id, {}, now=FIXED_NOW - datetime.timedelta(days=1))
        p = submit_permit(profiled_state, {"requester_name": "A", "company": "B", "work_type": "C"})
        submit_permit(profiled_state, {"requester_name": "A", "company": "B", "work_type": "D"})
        decide(profiled_state, p.id, "approved", "Office")

        d = dashboard_summary(profiled_state, today=today)
        assert d["checks_today"] == 1
        assert d["machine_count"] == 4
        assert d["permits_pending"] == 1
        assert d["permits_total"] == 2
        assert d["profile"]["name"] == "Pat Murphy"

    def test_records_rows_scenario(self, state):
        set_profile(state, name="Pat", company="Quinn")
        m = register(state, "Crane A")
        submit_check(state, m.id, all_checked(), passed=True)
        rows = records_rows(state)
        assert len(rows) == 1
        assert rows[0]["machine"] == "Crane A"
        assert rows[0]["result"] == "PASS"
