"""
SiteCheck Ledger — Operations

Every mutation reads the current slice, builds the full next value and
replaces it. Validation happens before any write, so a rejected call
leaves the store untouched.
"""
import datetime
import logging
from typing import Dict, List, Optional

from sitecheck.labels.qr import extract_machine_id

from .models import (
    CHECKLIST, PERMIT_OUTCOMES, PERMIT_PENDING, ROLES,
    CheckEntry, IllegalTransitionError, Machine, NotFoundError, Permit, Profile,
    ValidationError, blank_checklist, machines_by_id, new_id, normalize_checklist, now_iso,
)
from .state import AppState

logger = logging.getLogger("ledger.operations")

MACHINE_FIELDS = ("label", "type", "registration_number", "location", "owner_company")
PERMIT_FIELDS = ("requester_name", "company", "machine_id", "location", "work_type",
                 "start_iso", "end_iso", "controls")

TABS = (
    ("dashboard", "Home"),
    ("scan", "Scan & GA2"),
    ("machines", "Machines"),
    ("permits", "Permits"),
    ("records", "Records"),
)
OFFICE_HINT = "Office role unlocks: machine registry, QR printing, permit approvals & records."


def _clean(value) -> str:
    return str(value or "").strip()


# ================================================================
# ROLE & PROFILE
# ================================================================

def set_role(state: AppState, role: str) -> str:
    if role not in ROLES:
        raise ValidationError("role", f"Role must be one of: {', '.join(ROLES)}")
    state.role.replace(role)
    return role


def set_profile(state: AppState, name: str = None, company: str = None) -> Profile:
    current = state.profile.load()
    profile = Profile(
        name=current.name if name is None else _clean(name),
        company=current.company if company is None else _clean(company),
    )
    state.profile.replace(profile)
    return profile


def nav_tabs(role: str) -> Dict:
    """Presentation-only view of what the role toggle shows. Not authorization."""
    return {
        "tabs": [{"key": k, "label": label} for k, label in TABS],
        "hint": OFFICE_HINT if role == "office" else "",
    }


# ================================================================
# MACHINE REGISTRY
# ================================================================

def find_machine(state: AppState, machine_id: str) -> Optional[Machine]:
    for m in state.machines.load():
        if m.id == machine_id:
            return m
    return None


def register_machine(state: AppState, form: Dict, now: datetime.datetime = None) -> Machine:
    label = _clean(form.get("label"))
    if not label:
        raise ValidationError("label", "Machine label is required")
    machine = Machine(
        id=new_id(),
        label=label,
        **{f: _clean(form.get(f)) for f in MACHINE_FIELDS if f != "label"},
        certification={},
        created_at=now_iso(now),
    )
    state.machines.replace([machine] + state.machines.load())
    logger.info(f"[Machines] registered {machine.id} '{machine.label}'")
    return machine


def _clean_certification(patch: Dict) -> Dict[str, str]:
    cert = {}
    if "cert_number" in patch:
        cert["cert_number"] = _clean(patch["cert_number"])
    if "valid_until" in patch:
        value = patch["valid_until"]
        if value not in (None, ""):
            try:
                value = datetime.date.fromisoformat(value.strip()).isoformat()
            except (AttributeError, TypeError, ValueError):
                raise ValidationError("valid_until", "Valid-until must be a date (YYYY-MM-DD)")
        cert["valid_until"] = value or ""
    return cert


def set_certification(state: AppState, machine_id: str, patch: Dict) -> Optional[Machine]:
    """Merge GA1 fields into a machine's certification. Unknown id is a no-op."""
    fields = _clean_certification(patch)
    machines = state.machines.load()
    updated = None
    for m in machines:
        if m.id == machine_id:
            cert = dict(m.certification)
            cert.update(fields)
            m.certification = cert
            updated = m
            break
    if updated is None:
        logger.info(f"[Machines] certification skipped, no machine {machine_id}")
        return None
    state.machines.replace(machines)
    return updated


def remove_machine(state: AppState, machine_id: str) -> bool:
    machines = state.machines.load()
    remaining = [m for m in machines if m.id != machine_id]
    if len(remaining) == len(machines):
        return False
    state.machines.replace(remaining)
    logger.info(f"[Machines] removed {machine_id}")
    return True


def machine_display(lookup: Dict[str, Machine], machine_id: str) -> str:
    m = lookup.get(machine_id)
    return m.label if m and m.label else machine_id


def registration_display(lookup: Dict[str, Machine], machine_id: str) -> str:
    m = lookup.get(machine_id)
    return m.registration_number if m and m.registration_number else machine_id


def resolve_scan(state: AppState, scanned_text: str) -> Machine:
    """Map scanned QR text (raw id or deep link) to a registered machine."""
    machine_id = extract_machine_id(scanned_text)
    machine = find_machine(state, machine_id) if machine_id else None
    if machine is None:
        raise NotFoundError(f"No machine registered for code '{machine_id or scanned_text}'")
    return machine


# ================================================================
# GA2 CHECK-IN
# ================================================================

def blank_check_form() -> Dict:
    return {"checklist": blank_checklist(), "notes": "", "passed": True}


def submit_check(
    state: AppState,
    machine_id: str,
    checklist: Dict,
    notes: str = "",
    passed: bool = True,
    now: datetime.datetime = None,
) -> CheckEntry:
    machine = find_machine(state, machine_id) if machine_id else None
    if machine is None:
        raise ValidationError("machine", "Select a machine first")
    profile = state.profile.load()
    if not profile.name:
        raise ValidationError("profile.name", "Please set your profile name")
    if not profile.company:
        raise ValidationError("profile.company", "Please set your profile company")
    if not isinstance(passed, bool):
        raise ValidationError("passed", "Result must be true (PASS) or false (FAIL)")

    entry = CheckEntry(
        id=new_id(),
        machine_id=machine.id,
        date_iso=now_iso(now),
        user_name=profile.name,
        company=profile.company,
        checklist=normalize_checklist(checklist),
        notes=notes or "",
        passed=passed,
    )
    state.checks.replace([entry] + state.checks.load())
    logger.info(f"[GA2] {entry.id} for '{machine.label}' {'PASS' if entry.passed else 'FAIL'} by {entry.user_name}")
    return entry


def checklist_definition() -> List[Dict]:
    return [{"key": k, "label": label} for k, label in CHECKLIST]


# ================================================================
# PERMITS
# ================================================================

def submit_permit(state: AppState, form: Dict, now: datetime.datetime = None) -> Permit:
    values = {f: _clean(form.get(f)) for f in PERMIT_FIELDS}
    for required, message in (
        ("requester_name", "Requester name is required"),
        ("company", "Company is required"),
        ("work_type", "Work type is required"),
    ):
        if not values[required]:
            raise ValidationError(required, message)

    permit = Permit(
        id=new_id(),
        requester_name=values["requester_name"],
        company=values["company"],
        work_type=values["work_type"],
        machine_id=values["machine_id"] or None,
        location=values["location"],
        start_iso=values["start_iso"],
        end_iso=values["end_iso"],
        controls=values["controls"],
        status=PERMIT_PENDING,
        created_at=now_iso(now),
    )
    state.permits.replace([permit] + state.permits.load())
    logger.info(f"[Permits] {permit.id} requested: {permit.work_type} ({permit.company})")
    return permit


def decide(
    state: AppState,
    permit_id: str,
    outcome: str,
    decider_name: str,
    now: datetime.datetime = None,
) -> Permit:
    """pending -> approved | rejected, exactly once."""
    if outcome not in PERMIT_OUTCOMES:
        raise ValidationError("outcome", f"Outcome must be one of: {', '.join(PERMIT_OUTCOMES)}")
    permits = state.permits.load()
    permit = next((p for p in permits if p.id == permit_id), None)
    if permit is None:
        raise NotFoundError(f"Permit {permit_id} not found")
    if not permit.is_pending:
        logger.warning(f"[Permits] refused {outcome} for {permit_id}: already {permit.status}")
        raise IllegalTransitionError(f"Permit already {permit.status}")

    permit.status = outcome
    permit.decided_by = _clean(decider_name)
    permit.decided_at = now_iso(now)
    state.permits.replace(permits)
    logger.info(f"[Permits] {permit_id} {outcome} by {permit.decided_by}")
    return permit


# ================================================================
# DASHBOARD
# ================================================================

def dashboard_summary(state: AppState, today: datetime.date = None) -> Dict:
    today = today or datetime.date.today()
    checks = state.checks.load()
    permits = state.permits.load()
    profile = state.profile.load()
    return {
        "profile": profile.to_dict(),
        "role": state.role.load(),
        "today": today.strftime("%a, %d %b %Y"),
        "checks_today": sum(1 for c in checks if c.date.date() == today),
        "machine_count": len(state.machines.load()),
        "permits_pending": sum(1 for p in permits if p.is_pending),
        "permits_total": len(permits),
    }


def records_rows(state: AppState) -> List[Dict]:
    """GA2 records with machine label/registration resolved (dangling-safe)."""
    lookup = machines_by_id(state.machines.load())
    rows = []
    for e in state.checks.load():
        row = e.to_dict()
        row["machine"] = machine_display(lookup, e.machine_id)
        row["reg"] = registration_display(lookup, e.machine_id)
        row["result"] = "PASS" if e.passed else "FAIL"
        rows.append(row)
    return rows
