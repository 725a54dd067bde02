"""
SiteCheck Ledger — Entities, Checklist Definition & Errors
"""
import datetime
import uuid
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Tuple


ROLES = ("worker", "office")

PERMIT_PENDING = "pending"
PERMIT_APPROVED = "approved"
PERMIT_REJECTED = "rejected"
PERMIT_OUTCOMES = (PERMIT_APPROVED, PERMIT_REJECTED)

# GA2 daily plant check. Order is the on-form order.
CHECKLIST: Tuple[Tuple[str, str], ...] = (
    ("walkaround", "Walkaround visual check"),
    ("fluids", "Fluids (fuel/coolant/hydraulic)"),
    ("leaks", "Leaks / hoses / fittings"),
    ("tyres", "Tyres / tracks condition & pressure"),
    ("brakes", "Brakes / steering"),
    ("lights", "Lights / beacons / horn / alarms"),
    ("controls", "Controls & safety devices"),
    ("seatbelt", "Seat belt / ROPS (if fitted)"),
    ("attachments", "Attachment ID & condition"),
    ("fireext", "Fire extinguisher present & in date"),
)
CHECKLIST_KEYS = tuple(k for k, _ in CHECKLIST)


def new_id() -> str:
    return uuid.uuid4().hex


def now_iso(now: datetime.datetime = None) -> str:
    return (now or datetime.datetime.now()).isoformat(timespec="seconds")


def blank_checklist() -> Dict[str, bool]:
    return {k: False for k in CHECKLIST_KEYS}


def normalize_checklist(answers: Optional[Dict]) -> Dict[str, bool]:
    """Keep only known keys, coerce to bool, fill the rest with False."""
    answers = answers or {}
    return {k: bool(answers.get(k, False)) for k in CHECKLIST_KEYS}


# ================================================================
# ERRORS
# ================================================================

class LedgerError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.message}


class ValidationError(LedgerError):
    """A required field is missing; nothing was written."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["field"] = self.field
        return d


class NotFoundError(LedgerError):
    status_code = 404


class IllegalTransitionError(LedgerError):
    status_code = 409


# ================================================================
# ENTITIES
# ================================================================

@dataclass
class Profile:
    name: str = ""
    company: str = ""

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Profile":
        return cls(name=str(d.get("name") or ""), company=str(d.get("company") or ""))


@dataclass
class Machine:
    id: str
    label: str
    type: str = ""
    registration_number: str = ""
    location: str = ""
    owner_company: str = ""
    certification: Dict[str, str] = field(default_factory=dict)
    created_at: str = ""

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Machine":
        return cls(
            id=str(d["id"]),
            label=str(d["label"]),
            type=d.get("type") or "",
            registration_number=d.get("registration_number") or "",
            location=d.get("location") or "",
            owner_company=d.get("owner_company") or "",
            certification=dict(d.get("certification") or {}),
            created_at=d.get("created_at") or "",
        )

    @property
    def reg_or_id(self) -> str:
        return self.registration_number or self.id


@dataclass(frozen=True)
class CheckEntry:
    id: str
    machine_id: str
    date_iso: str
    user_name: str
    company: str
    checklist: Dict[str, bool]
    notes: str
    passed: bool

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "CheckEntry":
        date_iso = str(d["date_iso"])
        datetime.datetime.fromisoformat(date_iso)
        return cls(
            id=str(d["id"]),
            machine_id=str(d["machine_id"]),
            date_iso=date_iso,
            user_name=d.get("user_name") or "",
            company=d.get("company") or "",
            checklist=normalize_checklist(d.get("checklist")),
            notes=d.get("notes") or "",
            passed=bool(d.get("passed")),
        )

    @property
    def date(self) -> datetime.datetime:
        return datetime.datetime.fromisoformat(self.date_iso)


@dataclass
class Permit:
    id: str
    requester_name: str
    company: str
    work_type: str
    machine_id: Optional[str] = None
    location: str = ""
    start_iso: str = ""
    end_iso: str = ""
    controls: str = ""
    status: str = PERMIT_PENDING
    decided_by: Optional[str] = None
    decided_at: Optional[str] = None
    created_at: str = ""

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Permit":
        status = d.get("status") or PERMIT_PENDING
        if status not in (PERMIT_PENDING,) + PERMIT_OUTCOMES:
            raise ValueError(f"unknown permit status: {status}")
        return cls(
            id=str(d["id"]),
            requester_name=d.get("requester_name") or "",
            company=d.get("company") or "",
            work_type=d.get("work_type") or "",
            machine_id=d.get("machine_id") or None,
            location=d.get("location") or "",
            start_iso=d.get("start_iso") or "",
            end_iso=d.get("end_iso") or "",
            controls=d.get("controls") or "",
            status=status,
            decided_by=d.get("decided_by"),
            decided_at=d.get("decided_at"),
            created_at=d.get("created_at") or "",
        )

    @property
    def is_pending(self) -> bool:
        return self.status == PERMIT_PENDING


def machines_by_id(machines: List[Machine]) -> Dict[str, Machine]:
    return {m.id: m for m in machines}
