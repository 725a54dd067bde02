"""
SiteCheck Ledger — Domain Store

Five independently persisted slices (role, profile, machines, checks,
permits). Each slice loads from the key-value store, falling back to its
default, and is written back in full on every replace().
"""
import logging
from typing import Any, Callable, Generic, List, TypeVar

from sitecheck import config
from sitecheck.storage import KeyValueStore

from .models import (
    ROLES, CheckEntry, Machine, Permit, Profile, new_id, now_iso,
)

logger = logging.getLogger("ledger.state")

T = TypeVar("T")


class Slice(Generic[T]):
    """One named piece of state, persisted under a single key."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str,
        default_factory: Callable[[], T],
        decode: Callable[[Any], T],
        encode: Callable[[T], Any],
    ):
        self.store = store
        self.key = key
        self.default_factory = default_factory
        self.decode = decode
        self.encode = encode

    def load(self) -> T:
        raw = self.store.get(self.key)
        if raw is None:
            return self._default()
        try:
            return self.decode(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[State] '{self.key}' unreadable ({e}); using default")
            return self._default()

    def replace(self, value: T) -> None:
        self.store.set(self.key, self.encode(value))

    def _default(self) -> T:
        value = self.default_factory()
        # Written back so seeded ids stay stable across loads.
        self.replace(value)
        return value


def _decode_role(raw) -> str:
    if raw not in ROLES:
        raise ValueError(f"unknown role: {raw!r}")
    return raw


def _decode_list(cls):
    def decode(raw) -> list:
        if not isinstance(raw, list):
            raise TypeError(f"expected list, got {type(raw).__name__}")
        return [cls.from_dict(item) for item in raw]
    return decode


def _encode_list(items: list) -> list:
    return [item.to_dict() for item in items]


def sample_machines() -> List[Machine]:
    """First-run register: three demo machines."""
    ts = now_iso()
    return [
        Machine(id=new_id(), label="MRT 2660 Telehandler", type="Telehandler",
                registration_number="D-12345", location="Core A — L1",
                owner_company="Quinn Plant", created_at=ts),
        Machine(id=new_id(), label="Spider Crane URW-295", type="Mini Crane",
                registration_number="URW295-07", location="Atrium",
                owner_company="LiftCo", created_at=ts),
        Machine(id=new_id(), label="Scissor Lift GS-1930", type="MEWP",
                registration_number="MEWP-1930-21", location="Block B — L3",
                owner_company="HireAll", created_at=ts),
    ]


class AppState:
    """Explicit application state passed to every ledger operation."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.role: Slice[str] = Slice(
            store, config.KEY_ROLE, lambda: "worker", _decode_role, lambda v: v)
        self.profile: Slice[Profile] = Slice(
            store, config.KEY_PROFILE, Profile, Profile.from_dict, Profile.to_dict)
        self.machines: Slice[List[Machine]] = Slice(
            store, config.KEY_MACHINES, sample_machines, _decode_list(Machine), _encode_list)
        self.checks: Slice[List[CheckEntry]] = Slice(
            store, config.KEY_CHECKS, list, _decode_list(CheckEntry), _encode_list)
        self.permits: Slice[List[Permit]] = Slice(
            store, config.KEY_PERMITS, list, _decode_list(Permit), _encode_list)
