"""
SiteCheck — Test Infrastructure (conftest.py)
=============================================
Provides:
  - Separate test database (never touches sitecheck.db)
  - Fresh AppState per test over a temp SQLite key-value store
  - FastAPI TestClient over a freshly built app
  - Seed helpers for profile / machines / checks
"""

import os
import sys
import datetime
import pytest

# Ensure project root is on path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT_DIR)

# ============================================================================
# TEST MODE: point the module-level app at a throwaway database
# ============================================================================
TEST_DB_PATH = os.path.join(ROOT_DIR, "sitecheck_test.db")
os.environ["SITECHECK_DB"] = TEST_DB_PATH

FIXED_NOW = datetime.datetime(2026, 3, 14, 7, 45, 12)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Session-wide cleanup of the module-level test DB."""
    yield
    try:
        if os.path.exists(TEST_DB_PATH):
            os.remove(TEST_DB_PATH)
    except (PermissionError, OSError):
        pass


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def store(db_path):
    from sitecheck.storage import SqliteKeyValueStore
    return SqliteKeyValueStore(db_path)


@pytest.fixture
def state(store):
    from sitecheck.ledger import AppState
    return AppState(store)


@pytest.fixture
def profiled_state(state):
    """State with a complete worker profile."""
    from sitecheck.ledger.operations import set_profile
    set_profile(state, name="Pat Murphy", company="Quinn Plant")
    return state


@pytest.fixture
def client(store):
    from starlette.testclient import TestClient
    from main import build_app
    with TestClient(build_app(store=store), raise_server_exceptions=False) as c:
        yield c


# ============================================================================
# Helpers
# ============================================================================

def all_checked():
    from sitecheck.ledger.models import CHECKLIST_KEYS
    return {k: True for k in CHECKLIST_KEYS}


def register(state, label="Crane A", **fields):
    from sitecheck.ledger.operations import register_machine
    return register_machine(state, {"label": label, **fields})
