"""
SiteCheck Ledger Module
Machine register, GA2 daily checks, GA1 certification and work permits,
persisted slice-by-slice to the local key-value store.
"""
from .state import AppState
from .routes import register_ledger_routes

__all__ = [
    "AppState",
    "register_ledger_routes",
]
