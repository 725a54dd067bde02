# ================================================================
# SiteCheck — Plant Compliance Backend
# GA2 daily checks + GA1 certs + QR labels + work permits
# ================================================================

from contextlib import asynccontextmanager
from pathlib import Path
import logging

from fastapi import FastAPI

from sitecheck import config, __version__
from sitecheck.ledger import AppState, register_ledger_routes
from sitecheck.records import api_router as records_api_router
from sitecheck.storage import KeyValueStore, SqliteKeyValueStore

logger = logging.getLogger("sitecheck")


# ================================================================
# FASTAPI APP
# ================================================================

def build_app(store: KeyValueStore = None, db_path: Path = None) -> FastAPI:
    """Wire the ledger, records and label endpoints onto a fresh app."""
    if store is None:
        store = SqliteKeyValueStore(db_path or config.DB_PATH)
    state = AppState(store)

    @asynccontextmanager
    async def _lifespan(_app: FastAPI):
        # Touch slices so first-run seeds are written at boot.
        machines = state.machines.load()
        state.profile.load()
        state.role.load()
        logger.info(f"[SiteCheck] startup — {len(machines)} machines on register")
        yield

    site_app = FastAPI(title="SiteCheck", version=__version__, lifespan=_lifespan)
    register_ledger_routes(site_app, state)
    site_app.include_router(records_api_router)
    return site_app


config.configure_logging()
app = build_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
