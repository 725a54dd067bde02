# ============================================================================
# SiteCheck — Records Routes
# ============================================================================
# JSON listing + file downloads for the GA2 ledger.
# ============================================================================

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

from sitecheck.ledger.models import machines_by_id
from sitecheck.ledger.operations import records_rows

from .export import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, csv_filename, to_csv, to_xlsx, xlsx_filename

logger = logging.getLogger("records.routes")

api_router = APIRouter(prefix="/api/records", tags=["records-api"])


def _ledger(request: Request):
    return request.app.state.ledger


@api_router.get("")
async def api_records(request: Request):
    rows = records_rows(_ledger(request))
    return {"ok": True, "records": rows, "count": len(rows)}


@api_router.get("/export.csv")
async def api_export_csv(request: Request):
    state = _ledger(request)
    csv_text = to_csv(state.checks.load(), machines_by_id(state.machines.load()))
    fname = csv_filename()
    logger.info(f"[Records] CSV export {fname}")
    return Response(content=csv_text.encode("utf-8"), media_type=f"{CSV_MEDIA_TYPE}; charset=utf-8",
                    headers={"Content-Disposition": f'attachment; filename="{fname}"'})


@api_router.get("/export.xlsx")
async def api_export_xlsx(request: Request):
    state = _ledger(request)
    data = to_xlsx(state.checks.load(), machines_by_id(state.machines.load()))
    return Response(content=data, media_type=XLSX_MEDIA_TYPE,
                    headers={"Content-Disposition": f'attachment; filename="{xlsx_filename()}"'})
