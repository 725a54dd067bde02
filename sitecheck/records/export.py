# ============================================================================
# SiteCheck — GA2 Records Export
# ============================================================================
# CSV (every field quoted, RFC4180 escaping) and XLSX renditions of the
# check-in ledger. Machine label / registration fall back to the raw
# machine id when the machine has since been removed.
# ============================================================================

import csv
import datetime
import io
import logging
from typing import Dict, Iterable

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill

from sitecheck.ledger.models import CheckEntry, Machine
from sitecheck.ledger.operations import machine_display, registration_display

logger = logging.getLogger("records.export")

CSV_HEADER = ["Date", "Machine", "Reg/ID", "Name", "Company", "Pass", "Notes"]
CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DATE_FORMAT = "%Y-%m-%d %H:%M"


def _row(entry: CheckEntry, lookup: Dict[str, Machine]) -> list:
    return [
        entry.date.strftime(DATE_FORMAT),
        machine_display(lookup, entry.machine_id),
        registration_display(lookup, entry.machine_id),
        entry.user_name,
        entry.company,
        "PASS" if entry.passed else "FAIL",
        (entry.notes or "").replace("\r\n", " ").replace("\n", " "),
    ]


def to_csv(entries: Iterable[CheckEntry], lookup: Dict[str, Machine]) -> str:
    """Header plus one row per entry, rows joined by a single newline."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in entries:
        writer.writerow(_row(entry, lookup))
    return buf.getvalue()[:-1]


def csv_filename(now: datetime.datetime = None) -> str:
    return f"ga2-records-{(now or datetime.datetime.now()).strftime('%Y%m%d-%H%M%S')}.csv"


def xlsx_filename(now: datetime.datetime = None) -> str:
    return f"ga2-records-{(now or datetime.datetime.now()).strftime('%Y%m%d-%H%M%S')}.xlsx"


def to_xlsx(entries: Iterable[CheckEntry], lookup: Dict[str, Machine]) -> bytes:
    """Single-sheet workbook with the same columns as the CSV."""
    wb = Workbook()
    ws = wb.active
    ws.title = "GA2 Records"
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="2C3E50", end_color="2C3E50", fill_type="solid")

    ws.append(CSV_HEADER)
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill

    count = 0
    for entry in entries:
        ws.append(_row(entry, lookup))
        count += 1

    ws.column_dimensions["A"].width = 18
    ws.column_dimensions["B"].width = 28
    ws.column_dimensions["G"].width = 60

    buf = io.BytesIO()
    wb.save(buf)
    logger.info(f"[Records] XLSX rendered ({count} rows)")
    return buf.getvalue()
