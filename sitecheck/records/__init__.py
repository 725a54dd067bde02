"""
SiteCheck Records Module
GA2 record listing and CSV / XLSX export.
"""
from .export import to_csv, to_xlsx, csv_filename
from .routes import api_router

__all__ = [
    "to_csv",
    "to_xlsx",
    "csv_filename",
    "api_router",
]
