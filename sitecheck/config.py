# ============================================================================
# SiteCheck — Configuration
# ============================================================================
# Module-level defaults. Tests override DB_PATH directly before building
# the app; SITECHECK_DB / SITECHECK_LOG_LEVEL override at process start.
# ============================================================================

import logging
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DB_PATH = Path(os.environ.get("SITECHECK_DB", BASE_DIR / "sitecheck.db"))

APP_TITLE = "Site Compliance — GA2 / GA1 & Permits"

# Storage keys (one JSON value per key)
KEY_ROLE = "role"
KEY_PROFILE = "profile"
KEY_MACHINES = "machines"
KEY_CHECKS = "ga2s"
KEY_PERMITS = "permits"

# QR labels
QR_SIZE = 768
QR_PRINT_SIZE = 240
QR_BORDER = 4
QR_PAYLOAD_MODE = "deeplink"   # "deeplink" or "raw"
DEEP_LINK_PARAM = "mid"
DEEP_LINK_FRAGMENT = "scan"

# Scan loop: one poll per display refresh
SCAN_FRAME_INTERVAL = 1 / 60

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = None):
    """Root logging setup for the service process."""
    level = (level or os.environ.get("SITECHECK_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
