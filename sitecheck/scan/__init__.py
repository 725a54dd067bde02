"""
SiteCheck Scan Module
Cancellable camera polling loop for QR check-in.
"""
from .scanner import (
    start_scan, scan_notice, ScanHandle,
    ScanError, CameraUnavailableError, CameraPermissionError,
)

__all__ = [
    "start_scan",
    "scan_notice",
    "ScanHandle",
    "ScanError",
    "CameraUnavailableError",
    "CameraPermissionError",
]
