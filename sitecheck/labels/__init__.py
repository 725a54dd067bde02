"""
SiteCheck Labels Module
QR payloads (raw id / deep link), PNG encoding, print sheets and batch ZIPs.
"""
from .qr import encode_png, encode_data_url, generate_label, extract_machine_id, build_deep_link

__all__ = [
    "encode_png",
    "encode_data_url",
    "generate_label",
    "extract_machine_id",
    "build_deep_link",
]
