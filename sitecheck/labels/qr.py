"""
SiteCheck Labels — QR Code Generation Utilities

Two payload conventions are understood:
  raw       the machine id itself
  deeplink  <base-url>?mid=<quoted id>#scan  (opens the GA2 form when scanned)
"""
import base64
import io
import zipfile
from html import escape as _h
from typing import List
from urllib.parse import parse_qs, quote, urlsplit, urlunsplit

import qrcode
import qrcode.constants

from sitecheck import config

PAYLOAD_MODES = ("deeplink", "raw")


# ================================================================
# PAYLOADS
# ================================================================

def normalize_base_url(url: str) -> str:
    """Origin + path with a trailing slash; query and fragment dropped."""
    parts = urlsplit(url)
    path = parts.path or "/"
    if not path.endswith("/"):
        path += "/"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def build_deep_link(base_url: str, machine_id: str) -> str:
    return (f"{normalize_base_url(base_url)}?{config.DEEP_LINK_PARAM}="
            f"{quote(machine_id, safe='')}#{config.DEEP_LINK_FRAGMENT}")


def extract_machine_id(text: str) -> str:
    """Recover the machine id from scanned text in either convention."""
    text = (text or "").strip()
    parts = urlsplit(text)
    params = parse_qs(parts.query)
    if parts.scheme in ("http", "https") or config.DEEP_LINK_PARAM in params:
        values = params.get(config.DEEP_LINK_PARAM)
        return values[0] if values else ""
    return text


def generate_label(machine, base_url: str = "", mode: str = None) -> str:
    """QR payload for a machine label."""
    mode = mode or config.QR_PAYLOAD_MODE
    if mode not in PAYLOAD_MODES:
        raise ValueError(f"unknown QR payload mode: {mode}")
    if mode == "raw" or not base_url:
        return machine.id
    return build_deep_link(base_url, machine.id)


def label_filename(machine) -> str:
    label = (getattr(machine, "label", "") or "machine").strip() or "machine"
    safe = "".join(ch if ch.isalnum() or ch in " -_." else "_" for ch in label)
    return f"{safe}-QR.png"


def content_disposition(filename: str) -> str:
    """Attachment header value that stays latin-1 encodable for any label.

    Non-ASCII names get an ASCII `filename=` fallback plus an RFC 5987
    `filename*=UTF-8''...` carrying the real name.
    """
    if filename.isascii():
        return f'attachment; filename="{filename}"'
    fallback = "".join(ch if ch.isascii() and ch != '"' else "_" for ch in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"



# ================================================================
# IMAGES
# ================================================================

def build_qr(data: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(version=None, error_correction=qrcode.constants.ERROR_CORRECT_M,
                       box_size=1, border=config.QR_BORDER)
    qr.add_data(data)
    qr.make(fit=True)
    return qr


def encode_png(data: str, size: int = config.QR_SIZE) -> bytes:
    """Encode text as a QR PNG whose side is a whole number of modules.

    The box size is the largest integer that fits `size`, so no module is
    ever resampled to a fractional pixel.
    """
    qr = build_qr(data)
    grid = qr.modules_count + 2 * qr.border
    qr.box_size = max(1, size // grid)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def encode_data_url(data: str, size: int = config.QR_SIZE) -> str:
    b64 = base64.b64encode(encode_png(data, size)).decode("ascii")
    return f"data:image/png;base64,{b64}"


def generate_batch_zip(machines: List, base_url: str = "", mode: str = None) -> bytes:
    """ZIP of QR PNG labels, one per machine."""
    buf = io.BytesIO()
    seen = set()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for m in machines:
            name = label_filename(m)
            if name in seen:
                name = f"{name[:-len('-QR.png')]}-{m.id[:8]}-QR.png"
            seen.add(name)
            zf.writestr(name, encode_png(generate_label(m, base_url, mode)))
    return buf.getvalue()


def generate_print_sheet(machines: List, base_url: str = "", mode: str = None) -> str:
    """Printable HTML sheet of machine QR labels."""
    cards = ""
    for m in machines:
        payload = generate_label(m, base_url, mode)
        src = encode_data_url(payload, size=config.QR_PRINT_SIZE)
        cards += f"""
        <div style="display:inline-block;width:300px;height:380px;margin:8px;padding:12px;border:1px solid #000;
                    text-align:center;page-break-inside:avoid;background:#fff;vertical-align:top;">
            <div style="font-size:12px;font-weight:600;">MACHINE QR LABEL</div>
            <div style="font-size:12px;">{_h(m.label)}</div>
            <div style="font-size:11px;color:#555;">{_h(m.type)} — {_h(m.reg_or_id)}</div>
            <img src="{src}" width="240" height="240" style="display:block;margin:8px auto;" />
            <div style="font-size:10px;">Scan to open GA2 form for this plant.</div>
            <div style="font-size:8px;color:#888;word-break:break-all;">{_h(payload)}</div>
        </div>
        """

    return f"""<!DOCTYPE html>
<html><head>
<meta charset="utf-8">
<title>Machine QR Labels</title>
<style>
    @media print {{
        body {{ margin: 0; }}
        @page {{ margin: 0.5in; }}
    }}
    body {{ font-family: Arial, sans-serif; background: #fff; padding: 16px; }}
</style>
</head><body>
{cards}
</body></html>"""
