"""
SiteCheck Ledger — API Routes
"""
import logging
from html import escape as _h

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from sitecheck import config
from sitecheck.labels.qr import (
    content_disposition, encode_png, encode_data_url, generate_batch_zip, generate_label,
    generate_print_sheet, label_filename,
)

from .models import CHECKLIST, LedgerError, NotFoundError
from .operations import (
    blank_check_form, checklist_definition, dashboard_summary, decide, find_machine,
    machine_display, nav_tabs, records_rows, register_machine, remove_machine, resolve_scan,
    set_certification, set_profile, set_role, submit_check, submit_permit,
)
from .state import AppState

logger = logging.getLogger("ledger.routes")


def _error(exc: LedgerError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def _base_url(request: Request) -> str:
    return str(request.base_url)


def register_ledger_routes(app: FastAPI, state: AppState):
    """Register profile, machine, GA2, permit and QR endpoints."""

    app.state.ledger = state

    # ============================================================
    # ROLE / PROFILE / DASHBOARD
    # ============================================================

    @app.get("/api/role")
    async def api_get_role(request: Request):
        role = state.role.load()
        return {"ok": True, "role": role, **nav_tabs(role)}

    @app.put("/api/role")
    async def api_set_role(request: Request):
        data = await request.json()
        try:
            role = set_role(state, data.get("role"))
        except LedgerError as e:
            return _error(e)
        return {"ok": True, "role": role, **nav_tabs(role)}

    @app.get("/api/profile")
    async def api_get_profile(request: Request):
        return {"ok": True, "profile": state.profile.load().to_dict()}

    @app.put("/api/profile")
    async def api_set_profile(request: Request):
        data = await request.json()
        profile = set_profile(state, name=data.get("name"), company=data.get("company"))
        return {"ok": True, "profile": profile.to_dict()}

    @app.get("/api/dashboard")
    async def api_dashboard(request: Request):
        return {"ok": True, "dashboard": dashboard_summary(state)}

    # ============================================================
    # MACHINES
    # ============================================================

    @app.get("/api/machines")
    async def api_get_machines(request: Request):
        return {"ok": True, "machines": [m.to_dict() for m in state.machines.load()]}

    @app.post("/api/machines")
    async def api_register_machine(request: Request):
        data = await request.json()
        try:
            machine = register_machine(state, data)
        except LedgerError as e:
            return _error(e)
        return {"ok": True, "machine": machine.to_dict()}

    @app.put("/api/machines/{machine_id}/certification")
    async def api_set_certification(machine_id: str, request: Request):
        data = await request.json()
        try:
            machine = set_certification(state, machine_id, data)
        except LedgerError as e:
            return _error(e)
        return {"ok": True, "updated": machine is not None,
                "machine": machine.to_dict() if machine else None}

    @app.delete("/api/machines/{machine_id}")
    async def api_remove_machine(machine_id: str, request: Request):
        removed = remove_machine(state, machine_id)
        return {"ok": True, "removed": removed}

    @app.get("/api/machines/{machine_id}/qr")
    async def api_machine_qr(machine_id: str, request: Request):
        machine = find_machine(state, machine_id)
        if not machine:
            return _error(NotFoundError("Machine not found"))
        try:
            payload = generate_label(machine, _base_url(request), request.query_params.get("mode"))
        except ValueError as e:
            return JSONResponse({"ok": False, "error": str(e)}, status_code=400)
        png = encode_png(payload)
        return Response(content=png, media_type="image/png",
                        headers={"Content-Disposition": content_disposition(label_filename(machine)),
                                 "X-QR-Payload": payload})

    @app.get("/api/machines/{machine_id}/label", response_class=HTMLResponse)
    async def api_machine_label(machine_id: str, request: Request):
        machine = find_machine(state, machine_id)
        if not machine:
            return _error(NotFoundError("Machine not found"))
        return HTMLResponse(generate_print_sheet([machine], _base_url(request),
                                                 request.query_params.get("mode")))

    # ============================================================
    # QR BATCH
    # ============================================================

    @app.post("/api/qr/batch")
    async def api_qr_batch(request: Request):
        data = await request.json()
        ids = data.get("machine_ids") or []
        machines = [m for m in state.machines.load() if not ids or m.id in ids]
        if not machines:
            return JSONResponse({"ok": False, "error": "No machines found"}, status_code=400)
        zip_bytes = generate_batch_zip(machines, _base_url(request), data.get("mode"))
        return Response(content=zip_bytes, media_type="application/zip",
                        headers={"Content-Disposition": 'attachment; filename="machine-qr-labels.zip"'})

    @app.get("/api/qr/print-sheet", response_class=HTMLResponse)
    async def api_qr_print_sheet(request: Request):
        machines = state.machines.load()
        return HTMLResponse(generate_print_sheet(machines, _base_url(request),
                                                 request.query_params.get("mode")))

    @app.post("/api/scan/resolve")
    async def api_scan_resolve(request: Request):
        data = await request.json()
        try:
            machine = resolve_scan(state, data.get("text", ""))
        except LedgerError as e:
            return _error(e)
        return {"ok": True, "machine": machine.to_dict()}

    # ============================================================
    # GA2 CHECK-INS
    # ============================================================

    @app.get("/api/checklist")
    async def api_checklist(request: Request):
        return {"ok": True, "checklist": checklist_definition(), "form": blank_check_form()}

    @app.get("/api/checks")
    async def api_get_checks(request: Request):
        return {"ok": True, "checks": [c.to_dict() for c in state.checks.load()]}

    @app.post("/api/checks")
    async def api_submit_check(request: Request):
        data = await request.json()
        try:
            entry = submit_check(
                state,
                machine_id=data.get("machine_id"),
                checklist=data.get("checklist") or {},
                notes=data.get("notes") or "",
                passed=data.get("passed", True),
            )
        except LedgerError as e:
            return _error(e)
        return {"ok": True, "entry": entry.to_dict(), "form": blank_check_form(),
                "message": f"GA2 submitted as {'PASS' if entry.passed else 'FAIL'}. Thank you."}

    # ============================================================
    # PERMITS
    # ============================================================

    @app.get("/api/permits")
    async def api_get_permits(request: Request):
        status = request.query_params.get("status")
        permits = [p for p in state.permits.load() if not status or p.status == status]
        return {"ok": True, "permits": [p.to_dict() for p in permits]}

    @app.post("/api/permits")
    async def api_submit_permit(request: Request):
        data = await request.json()
        try:
            permit = submit_permit(state, data)
        except LedgerError as e:
            return _error(e)
        return {"ok": True, "permit": permit.to_dict()}

    @app.post("/api/permits/{permit_id}/decision")
    async def api_decide_permit(permit_id: str, request: Request):
        data = await request.json()
        decider = data.get("decided_by") or state.profile.load().name
        try:
            permit = decide(state, permit_id, data.get("outcome"), decider)
        except LedgerError as e:
            return _error(e)
        return {"ok": True, "permit": permit.to_dict()}

    # ============================================================
    # PAGE (deep link: /?mid=<id> opens the GA2 form preselected)
    # ============================================================

    @app.get("/", response_class=HTMLResponse)
    async def root_view(request: Request):
        mid = request.query_params.get(config.DEEP_LINK_PARAM, "")
        view = "scan" if mid else request.query_params.get("view", "dashboard")
        return HTMLResponse(_render_page(state, view, mid, _base_url(request)))


def _render_page(state: AppState, view: str, selected_id: str, base_url: str) -> str:
    """Render the app shell with nav tabs and the requested view."""
    role = state.role.load()
    nav = nav_tabs(role)
    tabs_html = "".join(
        f'<a class="btn{" primary" if t["key"] == view else ""}" href="/?view={t["key"]}">{_h(t["label"])}</a>'
        for t in nav["tabs"]
    )
    hint_html = f'<div class="small">{_h(nav["hint"])}</div>' if nav["hint"] else ""

    if view == "scan":
        body = _render_check_form(state, selected_id)
    elif view == "machines":
        body = _render_machines(state, base_url)
    elif view == "permits":
        body = _render_permits(state, role)
    elif view == "records":
        body = _render_records(state)
    else:
        body = _render_dashboard(state)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{_h(config.APP_TITLE)}</title>
<style>
    body {{ font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; margin: 0; background: #f3f4f6; }}
    header {{ background: #fff; border-bottom: 1px solid #e5e7eb; padding: 10px 16px; font-weight: 600; }}
    nav {{ display: grid; grid-template-columns: repeat(5, 1fr); gap: 8px; padding: 12px 16px; }}
    .btn {{ display: block; padding: 8px; text-align: center; border: 1px solid #d1d5db; border-radius: 10px; background: #fff; color: #111; text-decoration: none; }}
    .btn.primary {{ background: #111827; color: #fff; }}
    .card {{ background: #fff; border: 1px solid #e5e7eb; border-radius: 12px; padding: 12px; margin: 0 16px 12px; }}
    .small {{ font-size: 12px; color: #6b7280; padding: 0 16px; }}
    table {{ width: 100%; border-collapse: collapse; font-size: 13px; }}
    th, td {{ text-align: left; padding: 4px 6px; border-bottom: 1px solid #e5e7eb; }}
</style>
</head>
<body>
<header>{_h(config.APP_TITLE)} <span class="small">Role: {_h(role)}</span></header>
<nav>{tabs_html}</nav>
{hint_html}
{body}
{_PAGE_SCRIPT}
</body></html>"""


_PAGE_SCRIPT = """<script>
window.SITE = window.SITE || {};

SITE.post = function(url, body) {
    return fetch(url, {method: 'POST', headers: {'Content-Type': 'application/json'}, body: JSON.stringify(body)})
        .then(function(r) { return r.json(); });
};

SITE.submitCheck = function(ev) {
    ev.preventDefault();
    var form = document.getElementById('ga2-form');
    var checklist = {};
    form.querySelectorAll('.ga2-item').forEach(function(el) { checklist[el.name] = el.checked; });
    var body = {
        machine_id: form.elements['machine_id'].value,
        checklist: checklist,
        notes: form.elements['notes'].value,
        passed: form.elements['passed'].value === 'true',
    };
    SITE.post('/api/checks', body).then(function(data) {
        document.getElementById('ga2-msg').textContent = data.ok ? data.message : 'Error: ' + data.error;
        if (data.ok) {
            form.querySelectorAll('.ga2-item').forEach(function(el) { el.checked = false; });
            form.elements['notes'].value = '';
            form.elements['passed'].value = 'true';
        }
    });
    return false;
};

SITE.submitPermit = function(ev) {
    ev.preventDefault();
    var form = document.getElementById('permit-form');
    var body = {};
    ['requester_name', 'company', 'machine_id', 'location', 'work_type', 'start_iso', 'end_iso', 'controls']
        .forEach(function(k) { body[k] = form.elements[k].value; });
    SITE.post('/api/permits', body).then(function(data) {
        if (data.ok) location.reload();
        else document.getElementById('permit-msg').textContent = 'Error: ' + data.error;
    });
    return false;
};

SITE.decide = function(permitId, outcome) {
    SITE.post('/api/permits/' + encodeURIComponent(permitId) + '/decision', {outcome: outcome})
        .then(function(data) {
            if (data.ok) location.reload();
            else alert('Error: ' + (data.error || 'Unknown'));
        });
};
</script>"""


def _render_dashboard(state: AppState) -> str:
    d = dashboard_summary(state)
    p = d["profile"]
    return f"""
<div class="card">
    <div class="small">Signed in as</div>
    <div style="font-weight:600">{_h(p["name"] or "—")} — {_h(p["company"] or "—")}</div>
    <div class="small">Today: {_h(d["today"])}</div>
</div>
<div class="card">
    <div class="small">GA2 checks recorded today</div>
    <div style="font-weight:700;font-size:20px">{d["checks_today"]}</div>
    <div class="small">Machines on register: {d["machine_count"]}</div>
</div>
<div class="card">
    <div class="small">Work permits pending</div>
    <div style="font-weight:700;font-size:20px">{d["permits_pending"]}</div>
    <div class="small">Total permits: {d["permits_total"]}</div>
</div>"""


def _render_check_form(state: AppState, selected_id: str) -> str:
    machines = state.machines.load()
    profile = state.profile.load()
    selected = find_machine(state, selected_id) if selected_id else None
    options = "".join(
        f'<option value="{_h(m.id)}"{" selected" if selected and m.id == selected.id else ""}>'
        f'{_h(m.label)} — {_h(m.type)} ({_h(m.reg_or_id)})</option>'
        for m in machines
    )
    checks = "".join(
        f'<label style="display:block"><input type="checkbox" class="ga2-item" name="{key}" /> {_h(label)}</label>'
        for key, label in CHECKLIST
    )
    details = ""
    if selected:
        details = (f'<div class="small">Location: {_h(selected.location)} · '
                   f'Owner company: {_h(selected.owner_company)}</div>')
    elif selected_id:
        details = f'<div class="small">Unknown machine code: {_h(selected_id)}</div>'
    return f"""
<form class="card" id="ga2-form" onsubmit="return SITE.submitCheck(event)">
    <div style="margin-bottom:6px">GA2 — Daily Plant Check</div>
    <select name="machine_id"><option value="">— choose —</option>{options}</select>
    {details}
    {checks}
    <textarea name="notes" rows="3" placeholder="e.g., beacon not working; reported to supervisor"></textarea>
    <label>Result
        <select name="passed"><option value="true" selected>PASS</option><option value="false">FAIL</option></select>
    </label>
    <div class="small">Completed by: <b>{_h(profile.name or "—")}</b> ({_h(profile.company or "—")})</div>
    <button type="submit" class="btn primary">Submit GA2</button>
    <div class="small" id="ga2-msg"></div>
</form>"""


def _render_permits(state: AppState, role: str) -> str:
    profile = state.profile.load()
    lookup = {m.id: m for m in state.machines.load()}
    options = "".join(f'<option value="{_h(m.id)}">{_h(m.label)}</option>' for m in lookup.values())
    rows = ""
    for p in state.permits.load():
        actions = ""
        if role == "office" and p.is_pending:
            actions = (f'<button class="btn" onclick="SITE.decide(\'{_h(p.id)}\', \'approved\')">Approve</button>'
                       f'<button class="btn" onclick="SITE.decide(\'{_h(p.id)}\', \'rejected\')">Reject</button>')
        decided = f" by {_h(p.decided_by or '—')}" if not p.is_pending else ""
        machine = machine_display(lookup, p.machine_id) if p.machine_id else "—"
        rows += f"""
<div class="card permit" data-status="{_h(p.status)}">
    <div style="font-weight:600">{_h(p.work_type)} — {_h(p.location or "—")}</div>
    <div class="small">{_h(p.requester_name)} ({_h(p.company)}) · Machine: {_h(machine)}</div>
    <div class="small">{_h(p.start_iso or "—")} → {_h(p.end_iso or "—")} · Controls: {_h(p.controls or "—")}</div>
    <div class="small">Status: <b>{_h(p.status.upper())}</b>{decided}</div>
    {actions}
</div>"""
    return f"""
<form class="card" id="permit-form" onsubmit="return SITE.submitPermit(event)">
    <div style="margin-bottom:6px">Request a work permit</div>
    <input name="requester_name" placeholder="Requester name" value="{_h(profile.name)}" />
    <input name="company" placeholder="Company" value="{_h(profile.company)}" />
    <select name="machine_id"><option value="">— no machine —</option>{options}</select>
    <input name="location" placeholder="Location" />
    <input name="work_type" placeholder="Work type (e.g., Hot works)" />
    <input name="start_iso" type="datetime-local" />
    <input name="end_iso" type="datetime-local" />
    <textarea name="controls" rows="2" placeholder="Controls / precautions"></textarea>
    <button type="submit" class="btn primary">Submit permit</button>
    <div class="small" id="permit-msg"></div>
</form>
{rows or '<div class="card">No permits yet.</div>'}"""


def _render_records(state: AppState) -> str:
    rows = "".join(
        f"<tr><td>{_h(r['date_iso'][:16].replace('T', ' '))}</td><td>{_h(r['machine'])}</td>"
        f"<td>{_h(r['reg'])}</td><td>{_h(r['user_name'])}</td><td>{_h(r['company'])}</td>"
        f"<td>{r['result']}</td><td>{_h(r['notes'])}</td></tr>"
        for r in records_rows(state)
    )
    return f"""
<div class="card" id="records">
    <a class="btn primary" href="/api/records/export.csv">Export CSV</a>
    <a class="btn" href="/api/records/export.xlsx">Export XLSX</a>
    <table>
        <tr><th>Date</th><th>Machine</th><th>Reg/ID</th><th>Name</th><th>Company</th><th>Pass</th><th>Notes</th></tr>
        {rows or '<tr><td colspan="7">No GA2 records yet.</td></tr>'}
    </table>
</div>"""


def _render_machines(state: AppState, base_url: str) -> str:
    cards = ""
    for m in state.machines.load():
        cert = m.certification
        cards += f"""
<div class="card">
    <div style="font-weight:600">{_h(m.label)}</div>
    <div class="small">{_h(m.type)} — {_h(m.reg_or_id)} — {_h(m.location)}</div>
    <div class="small">Owner: {_h(m.owner_company or "—")} · GA1: {_h(cert.get("cert_number") or "—")} until {_h(cert.get("valid_until") or "—")}</div>
    <img src="{encode_data_url(generate_label(m, base_url), size=config.QR_PRINT_SIZE)}" width="120" height="120" alt="QR" />
</div>"""
    return cards or '<div class="card">No machines registered.</div>'
