import csv
import io
import json
from datetime import datetime, timezone

from flask import jsonify, request, make_response, current_app

from . import bp
from timecapsule.errors import InvalidInput
from timecapsule.services import capsules as repo, clock
from timecapsule.utils.helpers import request_payload

CSV_HEADER = ["id", "email", "content", "signer", "contact", "ip", "send_at", "created_at", "status", "error"]


def _filters() -> repo.AdminFilters:
    return repo.AdminFilters(
        status=(request.args.get("status") or "").strip(),
        email=(request.args.get("email") or "").strip(),
        id=(request.args.get("id") or "").strip(),
    )


def _rows() -> list[dict]:
    rows = []
    for c in repo.list_for_admin(_filters()):
        d = c.to_admin_dict()
        d["send_at_civil"] = clock.civil_datetime(c.send_at)
        d["created_at_civil"] = clock.civil_datetime(c.created_at)
        rows.append(d)
    return rows


def _attachment(body: str, content_type: str, ext: str):
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    resp = make_response(body)
    resp.headers["Content-Type"] = content_type
    resp.headers["Content-Disposition"] = f'attachment; filename="capsules_{stamp}.{ext}"'
    return resp


@bp.get("/capsules")
def list_capsules():
    return jsonify(_rows())


@bp.get("/capsules/export.csv")
def export_csv():
    buf = io.StringIO(newline="")
    w = csv.writer(buf, quoting=csv.QUOTE_ALL)
    w.writerow(CSV_HEADER)
    for r in _rows():
        w.writerow([
            r["id"],
            r["email"],
            r["content"] or "",
            r["signer"] or "",
            r["contact"] or "",
            r["ip_addr"] or "",
            r["send_at_civil"],
            r["created_at_civil"],
            r["status"],
            r["last_error"] or "",
        ])
    csv_str = buf.getvalue()
    buf.close()
    # BOM so spreadsheet apps pick UTF-8
    return _attachment("\ufeff" + csv_str, "text/csv; charset=utf-8", "csv")


@bp.get("/capsules/export.json")
def export_json():
    body = json.dumps(_rows(), ensure_ascii=False, indent=2)
    return _attachment(body, "application/json; charset=utf-8", "json")


@bp.post("/delete")
def delete_capsule():
    capsule_id = str(request_payload().get("id") or "").strip()
    if not capsule_id:
        raise InvalidInput("Missing id.")
    repo.soft_delete(capsule_id)
    current_app.logger.info("capsule soft-deleted id=%s", capsule_id)
    return jsonify({"ok": True, "id": capsule_id})
