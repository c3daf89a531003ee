from flask import request

from . import bp
from timecapsule.extensions import csrf, limiter
from timecapsule.errors import SignatureInvalid
from timecapsule.services import webhooks


@csrf.exempt
@limiter.exempt
@bp.post("/resend")
def resend_events():
    """
    Resend -> /api/webhook/resend
    Raw bytes are needed for the signature, so read them before any JSON parsing.
    """
    raw = request.get_data(cache=False, as_text=False) or b""
    headers = {k.lower(): v for k, v in request.headers.items()}
    try:
        result = webhooks.reconcile(raw, headers)
    except SignatureInvalid:
        return "invalid signature", 400, {"Content-Type": "text/plain; charset=utf-8"}
    if result.action == "ignored":
        return "no email_id", 200, {"Content-Type": "text/plain; charset=utf-8"}
    return "ok", 200, {"Content-Type": "text/plain; charset=utf-8"}
