from flask import jsonify, request

from . import bp
from timecapsule.services import clock, stats as stats_service


@bp.get("/stats")
def stats():
    days = stats_service.clamp_days(request.args.get("days", stats_service.DEFAULT_DAYS))
    return jsonify(stats_service.aggregate(days, clock.now()))
