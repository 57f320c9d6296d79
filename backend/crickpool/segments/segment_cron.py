from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from crickpool.jobs.autopilot import tick
from crickpool.jobs.contest_settlement import settle_completed_matches
from crickpool.jobs.reconciler import reconcile
from crickpool.utils.guards import cron_required

cron_bp = Blueprint("cron_bp", __name__, url_prefix="/api/cron")


@cron_bp.post("/reconcile")
@cron_required
def cron_reconcile():
    days = current_app.config.get("RECONCILE_WINDOW_DAYS", 7)
    res = reconcile(window_days=days, actor="system:cron")
    return jsonify({"ok": True, **res}), 200


@cron_bp.post("/check-completed-matches")
@cron_required
def check_completed():
    data = request.get_json(silent=True) or {}
    try:
        hours = int(data.get("hours") or current_app.config.get("COMPLETED_MATCH_LOOKBACK_HOURS", 48))
    except (TypeError, ValueError):
        hours = int(current_app.config.get("COMPLETED_MATCH_LOOKBACK_HOURS", 48))
    return jsonify({"ok": True, **settle_completed_matches(hours)}), 200


@cron_bp.post("/autopilot-tick")
@cron_required
def autopilot_tick():
    return jsonify(tick(force=True)), 200
