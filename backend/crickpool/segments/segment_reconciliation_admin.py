from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from crickpool.jobs.contest_settlement import settle_contest
from crickpool.jobs.prize_monitor import fix_missed_prizes, monitor_prize_distribution
from crickpool.jobs.reconciler import reconcile
from crickpool.jobs.wallet_reconciler import audit_wallets
from crickpool.models import SettlementFailure
from crickpool.services.matches import set_match_status
from crickpool.utils.guards import admin_required

recon_bp = Blueprint("recon_bp", __name__, url_prefix="/api/admin")


def _window_days(data: dict):
    if "window_days" in data and data["window_days"] is None:
        return None
    try:
        return int(data.get("window_days") or current_app.config.get("RECONCILE_WINDOW_DAYS", 7))
    except (TypeError, ValueError):
        return int(current_app.config.get("RECONCILE_WINDOW_DAYS", 7))


@recon_bp.post("/contests/<int:contest_id>/settle")
@admin_required
def settle(contest_id: int):
    res = settle_contest(contest_id)
    return jsonify({"ok": True, **res}), 200


@recon_bp.post("/reconcile")
@admin_required
def run_recon():
    data = request.get_json(silent=True) or {}
    res = reconcile(window_days=_window_days(data), actor="admin:reconcile")
    return jsonify({"ok": True, **res}), 200


@recon_bp.get("/settlement-failures")
@admin_required
def open_failures():
    q = SettlementFailure.query
    if (request.args.get("all") or "").strip().lower() not in ("1", "true", "yes"):
        q = q.filter_by(processed=False)
    rows = q.order_by(SettlementFailure.created_at.desc()).limit(500).all()
    return jsonify({"ok": True, "items": [r.to_dict() for r in rows]}), 200


@recon_bp.post("/wallets/audit")
@admin_required
def wallet_audit():
    data = request.get_json(silent=True) or {}
    res = audit_wallets(repair=bool(data.get("repair")), actor="admin:wallet_audit")
    return jsonify({"ok": True, **res}), 200


@recon_bp.post("/prize-monitor")
@admin_required
def prize_monitor():
    data = request.get_json(silent=True) or {}
    try:
        days = int(data.get("days") or 7)
    except (TypeError, ValueError):
        days = 7
    return jsonify({"ok": True, **monitor_prize_distribution(days)}), 200


@recon_bp.post("/contests/<int:contest_id>/fix-prizes")
@admin_required
def fix_prizes(contest_id: int):
    return jsonify({"ok": True, **fix_missed_prizes(contest_id)}), 200


@recon_bp.post("/matches/<int:match_id>/status")
@admin_required
def match_status(match_id: int):
    data = request.get_json(silent=True) or {}
    res = set_match_status(match_id, data.get("status") or "")
    return jsonify({"ok": True, **res}), 200
