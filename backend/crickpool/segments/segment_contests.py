from __future__ import annotations

from flask import Blueprint, jsonify, request

from crickpool.models import ContestEntry
from crickpool.services.matches import get_contest
from crickpool.utils.prize_tiers import preview_prize_tiers

contests_bp = Blueprint("contests_bp", __name__, url_prefix="/api/contests")


@contests_bp.post("/preview-prize-breakup")
def preview_breakup():
    data = request.get_json(silent=True) or {}
    res = preview_prize_tiers(
        data.get("total_prize"),
        data.get("winner_count"),
        data.get("first_prize"),
        data.get("entry_fee") or 0.0,
    )
    return jsonify({"ok": True, **res}), 200


@contests_bp.get("/<int:contest_id>/prize-breakup")
def prize_breakup(contest_id: int):
    c = get_contest(contest_id)
    return jsonify({
        "ok": True,
        "contest": c.to_dict(),
        "prize_breakup": [pb.to_dict() for pb in c.prize_breakups],
    }), 200


@contests_bp.get("/<int:contest_id>/leaderboard")
def leaderboard(contest_id: int):
    c = get_contest(contest_id)
    try:
        limit = max(1, min(int(request.args.get("limit") or 100), 1000))
    except ValueError:
        limit = 100

    q = ContestEntry.query.filter_by(contest_id=int(c.id))
    if c.ranked_at:
        q = q.order_by(ContestEntry.rank.asc())
    else:
        # live view: provisional order, no ranks yet
        q = q.order_by(ContestEntry.points.desc(), ContestEntry.created_at.asc(), ContestEntry.id.asc())
    rows = q.limit(limit).all()

    return jsonify({
        "ok": True,
        "contest_id": int(c.id),
        "ranked": c.ranked_at is not None,
        "items": [e.to_dict() for e in rows],
    }), 200
