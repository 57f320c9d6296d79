from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from crickpool.errors import TransientStoreError, ValidationError
from crickpool.extensions import db
from crickpool.jobs.contest_settlement import expected_tiers, record_failure
from crickpool.models import Contest, ContestEntry, EntryStatus, Match, MatchStatus
from crickpool.services.matches import get_contest
from crickpool.utils.audit import add_audit
from crickpool.utils.prize_tiers import prize_for_rank
from crickpool.utils.wallets import CREDITED, credit_contest_win


def _mismatches(contest: Contest) -> list[dict]:
    tiers = expected_tiers(contest)
    rows = (
        ContestEntry.query.filter(
            ContestEntry.contest_id == int(contest.id),
            ContestEntry.rank.isnot(None),
            ContestEntry.rank <= int(contest.winner_count),
        )
        .order_by(ContestEntry.rank.asc())
        .all()
    )
    out = []
    for e in rows:
        expected = prize_for_rank(tiers, int(e.rank))
        stored = e.win_amount
        if stored is not None and abs(float(stored) - expected) < 0.005:
            continue
        out.append({
            "entry_id": int(e.id),
            "user_id": int(e.user_id),
            "rank": int(e.rank),
            "expected": expected,
            "stored": float(stored) if stored is not None else None,
            "settlement_status": e.settlement_status,
        })
    return out


def monitor_prize_distribution(days: int = 7, actor: str = "system:prize_monitor") -> dict:
    """Find ranked winners whose stored win_amount disagrees with the prize table.

    Entries and prize tables are left alone; each affected contest gets a
    prize_monitor_alert audit row.
    """
    since = datetime.utcnow() - timedelta(days=int(days))
    contests = (
        Contest.query.join(Match, Match.id == Contest.match_id)
        .filter(Match.status == MatchStatus.COMPLETED, Match.completed_at >= since, Contest.ranked_at.isnot(None))
        .order_by(Contest.id.asc())
        .all()
    )

    alerts = []
    for c in contests:
        problems = _mismatches(c)
        if not problems:
            continue
        alert = {"contest_id": int(c.id), "contest_name": c.name, "entries": problems}
        alerts.append(alert)
        add_audit("prize_monitor_alert", actor=actor, target_type="contest", target_id=int(c.id), meta=alert)
        current_app.logger.warning("contest %s: %s winner(s) with a wrong win_amount", c.id, len(problems))
    db.session.commit()

    return {"contests_checked": len(contests), "contests_flagged": len(alerts), "alerts": alerts}


def fix_missed_prizes(contest_id: int) -> dict:
    """Reassign tier amounts to mismatched winners and credit them.

    Entries that were already paid keep their amount; their mismatch is
    reported for manual review.
    """
    c = get_contest(contest_id)
    if c.ranked_at is None:
        raise ValidationError("Contest has not been ranked yet")

    reassigned = []
    needs_review = []
    for problem in _mismatches(c):
        if problem["settlement_status"] == EntryStatus.PAID:
            needs_review.append(problem)
            continue
        e = db.session.get(ContestEntry, problem["entry_id"])
        e.win_amount = problem["expected"]
        e.settlement_status = EntryStatus.PRIZE_ASSIGNED
        e.updated_at = datetime.utcnow()
        reassigned.append(problem)
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise TransientStoreError(f"could not reassign prizes for contest {contest_id}: {e}") from e

    credited = failed = 0
    for problem in reassigned:
        if problem["expected"] <= 0:
            continue
        entry = db.session.get(ContestEntry, problem["entry_id"])
        try:
            if credit_contest_win(entry) == CREDITED:
                credited += 1
        except TransientStoreError as exc:
            failed += 1
            record_failure(
                entry_id=problem["entry_id"],
                contest_id=int(contest_id),
                user_id=problem["user_id"],
                amount=problem["expected"],
                rank=problem["rank"],
                exc=exc,
            )

    add_audit(
        "prize_fix",
        target_type="contest",
        target_id=int(contest_id),
        meta={"reassigned": len(reassigned), "credited": credited, "failed": failed, "needs_review": needs_review},
    )
    db.session.commit()
    return {
        "contest_id": int(contest_id),
        "reassigned": len(reassigned),
        "credited": credited,
        "failed": failed,
        "needs_review": needs_review,
    }
