"""Contest settlement: points -> ranks -> prizes -> wallet credits.

Every step can be re-run. Each run rescores entries from the latest stats.
Ranks and prizes are (re)assigned until the first contest_win is paid, then
they are fixed; a PAID entry is never re-priced. Crediting relies on the
ledger's (kind, contest_id, entry_id) uniqueness, so sequential and
concurrent calls pay each winning entry exactly once.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from crickpool.errors import DataIntegrityError, SettlementError, TransientStoreError
from crickpool.extensions import db
from crickpool.models import (
    Contest,
    ContestEntry,
    EntryStatus,
    Match,
    MatchStatus,
    PrizeBreakup,
    SettlementFailure,
    TxnKind,
    WalletTxn,
)
from crickpool.services.matches import get_contest, get_match, load_match_stats, team_selections
from crickpool.utils.points import team_points
from crickpool.utils.prize_tiers import PrizeTier, generate_tiers, verify_tiers
from crickpool.utils.ranking import RankInput, assign_prizes, rank_entries
from crickpool.utils.wallets import ALREADY_PAID, CREDITED, credit_contest_win


def _recompute_points(contest: Contest, stats=None) -> int:
    if stats is None:
        stats = load_match_stats(int(contest.match_id))
    entries = ContestEntry.query.filter_by(contest_id=int(contest.id)).all()
    for e in entries:
        e.points = float(team_points(team_selections(e.fantasy_team), stats))
        e.updated_at = datetime.utcnow()
    return len(entries)


def expected_tiers(contest: Contest) -> list[PrizeTier]:
    """Stored prize table, or the generated one when none is stored. Writes nothing."""
    tiers = [pb.to_tier() for pb in contest.prize_breakups]
    if tiers:
        return tiers
    return generate_tiers(contest.total_prize, contest.winner_count, contest.first_prize, contest.entry_fee)


def contest_tiers(contest: Contest) -> list[PrizeTier]:
    """Stored prize table for a contest, generated and stored if missing."""
    if contest.prize_breakups:
        return [pb.to_tier() for pb in contest.prize_breakups]
    tiers = expected_tiers(contest)
    for t in tiers:
        contest.prize_breakups.append(
            PrizeBreakup(rank_from=t.rank_from, rank_to=t.rank_to, amount=t.amount, percentage=t.percentage)
        )
    return tiers


def _rank_contest(contest: Contest) -> int:
    """Points, ranks and win amounts for every entry, committed together."""
    _recompute_points(contest)

    tiers = contest_tiers(contest)
    try:
        verify_tiers(tiers, int(contest.winner_count), float(contest.total_prize))
    except DataIntegrityError as e:
        current_app.logger.warning("contest %s prize table: %s", contest.id, "; ".join(e.problems))

    entries = {int(e.id): e for e in ContestEntry.query.filter_by(contest_id=int(contest.id)).all()}
    ranked = rank_entries(RankInput(entry_id=eid, points=e.points, created_at=e.created_at) for eid, e in entries.items())

    now = datetime.utcnow()
    for r in ranked:
        e = entries[r.entry_id]
        if e.settlement_status == EntryStatus.PAID:
            continue
        e.rank = r.rank
        e.settlement_status = EntryStatus.RANKED
        e.updated_at = now

    for r in assign_prizes(ranked, tiers, int(contest.winner_count)):
        e = entries[r.entry_id]
        if e.settlement_status == EntryStatus.PAID:
            continue
        e.win_amount = float(r.win_amount)
        e.settlement_status = EntryStatus.PRIZE_ASSIGNED

    contest.ranked_at = now
    db.session.commit()
    return len(ranked)


def record_failure(*, entry_id: int, contest_id: int, user_id: int, amount: float, rank, exc: Exception) -> None:
    """Persist a failed credit so the reconciler can replay it.

    If even this write fails, everything needed to pay the entry by hand
    goes to the error log.
    """
    now = datetime.utcnow()
    message = str(exc)[:240]
    try:
        row = SettlementFailure.query.filter_by(entry_id=int(entry_id), processed=False).first()
        if row:
            row.attempt_count = int(row.attempt_count or 0) + 1
            row.error_type = type(exc).__name__
            row.error = message
            row.updated_at = now
        else:
            db.session.add(
                SettlementFailure(
                    entry_id=int(entry_id),
                    contest_id=int(contest_id),
                    user_id=int(user_id),
                    amount=float(amount),
                    rank=rank,
                    error_type=type(exc).__name__,
                    error=message,
                    attempt_count=1,
                )
            )
        db.session.execute(
            update(ContestEntry)
            .where(ContestEntry.id == int(entry_id), ContestEntry.settlement_status != EntryStatus.PAID)
            .values(settlement_status=EntryStatus.FAILED, updated_at=now)
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(
            "UNRECORDED settlement failure contest=%s entry=%s user=%s rank=%s amount=%.2f error=%s (record error: %s)",
            contest_id, entry_id, user_id, rank, float(amount), message, e,
        )
        return

    current_app.logger.warning(
        "contest_win credit failed contest=%s entry=%s user=%s amount=%.2f: %s",
        contest_id, entry_id, user_id, float(amount), message,
    )


def _has_payouts(contest_id: int) -> bool:
    return db.session.query(
        WalletTxn.query.filter_by(kind=TxnKind.CONTEST_WIN, contest_id=int(contest_id)).exists()
    ).scalar()


def settle_contest(contest_id: int) -> dict:
    """Rank a completed contest and credit its winners.

    Returns counts for this run. A match that has not completed is a no-op
    reported as skipped.
    """
    c = get_contest(contest_id)
    result = {
        "contest_id": int(c.id),
        "ranked_count": 0,
        "rescored_count": 0,
        "paid_count": 0,
        "already_paid_count": 0,
        "failed_count": 0,
        "skipped": False,
        "reason": "",
    }
    if not c.match.is_completed:
        result.update(skipped=True, reason="match_not_completed")
        return result

    if c.ranked_at is None or not _has_payouts(int(c.id)):
        result["ranked_count"] = _rank_contest(c)
        result["rescored_count"] = result["ranked_count"]
    else:
        # standings are fixed once money has moved; scores still follow the feed
        result["rescored_count"] = _recompute_points(c)
        db.session.commit()

    winners = (
        ContestEntry.query.filter(ContestEntry.contest_id == int(c.id), ContestEntry.win_amount > 0)
        .order_by(ContestEntry.rank.asc())
        .all()
    )
    pending = [(e, int(e.id), int(e.user_id), e.rank, float(e.win_amount)) for e in winners]

    for entry, entry_id, user_id, rank, amount in pending:
        try:
            outcome = credit_contest_win(entry)
        except TransientStoreError as exc:
            result["failed_count"] += 1
            record_failure(entry_id=entry_id, contest_id=int(contest_id), user_id=user_id, amount=amount, rank=rank, exc=exc)
            continue
        if outcome == CREDITED:
            result["paid_count"] += 1
        elif outcome == ALREADY_PAID:
            result["already_paid_count"] += 1

    if result["failed_count"] == 0:
        db.session.execute(
            update(Contest)
            .where(Contest.id == int(contest_id), Contest.settled_at.is_(None))
            .values(settled_at=datetime.utcnow())
        )
        db.session.commit()

    current_app.logger.info(
        "settled contest %s: ranked=%s paid=%s already_paid=%s failed=%s",
        contest_id, result["ranked_count"], result["paid_count"], result["already_paid_count"], result["failed_count"],
    )
    return result


def settle_match_contests(match_id: int) -> list[dict]:
    """Settle every contest of a match; one bad contest does not stop the rest."""
    out = []
    ids = [cid for (cid,) in db.session.query(Contest.id).filter(Contest.match_id == int(match_id)).order_by(Contest.id).all()]
    for cid in ids:
        try:
            out.append(settle_contest(int(cid)))
        except SettlementError as e:
            db.session.rollback()
            current_app.logger.warning("contest %s could not be settled: %s", cid, e)
            out.append({"contest_id": int(cid), "error": str(e)})
    return out


def refresh_live_points(match_id: int) -> dict:
    """Recompute entry points for the unranked contests of a live match."""
    m = get_match(match_id)
    if m.status != MatchStatus.LIVE:
        return {"match_id": int(m.id), "entries_updated": 0, "skipped": True, "reason": f"match_{m.status}"}

    stats = load_match_stats(int(m.id))
    updated = 0
    for c in Contest.query.filter(Contest.match_id == int(m.id), Contest.ranked_at.is_(None)).all():
        updated += _recompute_points(c, stats)
    db.session.commit()
    return {"match_id": int(m.id), "entries_updated": updated, "skipped": False, "reason": ""}


def settle_completed_matches(hours: int | None = None) -> dict:
    """Settle unsettled contests of matches completed in the last `hours`."""
    if hours is None:
        hours = int(current_app.config.get("COMPLETED_MATCH_LOOKBACK_HOURS", 48))
    since = datetime.utcnow() - timedelta(hours=int(hours))

    match_ids = [
        mid
        for (mid,) in db.session.query(Match.id)
        .filter(Match.status == MatchStatus.COMPLETED, Match.completed_at >= since)
        .order_by(Match.completed_at.asc())
        .all()
    ]

    results = []
    for mid in match_ids:
        contest_ids = [
            cid
            for (cid,) in db.session.query(Contest.id)
            .filter(Contest.match_id == int(mid), Contest.settled_at.is_(None))
            .all()
        ]
        for cid in contest_ids:
            try:
                results.append(settle_contest(int(cid)))
            except SettlementError as e:
                db.session.rollback()
                current_app.logger.warning("contest %s could not be settled: %s", cid, e)
                results.append({"contest_id": int(cid), "error": str(e)})

    return {
        "matches_checked": len(match_ids),
        "contests_settled": len(results),
        "paid_count": sum(r.get("paid_count", 0) for r in results),
        "failed_count": sum(r.get("failed_count", 0) for r in results),
        "results": results,
    }
