"""Match lifecycle, stat feed ingestion and contest setup."""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from crickpool.errors import NotFoundError, ValidationError
from crickpool.extensions import db
from crickpool.models import (
    Contest,
    ContestEntry,
    EntryStatus,
    FantasyTeam,
    FantasyTeamPlayer,
    Match,
    MatchStatus,
    Player,
    PlayerMatchStat,
    PrizeBreakup,
    TxnKind,
)
from crickpool.utils.points import Selection, parse_role
from crickpool.utils.prize_tiers import generate_tiers
from crickpool.utils.wallets import post_txn

TEAM_SIZE = 11


def get_match(match_id: int) -> Match:
    m = db.session.get(Match, int(match_id))
    if not m:
        raise NotFoundError(f"Match {match_id} not found")
    return m


def get_contest(contest_id: int) -> Contest:
    c = db.session.get(Contest, int(contest_id))
    if not c:
        raise NotFoundError(f"Contest {contest_id} not found")
    return c


def _stat_value(name: str, raw):
    if name == "is_out":
        return bool(raw)
    if name == "overs_bowled":
        value = float(raw or 0.0)
    else:
        value = int(raw or 0)
    if value < 0:
        raise ValidationError(f"{name} cannot be negative")
    return value


def record_player_stat(match_id: int, player_id: int, snapshot_at: datetime | None = None, **fields) -> PlayerMatchStat:
    """Upsert the stat row for (match, player) from one feed snapshot.

    Snapshots older than the stored one are ignored, so re-sent or
    out-of-order feed messages never roll a row back.
    """
    m = get_match(match_id)
    if m.status == MatchStatus.UPCOMING:
        raise ValidationError("Stats cannot be recorded before the match starts")
    if m.archived_at is not None:
        raise ValidationError("Match is archived; stats are frozen")
    if not db.session.get(Player, int(player_id)):
        raise NotFoundError(f"Player {player_id} not found")

    unknown = set(fields) - set(PlayerMatchStat.STAT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown stat fields: {', '.join(sorted(unknown))}")
    values = {name: _stat_value(name, raw) for name, raw in fields.items()}

    snapshot_at = snapshot_at or datetime.utcnow()
    row = PlayerMatchStat.query.filter_by(match_id=int(match_id), player_id=int(player_id)).first()
    if row is not None and row.snapshot_at and snapshot_at < row.snapshot_at:
        current_app.logger.debug(
            "stale stat snapshot ignored match=%s player=%s at=%s", match_id, player_id, snapshot_at.isoformat()
        )
        return row

    if row is None:
        row = PlayerMatchStat(match_id=int(match_id), player_id=int(player_id))
        db.session.add(row)
    for name, value in values.items():
        setattr(row, name, value)
    row.snapshot_at = snapshot_at
    row.updated_at = datetime.utcnow()

    try:
        db.session.commit()
    except IntegrityError:
        # concurrent first write for the same player; apply on top of the winner
        db.session.rollback()
        return record_player_stat(match_id, player_id, snapshot_at=snapshot_at, **fields)
    return row


def load_match_stats(match_id: int) -> dict[int, PlayerMatchStat]:
    rows = PlayerMatchStat.query.filter_by(match_id=int(match_id)).all()
    return {int(r.player_id): r for r in rows}


def team_selections(team: FantasyTeam) -> list[Selection]:
    return [
        Selection(
            player_id=int(tp.player_id),
            role=parse_role(tp.player.role),
            is_captain=bool(tp.is_captain),
            is_vice_captain=bool(tp.is_vice_captain),
        )
        for tp in team.players
    ]


def set_match_status(match_id: int, status: str) -> dict:
    """Move a match forward through upcoming -> live -> completed.

    Completing a match settles every contest on it. Re-sending the current
    status is accepted and changes nothing.
    """
    m = get_match(match_id)
    status = (status or "").strip().lower()
    if status not in MatchStatus.ALL:
        raise ValidationError(f"Unknown match status: {status!r}")

    if m.status == status:
        return {"match": m.to_dict(), "changed": False, "settlements": []}
    if status not in MatchStatus.NEXT.get(m.status, ()):
        raise ValidationError(f"Match cannot move from {m.status} to {status}")

    now = datetime.utcnow()
    m.status = status
    m.updated_at = now
    if status == MatchStatus.COMPLETED:
        m.completed_at = now
    db.session.commit()
    current_app.logger.info("match %s is now %s", m.id, status)

    settlements = []
    if status == MatchStatus.COMPLETED:
        from crickpool.jobs.contest_settlement import settle_match_contests

        settlements = settle_match_contests(int(m.id))
    return {"match": m.to_dict(), "changed": True, "settlements": settlements}


def archive_match(match_id: int) -> Match:
    m = get_match(match_id)
    if m.archived_at is not None:
        return m
    if m.status != MatchStatus.COMPLETED:
        raise ValidationError("Only completed matches can be archived")

    unsettled = Contest.query.filter(Contest.match_id == int(m.id), Contest.settled_at.is_(None)).count()
    if unsettled:
        raise ValidationError(f"{unsettled} contest(s) on this match are not fully settled")

    m.archived_at = datetime.utcnow()
    m.updated_at = m.archived_at
    db.session.commit()
    return m


def build_fantasy_team(
    *,
    user_id: int,
    match_id: int,
    player_ids: list[int],
    captain_id: int,
    vice_captain_id: int,
    name: str = "",
) -> FantasyTeam:
    m = get_match(match_id)
    if m.status != MatchStatus.UPCOMING:
        raise ValidationError("Teams are locked once the match has started")

    ids = [int(p) for p in (player_ids or [])]
    if len(ids) != TEAM_SIZE or len(set(ids)) != TEAM_SIZE:
        raise ValidationError(f"A team needs exactly {TEAM_SIZE} distinct players")
    if int(captain_id) == int(vice_captain_id):
        raise ValidationError("Captain and vice-captain must be different players")
    if int(captain_id) not in ids or int(vice_captain_id) not in ids:
        raise ValidationError("Captain and vice-captain must be in the team")

    found = {p.id for p in Player.query.filter(Player.id.in_(ids)).all()}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFoundError(f"Unknown players: {missing}")

    team = FantasyTeam(user_id=int(user_id), match_id=int(m.id), name=(name or "")[:80])
    for pos, pid in enumerate(ids):
        team.players.append(
            FantasyTeamPlayer(
                player_id=pid,
                position=pos,
                is_captain=pid == int(captain_id),
                is_vice_captain=pid == int(vice_captain_id),
            )
        )
    db.session.add(team)
    db.session.commit()
    return team


def create_contest(
    *,
    match_id: int,
    name: str,
    total_prize: float,
    winner_count: int,
    first_prize: float,
    entry_fee: float = 0.0,
) -> Contest:
    """Create a contest and store its generated prize breakup.

    Tier generation validates the numbers, so a bad contest is rejected
    before anything is written.
    """
    m = get_match(match_id)
    if m.status != MatchStatus.UPCOMING:
        raise ValidationError("Contests can only be created for upcoming matches")
    if float(entry_fee or 0.0) < 0:
        raise ValidationError("Entry fee cannot be negative")

    tiers = generate_tiers(total_prize, winner_count, first_prize, entry_fee)

    c = Contest(
        match_id=int(m.id),
        name=(name or "")[:160],
        entry_fee=float(entry_fee or 0.0),
        total_prize=float(total_prize),
        winner_count=int(winner_count),
        first_prize=float(first_prize),
    )
    for t in tiers:
        c.prize_breakups.append(
            PrizeBreakup(rank_from=t.rank_from, rank_to=t.rank_to, amount=t.amount, percentage=t.percentage)
        )
    db.session.add(c)
    db.session.commit()
    return c


def join_contest(contest_id: int, team_id: int) -> ContestEntry:
    """Enter a fantasy team into a contest, debiting the entry fee once.

    Joining twice with the same team returns the existing entry; the fee
    debit is keyed per (contest, team) so it is never taken twice.
    """
    c = get_contest(contest_id)
    team = db.session.get(FantasyTeam, int(team_id))
    if not team:
        raise NotFoundError(f"Team {team_id} not found")
    if int(team.match_id) != int(c.match_id):
        raise ValidationError("Team belongs to a different match")

    existing = ContestEntry.query.filter_by(contest_id=int(c.id), fantasy_team_id=int(team.id)).first()
    if existing:
        return existing
    if c.match.status != MatchStatus.UPCOMING:
        raise ValidationError("Contest is closed; the match has started")

    fee = float(c.entry_fee or 0.0)
    if fee > 0:
        txn = post_txn(
            user_id=int(team.user_id),
            direction="debit",
            amount=fee,
            kind=TxnKind.CONTEST_JOIN,
            reference=f"contest:{int(c.id)}:team:{int(team.id)}",
            note=f"Entry fee for {c.name or 'contest'}",
            idempotency_key=f"join:{int(c.id)}:{int(team.id)}",
        )
        if txn is None:
            raise ValidationError("Insufficient wallet balance")

    entry = ContestEntry(
        contest_id=int(c.id),
        fantasy_team_id=int(team.id),
        user_id=int(team.user_id),
        points=0.0,
        settlement_status=EntryStatus.PENDING,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = ContestEntry.query.filter_by(contest_id=int(c.id), fantasy_team_id=int(team.id)).first()
        if existing:
            return existing
        raise
    return entry
