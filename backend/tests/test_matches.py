from datetime import datetime, timedelta

import pytest

from crickpool.errors import NotFoundError, ValidationError
from crickpool.extensions import db
from crickpool.jobs.contest_settlement import settle_contest
from crickpool.models import ContestEntry, EntryStatus, MatchStatus, PlayerMatchStat, TxnKind, Wallet, WalletTxn
from crickpool.services.matches import (
    archive_match,
    build_fantasy_team,
    create_contest,
    join_contest,
    record_player_stat,
    set_match_status,
)


def _team_args(factory, match, user=None):
    players = [factory.player() for _ in range(11)]
    return {
        "user_id": (user or factory.user()).id,
        "match_id": match.id,
        "player_ids": [p.id for p in players],
        "captain_id": players[0].id,
        "vice_captain_id": players[1].id,
    }


def test_stats_rejected_before_match_starts(factory):
    m = factory.match()
    p = factory.player()
    with pytest.raises(ValidationError):
        record_player_stat(m.id, p.id, runs=10)


def test_stale_snapshot_is_ignored(factory):
    m = factory.match(status=MatchStatus.LIVE)
    p = factory.player()
    t0 = datetime(2026, 5, 1, 14, 0, 0)

    record_player_stat(m.id, p.id, snapshot_at=t0 + timedelta(minutes=10), runs=30, balls_faced=22)
    record_player_stat(m.id, p.id, snapshot_at=t0, runs=12, balls_faced=9)

    row = PlayerMatchStat.query.filter_by(match_id=m.id, player_id=p.id).one()
    assert (row.runs, row.balls_faced) == (30, 22)


def test_newer_snapshot_updates_only_given_fields(factory):
    m = factory.match(status=MatchStatus.LIVE)
    p = factory.player()
    record_player_stat(m.id, p.id, runs=30, wickets=1)
    record_player_stat(m.id, p.id, runs=45)

    row = PlayerMatchStat.query.filter_by(match_id=m.id, player_id=p.id).one()
    assert (row.runs, row.wickets) == (45, 1)


def test_unknown_or_negative_stats_rejected(factory):
    m = factory.match(status=MatchStatus.LIVE)
    p = factory.player()
    with pytest.raises(ValidationError):
        record_player_stat(m.id, p.id, boundaries=3)
    with pytest.raises(ValidationError):
        record_player_stat(m.id, p.id, runs=-1)


def test_status_transitions_are_forward_only(factory):
    m = factory.match()
    with pytest.raises(ValidationError):
        set_match_status(m.id, MatchStatus.COMPLETED)

    assert set_match_status(m.id, "live")["changed"] is True
    assert set_match_status(m.id, "live")["changed"] is False
    with pytest.raises(ValidationError):
        set_match_status(m.id, "upcoming")
    with pytest.raises(ValidationError):
        set_match_status(m.id, "abandoned")


def test_completing_a_match_settles_its_contests(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])

    res = set_match_status(match.id, MatchStatus.COMPLETED)

    assert res["match"]["completed_at"] is not None
    assert [s["paid_count"] for s in res["settlements"]] == [3]
    db.session.expire_all()
    assert all(db.session.get(ContestEntry, e.id).settlement_status == EntryStatus.PAID for e in entries)


def test_archive_requires_settled_contests_and_freezes_stats(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 32])
    factory.complete(match)
    with pytest.raises(ValidationError):
        archive_match(match.id)

    settle_contest(contest.id)
    archived = archive_match(match.id)
    assert archived.archived_at is not None

    star_id = entries[0].fantasy_team.players[-1].player_id
    with pytest.raises(ValidationError):
        record_player_stat(match.id, star_id, runs=1)


def test_team_rules(factory):
    m = factory.match()
    args = _team_args(factory, m)

    bad = dict(args, player_ids=args["player_ids"][:10])
    with pytest.raises(ValidationError):
        build_fantasy_team(**bad)

    bad = dict(args, player_ids=args["player_ids"][:10] + args["player_ids"][:1])
    with pytest.raises(ValidationError):
        build_fantasy_team(**bad)

    bad = dict(args, vice_captain_id=args["captain_id"])
    with pytest.raises(ValidationError):
        build_fantasy_team(**bad)

    outsider = factory.player()
    bad = dict(args, captain_id=outsider.id)
    with pytest.raises(ValidationError):
        build_fantasy_team(**bad)

    team = build_fantasy_team(**args)
    assert len(team.players) == 11
    assert sum(tp.is_captain for tp in team.players) == 1
    assert sum(tp.is_vice_captain for tp in team.players) == 1


def test_teams_lock_when_match_starts(factory):
    m = factory.match(status=MatchStatus.LIVE)
    with pytest.raises(ValidationError):
        build_fantasy_team(**_team_args(factory, m))


def test_create_contest_stores_breakup(factory):
    m = factory.match()
    c = create_contest(match_id=m.id, name="Mega", total_prize=10000, winner_count=3, first_prize=5000, entry_fee=50)
    assert [(pb.rank_from, pb.amount, pb.percentage) for pb in c.prize_breakups] == [
        (1, 5000, 50), (2, 3000, 30), (3, 2000, 20),
    ]

    with pytest.raises(ValidationError):
        create_contest(match_id=m.id, name="Bad", total_prize=100, winner_count=3, first_prize=500)
    with pytest.raises(NotFoundError):
        create_contest(match_id=9999, name="Nope", total_prize=100, winner_count=1, first_prize=100)


def test_join_debits_fee_once(factory):
    m = factory.match()
    c = create_contest(match_id=m.id, name="Paid", total_prize=1000, winner_count=2, first_prize=600, entry_fee=50)
    u = factory.user()
    factory.deposit(u, 120)
    team = build_fantasy_team(**_team_args(factory, m, user=u))

    entry = join_contest(c.id, team.id)
    again = join_contest(c.id, team.id)

    assert entry.id == again.id
    assert entry.win_amount is None
    assert entry.settlement_status == EntryStatus.PENDING
    assert WalletTxn.query.filter_by(user_id=u.id, kind=TxnKind.CONTEST_JOIN).count() == 1
    db.session.expire_all()
    assert Wallet.query.filter_by(user_id=u.id).one().balance == 70


def test_join_requires_balance(factory):
    m = factory.match()
    c = create_contest(match_id=m.id, name="Paid", total_prize=1000, winner_count=2, first_prize=600, entry_fee=50)
    u = factory.user()
    team = build_fantasy_team(**_team_args(factory, m, user=u))

    with pytest.raises(ValidationError):
        join_contest(c.id, team.id)
    assert ContestEntry.query.count() == 0
