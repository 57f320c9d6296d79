import threading

from sqlalchemy.exc import OperationalError

import crickpool.utils.wallets as wallets
from crickpool.extensions import db
from crickpool.jobs.contest_settlement import refresh_live_points, settle_completed_matches, settle_contest
from crickpool.models import Contest, ContestEntry, EntryStatus, SettlementFailure, TxnKind, Wallet, WalletTxn
from crickpool.services.matches import record_player_stat


def _balance(user_id):
    db.session.expire_all()
    w = Wallet.query.filter_by(user_id=user_id).first()
    return float(w.balance) if w else 0.0


def _win_txns(contest_id):
    return WalletTxn.query.filter_by(kind=TxnKind.CONTEST_WIN, contest_id=contest_id).all()


def test_settle_ranks_and_credits_winners(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 16, 32, 8])
    factory.complete(match)

    res = settle_contest(contest.id)

    assert res["ranked_count"] == 4
    assert res["paid_count"] == 3
    assert res["failed_count"] == 0

    db.session.expire_all()
    by_id = {e.id: db.session.get(ContestEntry, e.id) for e in entries}
    assert [by_id[e.id].rank for e in entries] == [1, 3, 2, 4]
    assert [by_id[e.id].win_amount for e in entries] == [5000, 2000, 3000, 0]
    assert [by_id[e.id].settlement_status for e in entries] == [
        EntryStatus.PAID, EntryStatus.PAID, EntryStatus.PAID, EntryStatus.PRIZE_ASSIGNED,
    ]
    assert [_balance(u.id) for u in users] == [5000, 2000, 3000, 0]
    assert db.session.get(Contest, contest.id).settled_at is not None


def test_settle_twice_pays_once(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])
    factory.complete(match)

    settle_contest(contest.id)
    balances = [_balance(u.id) for u in users]

    again = settle_contest(contest.id)

    assert again["ranked_count"] == 0
    assert again["paid_count"] == 0
    assert again["already_paid_count"] == 3
    assert [_balance(u.id) for u in users] == balances
    for u in users:
        assert WalletTxn.query.filter_by(user_id=u.id, kind=TxnKind.CONTEST_WIN).count() == 1


def test_uniqueness_constraint_blocks_double_credit(factory, monkeypatch):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])
    factory.complete(match)
    settle_contest(contest.id)

    # pretend the pre-check raced and saw nothing; the constraint must still hold
    monkeypatch.setattr(wallets, "find_win_txn", lambda _entry_id: None)
    again = settle_contest(contest.id)

    assert again["paid_count"] == 0
    assert again["already_paid_count"] == 3
    assert again["failed_count"] == 0
    assert len(_win_txns(contest.id)) == 3
    assert [_balance(u.id) for u in users] == [5000, 3000, 2000]


def test_settle_is_noop_until_match_completes(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])

    res = settle_contest(contest.id)

    assert res["skipped"] is True
    assert res["reason"] == "match_not_completed"
    assert _win_txns(contest.id) == []
    db.session.expire_all()
    assert all(db.session.get(ContestEntry, e.id).win_amount is None for e in entries)


def test_tied_entries_rank_by_join_order(factory):
    match, contest, entries, users = factory.contest_with_entries([120, 120], total_prize=1000, winner_count=2, first_prize=600)
    factory.complete(match)

    settle_contest(contest.id)

    db.session.expire_all()
    first, second = (db.session.get(ContestEntry, e.id) for e in entries)
    assert first.points == second.points == 120
    assert (first.rank, second.rank) == (1, 2)
    assert (_balance(users[0].id), _balance(users[1].id)) == (600, 400)


def test_paid_entry_is_never_repriced(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])
    factory.complete(match)
    settle_contest(contest.id)

    # late stat correction drops the winner to last, then a forced re-rank
    team = db.session.get(ContestEntry, entries[0].id).fantasy_team
    record_player_stat(match.id, team.players[-1].player_id, catches=1)
    c = db.session.get(Contest, contest.id)
    c.ranked_at = None
    db.session.commit()
    settle_contest(contest.id)

    db.session.expire_all()
    assert db.session.get(ContestEntry, entries[0].id).points == 8
    assert db.session.get(ContestEntry, entries[0].id).win_amount == 5000
    assert _balance(users[0].id) == 5000
    assert len(_win_txns(contest.id)) == 3


def test_late_stats_are_scored_on_the_next_settle(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])
    factory.complete(match)
    settle_contest(contest.id)

    star = db.session.get(ContestEntry, entries[2].id).fantasy_team.players[-1].player_id
    record_player_stat(match.id, star, catches=10)
    res = settle_contest(contest.id)

    assert res["ranked_count"] == 0
    assert res["rescored_count"] == 3
    db.session.expire_all()
    late = db.session.get(ContestEntry, entries[2].id)
    assert late.points == 80
    # already paid out, so the standings stay put
    assert (late.rank, late.win_amount) == (3, 2000)
    assert len(_win_txns(contest.id)) == 3


def test_late_stats_rerank_while_nothing_is_paid(factory, monkeypatch):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])
    factory.complete(match)

    def _down(**kwargs):
        raise OperationalError("INSERT INTO wallet_txns", {}, Exception("database is locked"))

    monkeypatch.setattr(wallets, "_append_win_txn", _down)
    assert settle_contest(contest.id)["failed_count"] == 3
    monkeypatch.undo()

    star = db.session.get(ContestEntry, entries[2].id).fantasy_team.players[-1].player_id
    record_player_stat(match.id, star, catches=10)
    res = settle_contest(contest.id)

    assert res["ranked_count"] == 3
    assert res["paid_count"] == 3
    db.session.expire_all()
    assert [db.session.get(ContestEntry, e.id).rank for e in entries] == [2, 3, 1]
    assert [_balance(u.id) for u in users] == [3000, 2000, 5000]


def test_store_failure_is_recorded_and_batch_continues(factory, monkeypatch):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])
    factory.complete(match)
    failing_entry = entries[1].id
    real_append = wallets._append_win_txn

    def _flaky_append(**kwargs):
        if kwargs["entry_id"] == failing_entry:
            raise OperationalError("INSERT INTO wallet_txns", {}, Exception("database is locked"))
        return real_append(**kwargs)

    monkeypatch.setattr(wallets, "_append_win_txn", _flaky_append)

    res = settle_contest(contest.id)

    assert res["paid_count"] == 2
    assert res["failed_count"] == 1
    failure = SettlementFailure.query.filter_by(entry_id=failing_entry).one()
    assert failure.processed is False
    assert failure.amount == 3000
    assert failure.rank == 2
    assert failure.error_type == "TransientStoreError"
    assert db.session.get(ContestEntry, failing_entry).settlement_status == EntryStatus.FAILED
    assert db.session.get(Contest, contest.id).settled_at is None

    # a second failing run bumps the same open record
    settle_contest(contest.id)
    db.session.expire_all()
    assert SettlementFailure.query.filter_by(entry_id=failing_entry).count() == 1
    assert SettlementFailure.query.filter_by(entry_id=failing_entry).one().attempt_count == 2


def test_concurrent_settles_pay_each_entry_once(file_app, file_factory):
    match, contest, entries, users = file_factory.contest_with_entries([48, 40, 32, 24, 16], total_prize=10000, winner_count=4, first_prize=4000)
    file_factory.complete(match)
    contest_id = contest.id
    user_ids = [u.id for u in users]
    db.session.remove()

    errors = []
    barrier = threading.Barrier(4)

    def _worker():
        with file_app.app_context():
            try:
                barrier.wait()
                settle_contest(contest_id)
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    txns = _win_txns(contest_id)
    assert len(txns) == 4
    assert len({t.entry_id for t in txns}) == 4
    balances = [_balance(uid) for uid in user_ids]
    assert sum(balances) == 10000
    assert balances[-1] == 0


def test_refresh_live_points_updates_without_ranking(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 24])

    res = refresh_live_points(match.id)

    assert res["entries_updated"] == 2
    db.session.expire_all()
    e1, e2 = (db.session.get(ContestEntry, e.id) for e in entries)
    assert (e1.points, e2.points) == (40, 24)
    assert e1.rank is None and e1.win_amount is None
    assert db.session.get(Contest, contest.id).ranked_at is None


def test_settle_completed_matches_sweeps_recent_matches(factory):
    match, contest, entries, users = factory.contest_with_entries([40, 32, 24])
    factory.complete(match)

    res = settle_completed_matches(hours=48)

    assert res["matches_checked"] == 1
    assert res["paid_count"] == 3
    # settled contests are not picked up again
    assert settle_completed_matches(hours=48)["contests_settled"] == 0
