import itertools
from datetime import datetime, timedelta

import pytest
from sqlalchemy import event

from crickpool import create_app
from crickpool.extensions import db
from crickpool.models import Match, MatchStatus, Player, User
from crickpool.services.matches import build_fantasy_team, create_contest, join_contest, record_player_stat
from crickpool.utils.wallets import post_txn

_TEST_CONFIG = {
    "TESTING": True,
    "CRICKPOOL_ENV": "test",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "ADMIN_API_TOKEN": "",
    "CRON_SECRET": "",
    "AUTOPILOT_ENABLED": False,
}


@pytest.fixture
def app():
    app = create_app(dict(_TEST_CONFIG))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """App over a SQLite file so worker threads get their own connections."""
    overrides = dict(_TEST_CONFIG)
    overrides["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{tmp_path / 'settle.db'}"
    overrides["SQLALCHEMY_ENGINE_OPTIONS"] = {"connect_args": {"timeout": 30}}
    app = create_app(overrides)
    with app.app_context():
        engine = db.engine

        # take the write lock at BEGIN so concurrent writers queue instead of deadlocking
        @event.listens_for(engine, "connect")
        def _no_implicit_begin(dbapi_conn, _record):
            dbapi_conn.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def stats_for(points: int) -> dict:
    """Stat fields that score exactly `points` for a non-captain player."""
    if points % 8 == 0:
        return {"catches": points // 8}
    if 0 < points < 50:
        return {"runs": points}
    raise ValueError(f"no simple stat line for {points} points")


class Factory:
    def __init__(self):
        self._seq = itertools.count(1)

    def user(self, name=None):
        n = next(self._seq)
        u = User(name=name or f"user{n}", email=f"user{n}@example.com")
        db.session.add(u)
        db.session.commit()
        return u

    def player(self, role="BAT", name=None):
        p = Player(name=name or f"player{next(self._seq)}", role=role)
        db.session.add(p)
        db.session.commit()
        return p

    def match(self, status=MatchStatus.UPCOMING):
        m = Match(name=f"match{next(self._seq)}", status=status, start_time=datetime.utcnow() + timedelta(hours=2))
        db.session.add(m)
        db.session.commit()
        return m

    def deposit(self, user, amount):
        return post_txn(user_id=user.id, direction="credit", amount=amount, kind="deposit", reference=f"dep:{next(self._seq)}")

    def go_live(self, match):
        match.status = MatchStatus.LIVE
        db.session.commit()

    def complete(self, match, when=None):
        """Mark completed without running the completion hook."""
        match.status = MatchStatus.COMPLETED
        match.completed_at = when or datetime.utcnow()
        db.session.commit()

    def contest_with_entries(self, points, total_prize=10000, winner_count=3, first_prize=5000, entry_fee=0.0):
        """A contest whose entries will score `points` (in join order) once stats land.

        Each team is ten shared zero-point players plus one scoring player;
        captain and vice-captain are zero-point players so no multiplier applies.
        Returns (match, contest, entries, users).
        """
        m = self.match()
        fillers = [self.player(role="BOWL") for _ in range(10)]
        c = create_contest(
            match_id=m.id,
            name="Test contest",
            total_prize=total_prize,
            winner_count=winner_count,
            first_prize=first_prize,
            entry_fee=entry_fee,
        )

        entries, users, stars = [], [], []
        for _ in points:
            u = self.user()
            star = self.player(role="BAT")
            team = build_fantasy_team(
                user_id=u.id,
                match_id=m.id,
                player_ids=[p.id for p in fillers] + [star.id],
                captain_id=fillers[0].id,
                vice_captain_id=fillers[1].id,
            )
            if entry_fee:
                self.deposit(u, entry_fee)
            entries.append(join_contest(c.id, team.id))
            users.append(u)
            stars.append(star)

        self.go_live(m)
        for star, pts in zip(stars, points):
            if pts:
                record_player_stat(m.id, star.id, **stats_for(pts))
        return m, c, entries, users


@pytest.fixture
def factory(app):
    return Factory()


@pytest.fixture
def file_factory(file_app):
    return Factory()
