from datetime import datetime

from crickpool.extensions import db


class MatchStatus:
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"

    ALL = (UPCOMING, LIVE, COMPLETED)
    # allowed forward transitions
    NEXT = {UPCOMING: (LIVE,), LIVE: (COMPLETED,), COMPLETED: ()}


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False, default="")

    status = db.Column(db.String(16), nullable=False, default=MatchStatus.UPCOMING, index=True)
    start_time = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True, index=True)
    archived_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    contests = db.relationship("Contest", back_populates="match", lazy="select")

    @property
    def is_completed(self) -> bool:
        return self.status == MatchStatus.COMPLETED

    def to_dict(self):
        return {
            "id": int(self.id),
            "name": self.name,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
        }


class Player(db.Model):
    __tablename__ = "players"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, default="")
    # PlayerRole value: BAT / BOWL / AR / WK
    role = db.Column(db.String(8), nullable=False)

    def to_dict(self):
        return {"id": int(self.id), "name": self.name, "role": self.role}


class PlayerMatchStat(db.Model):
    __tablename__ = "player_match_stats"
    __table_args__ = (
        db.UniqueConstraint("match_id", "player_id", name="uq_player_match_stats_match_player"),
    )

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey("players.id"), nullable=False, index=True)

    # batting
    runs = db.Column(db.Integer, nullable=False, default=0)
    balls_faced = db.Column(db.Integer, nullable=False, default=0)
    fours = db.Column(db.Integer, nullable=False, default=0)
    sixes = db.Column(db.Integer, nullable=False, default=0)
    is_out = db.Column(db.Boolean, nullable=False, default=False)

    # bowling
    wickets = db.Column(db.Integer, nullable=False, default=0)
    lbw_bowled_wickets = db.Column(db.Integer, nullable=False, default=0)
    overs_bowled = db.Column(db.Float, nullable=False, default=0.0)
    maidens = db.Column(db.Integer, nullable=False, default=0)
    runs_conceded = db.Column(db.Integer, nullable=False, default=0)

    # fielding
    catches = db.Column(db.Integer, nullable=False, default=0)
    stumpings = db.Column(db.Integer, nullable=False, default=0)
    run_outs_direct = db.Column(db.Integer, nullable=False, default=0)
    run_outs_indirect = db.Column(db.Integer, nullable=False, default=0)

    # feed timestamp of the snapshot this row reflects
    snapshot_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    STAT_FIELDS = (
        "runs", "balls_faced", "fours", "sixes", "is_out",
        "wickets", "lbw_bowled_wickets", "overs_bowled", "maidens", "runs_conceded",
        "catches", "stumpings", "run_outs_direct", "run_outs_indirect",
    )

    def to_dict(self):
        out = {"match_id": int(self.match_id), "player_id": int(self.player_id)}
        for name in self.STAT_FIELDS:
            out[name] = getattr(self, name)
        out["snapshot_at"] = self.snapshot_at.isoformat() if self.snapshot_at else None
        return out
