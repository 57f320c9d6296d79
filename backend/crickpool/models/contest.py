from datetime import datetime

from crickpool.extensions import db


class EntryStatus:
    PENDING = "PENDING"
    RANKED = "RANKED"
    PRIZE_ASSIGNED = "PRIZE_ASSIGNED"
    PAID = "PAID"
    FAILED = "FAILED"

    ALL = (PENDING, RANKED, PRIZE_ASSIGNED, PAID, FAILED)


class Contest(db.Model):
    __tablename__ = "contests"

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False, index=True)
    name = db.Column(db.String(160), nullable=False, default="")

    entry_fee = db.Column(db.Float, nullable=False, default=0.0)
    total_prize = db.Column(db.Float, nullable=False)
    winner_count = db.Column(db.Integer, nullable=False)
    first_prize = db.Column(db.Float, nullable=False)

    ranked_at = db.Column(db.DateTime, nullable=True)
    settled_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    match = db.relationship("Match", back_populates="contests")
    prize_breakups = db.relationship(
        "PrizeBreakup",
        back_populates="contest",
        order_by="PrizeBreakup.rank_from",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": int(self.id),
            "match_id": int(self.match_id),
            "name": self.name,
            "entry_fee": float(self.entry_fee or 0.0),
            "total_prize": float(self.total_prize or 0.0),
            "winner_count": int(self.winner_count or 0),
            "first_prize": float(self.first_prize or 0.0),
            "ranked_at": self.ranked_at.isoformat() if self.ranked_at else None,
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
        }


class ContestEntry(db.Model):
    __tablename__ = "contest_entries"
    __table_args__ = (
        db.UniqueConstraint("contest_id", "fantasy_team_id", name="uq_contest_entries_contest_team"),
    )

    id = db.Column(db.Integer, primary_key=True)
    contest_id = db.Column(db.Integer, db.ForeignKey("contests.id"), nullable=False, index=True)
    fantasy_team_id = db.Column(db.Integer, db.ForeignKey("fantasy_teams.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    points = db.Column(db.Float, nullable=False, default=0.0)
    rank = db.Column(db.Integer, nullable=True)
    # None until settlement; 0.0 is a settled non-winning outcome
    win_amount = db.Column(db.Float, nullable=True)
    settlement_status = db.Column(db.String(16), nullable=False, default=EntryStatus.PENDING, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    contest = db.relationship("Contest")
    fantasy_team = db.relationship("FantasyTeam")

    def to_dict(self):
        return {
            "id": int(self.id),
            "contest_id": int(self.contest_id),
            "fantasy_team_id": int(self.fantasy_team_id),
            "user_id": int(self.user_id),
            "points": float(self.points or 0.0),
            "rank": int(self.rank) if self.rank is not None else None,
            "win_amount": float(self.win_amount) if self.win_amount is not None else None,
            "settlement_status": self.settlement_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PrizeBreakup(db.Model):
    __tablename__ = "prize_breakups"

    id = db.Column(db.Integer, primary_key=True)
    contest_id = db.Column(db.Integer, db.ForeignKey("contests.id"), nullable=False, index=True)

    rank_from = db.Column(db.Integer, nullable=False)
    rank_to = db.Column(db.Integer, nullable=False)
    # per-rank amount
    amount = db.Column(db.Float, nullable=False, default=0.0)
    percentage = db.Column(db.Integer, nullable=False, default=0)

    contest = db.relationship("Contest", back_populates="prize_breakups")

    def to_tier(self):
        from crickpool.utils.prize_tiers import PrizeTier

        return PrizeTier(
            rank_from=int(self.rank_from),
            rank_to=int(self.rank_to),
            amount=float(self.amount or 0.0),
            percentage=int(self.percentage or 0),
        )

    def to_dict(self):
        return self.to_tier().to_dict()
