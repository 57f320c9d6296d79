from datetime import datetime

from crickpool.extensions import db


class SettlementFailure(db.Model):
    """Structured record of a contest_win credit that did not go through.

    One open (unprocessed) row per entry; repeated failures bump attempt_count.
    """

    __tablename__ = "settlement_failures"

    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("contest_entries.id"), nullable=False, index=True)
    contest_id = db.Column(db.Integer, db.ForeignKey("contests.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Float, nullable=False, default=0.0)
    rank = db.Column(db.Integer, nullable=True)

    error_type = db.Column(db.String(64), nullable=False, default="")
    error = db.Column(db.String(240), nullable=True)
    attempt_count = db.Column(db.Integer, nullable=False, default=1)

    processed = db.Column(db.Boolean, nullable=False, default=False, index=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    processed_by = db.Column(db.String(64), nullable=True)
    resolution = db.Column(db.String(32), nullable=True)  # credited / already_paid / no_prize / missing_entry

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "entry_id": int(self.entry_id),
            "contest_id": int(self.contest_id),
            "user_id": int(self.user_id),
            "amount": float(self.amount or 0.0),
            "rank": int(self.rank) if self.rank is not None else None,
            "error_type": self.error_type,
            "error": self.error or "",
            "attempt_count": int(self.attempt_count or 0),
            "processed": bool(self.processed),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "processed_by": self.processed_by or "",
            "resolution": self.resolution or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
