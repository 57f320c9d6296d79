from datetime import datetime

from crickpool.extensions import db


class TxnKind:
    CONTEST_WIN = "contest_win"
    CONTEST_JOIN = "contest_join"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    BONUS = "bonus"
    REFUND = "refund"

    ALL = (CONTEST_WIN, CONTEST_JOIN, DEPOSIT, WITHDRAWAL, BONUS, REFUND)


class WalletTxn(db.Model):
    """Append-only ledger row. Never updated or deleted once written."""

    __tablename__ = "wallet_txns"
    __table_args__ = (
        # The settlement key: at most one row per (kind, contest, entry).
        db.UniqueConstraint("kind", "contest_id", "entry_id", name="uq_wallet_txns_kind_contest_entry"),
    )

    id = db.Column(db.Integer, primary_key=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey("wallets.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    direction = db.Column(db.String(8), nullable=False)  # credit/debit
    amount = db.Column(db.Float, nullable=False, default=0.0)

    kind = db.Column(db.String(32), nullable=False, default=TxnKind.DEPOSIT)
    status = db.Column(db.String(16), nullable=False, default="completed")
    reference = db.Column(db.String(120), nullable=True, index=True)
    idempotency_key = db.Column(db.String(160), nullable=True, unique=True, index=True)

    contest_id = db.Column(db.Integer, db.ForeignKey("contests.id"), nullable=True, index=True)
    entry_id = db.Column(db.Integer, db.ForeignKey("contest_entries.id"), nullable=True, index=True)
    meta = db.Column(db.Text, nullable=True)

    note = db.Column(db.String(240), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    @property
    def signed_amount(self) -> float:
        amt = float(self.amount or 0.0)
        return amt if self.direction == "credit" else -amt

    def to_dict(self):
        return {
            "id": int(self.id),
            "wallet_id": int(self.wallet_id),
            "user_id": int(self.user_id),
            "direction": self.direction,
            "amount": float(self.amount or 0.0),
            "signed_amount": self.signed_amount,
            "kind": self.kind,
            "status": self.status,
            "reference": self.reference or "",
            "contest_id": int(self.contest_id) if self.contest_id else None,
            "entry_id": int(self.entry_id) if self.entry_id else None,
            "note": self.note or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
