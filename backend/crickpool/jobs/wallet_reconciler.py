from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import case, func, select, update

from crickpool.extensions import db
from crickpool.models import Wallet, WalletTxn
from crickpool.utils.audit import add_audit


def _signed_sum():
    return func.coalesce(
        func.sum(case((WalletTxn.direction == "credit", WalletTxn.amount), else_=-WalletTxn.amount)),
        0.0,
    )


def _sum_ledger(wallet_id: int) -> float:
    total = db.session.query(_signed_sum()).filter(
        WalletTxn.wallet_id == int(wallet_id),
        WalletTxn.status == "completed",
    ).scalar()
    return float(total or 0.0)


def _repair_balance(wallet_id: int) -> None:
    # balance := ledger sum, computed by the database in the same statement
    ledger = (
        select(_signed_sum())
        .where(WalletTxn.wallet_id == Wallet.id, WalletTxn.status == "completed")
        .scalar_subquery()
    )
    db.session.execute(
        update(Wallet)
        .where(Wallet.id == int(wallet_id))
        .values(balance=ledger, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )


def audit_wallets(*, repair: bool = False, limit: int | None = None, tolerance: float | None = None, actor: str = "system:wallet_audit") -> dict:
    """Compare every wallet balance with its ledger.

    Each mismatch is written to AuditLog as `wallet_anomaly`. With repair=True
    the balance is reset to the ledger sum.
    """
    if tolerance is None:
        tolerance = float(current_app.config.get("BALANCE_TOLERANCE", 0.01))

    checked = 0
    anomalies = []
    repaired = 0

    q = Wallet.query.order_by(Wallet.id.asc())
    if limit:
        q = q.limit(int(limit))

    for w in q.all():
        checked += 1
        computed = _sum_ledger(int(w.id))
        stored = float(w.balance or 0.0)
        if abs(computed - stored) <= float(tolerance):
            continue

        meta = {
            "wallet_id": int(w.id),
            "user_id": int(w.user_id),
            "computed_balance": round(computed, 4),
            "stored_balance": round(stored, 4),
            "difference": round(stored - computed, 4),
            "currency": w.currency or "INR",
            "repaired": bool(repair),
        }
        anomalies.append(meta)
        if repair:
            _repair_balance(int(w.id))
            repaired += 1
        add_audit("wallet_anomaly", actor=actor, target_type="wallet", target_id=int(w.id), meta=meta)
        db.session.commit()
        current_app.logger.warning(
            "wallet %s balance %.2f != ledger %.2f%s", w.id, stored, computed, " (repaired)" if repair else ""
        )

    return {"checked": checked, "anomalies": len(anomalies), "repaired": repaired, "wallets": anomalies}
