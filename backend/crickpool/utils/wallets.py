from __future__ import annotations

import json
from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from crickpool.errors import DuplicateSettlementError, TransientStoreError
from crickpool.extensions import db
from crickpool.models import ContestEntry, EntryStatus, TxnKind, Wallet, WalletTxn

CREDITED = "credited"
ALREADY_PAID = "already_paid"
NO_PRIZE = "no_prize"


def get_or_create_wallet(user_id: int) -> Wallet:
    w = Wallet.query.filter_by(user_id=user_id).first()
    if w:
        return w
    w = Wallet(user_id=user_id, balance=0.0)
    try:
        db.session.add(w)
        db.session.commit()
        return w
    except IntegrityError:
        db.session.rollback()
        w = Wallet.query.filter_by(user_id=user_id).first()
        if w:
            return w
        raise


def _bump_balance(wallet_id: int, delta: float) -> None:
    # SQL-side arithmetic so concurrent credits never overwrite each other
    db.session.execute(
        update(Wallet)
        .where(Wallet.id == int(wallet_id))
        .values(balance=Wallet.balance + float(delta), updated_at=datetime.utcnow())
    )


def post_txn(
    *,
    user_id: int,
    direction: str,
    amount: float,
    kind: str,
    reference: str,
    note: str = "",
    idempotency_key: str | None = None,
) -> WalletTxn | None:
    """Idempotent wallet posting: one txn per idempotency_key (or per user/kind/reference/direction).

    Returns None for a non-positive amount or a debit the balance cannot cover.
    """
    w = get_or_create_wallet(user_id)
    key = (idempotency_key or f"{int(user_id)}:{kind}:{direction}:{reference}")[:160]
    existing = WalletTxn.query.filter_by(idempotency_key=key).first()
    if existing:
        return existing

    amt = float(amount or 0.0)
    if amt <= 0:
        return None
    if direction == "debit" and amt > float(w.balance or 0.0):
        return None

    txn = WalletTxn(
        wallet_id=w.id,
        user_id=user_id,
        direction=direction,
        amount=amt,
        kind=kind,
        reference=(reference or "")[:120],
        idempotency_key=key,
        note=(note or "")[:240],
    )
    try:
        db.session.add(txn)
        db.session.flush()
        _bump_balance(w.id, amt if direction == "credit" else -amt)
        db.session.commit()
        return txn
    except IntegrityError:
        db.session.rollback()
        existing = WalletTxn.query.filter_by(idempotency_key=key).first()
        if existing:
            return existing
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise TransientStoreError(f"ledger post failed for user {user_id}: {e}") from e


def find_win_txn(entry_id: int) -> WalletTxn | None:
    return WalletTxn.query.filter_by(kind=TxnKind.CONTEST_WIN, entry_id=int(entry_id)).first()


def _append_win_txn(*, wallet_id: int, user_id: int, contest_id: int, entry_id: int, rank, amount: float) -> WalletTxn:
    txn = WalletTxn(
        wallet_id=wallet_id,
        user_id=user_id,
        direction="credit",
        amount=amount,
        kind=TxnKind.CONTEST_WIN,
        status="completed",
        reference=f"contest:{contest_id}:entry:{entry_id}",
        contest_id=contest_id,
        entry_id=entry_id,
        meta=json.dumps({"contest_id": contest_id, "entry_id": entry_id, "rank": rank}),
        note=f"Contest win, rank {rank}",
    )
    try:
        db.session.add(txn)
        db.session.flush()
    except IntegrityError as e:
        db.session.rollback()
        if WalletTxn.query.filter_by(kind=TxnKind.CONTEST_WIN, contest_id=contest_id, entry_id=entry_id).first():
            raise DuplicateSettlementError(contest_id, entry_id) from e
        raise
    return txn


def _mark_paid(entry_id: int) -> None:
    try:
        db.session.execute(
            update(ContestEntry)
            .where(ContestEntry.id == int(entry_id))
            .values(settlement_status=EntryStatus.PAID, updated_at=datetime.utcnow())
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning("entry %s is paid but its status could not be updated: %s", entry_id, e)


def credit_contest_win(entry: ContestEntry) -> str:
    """Pay an entry's win_amount exactly once.

    The ledger row and the wallet increment commit together. The unique
    (kind, contest_id, entry_id) constraint decides races: the loser sees an
    integrity error and reports ALREADY_PAID. Any other store error is raised
    as TransientStoreError with nothing written.
    """
    entry_id = int(entry.id)
    contest_id = int(entry.contest_id)
    user_id = int(entry.user_id)
    rank = int(entry.rank) if entry.rank is not None else None
    amount = float(entry.win_amount or 0.0)

    if amount <= 0:
        return NO_PRIZE

    try:
        if find_win_txn(entry_id):
            if entry.settlement_status != EntryStatus.PAID:
                _mark_paid(entry_id)
            return ALREADY_PAID

        wallet = get_or_create_wallet(user_id)
        wallet_id = int(wallet.id)

        _append_win_txn(
            wallet_id=wallet_id,
            user_id=user_id,
            contest_id=contest_id,
            entry_id=entry_id,
            rank=rank,
            amount=amount,
        )
        _bump_balance(wallet_id, amount)
        db.session.execute(
            update(ContestEntry)
            .where(ContestEntry.id == entry_id)
            .values(settlement_status=EntryStatus.PAID, updated_at=datetime.utcnow())
        )
        db.session.commit()
    except DuplicateSettlementError as dup:
        current_app.logger.debug("%s", dup)
        _mark_paid(entry_id)
        return ALREADY_PAID
    except SQLAlchemyError as e:
        db.session.rollback()
        raise TransientStoreError(f"{type(e).__name__}: {e}") from e

    current_app.logger.info(
        "credited contest_win contest=%s entry=%s user=%s rank=%s amount=%.2f",
        contest_id, entry_id, user_id, rank, amount,
    )
    return CREDITED
