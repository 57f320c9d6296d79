"""Reconciliation sweep: the safety net behind contest settlement.

A run replays open SettlementFailure rows, credits winning entries that have
no ledger row, then audits wallet balances against the ledger. It only
touches things that are actually wrong, so a second run right after the
first reports nothing to fix.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import select

from crickpool.errors import TransientStoreError
from crickpool.extensions import db
from crickpool.jobs.contest_settlement import record_failure
from crickpool.jobs.wallet_reconciler import audit_wallets
from crickpool.models import Contest, ContestEntry, Match, MatchStatus, SettlementFailure, TxnKind, WalletTxn
from crickpool.utils.audit import add_audit
from crickpool.utils.leases import acquire_lease, new_owner_id, release_lease
from crickpool.utils.wallets import CREDITED, credit_contest_win

LEASE_NAME = "reconciler"
MISSING_ENTRY = "missing_entry"


def _close_failure(failure: SettlementFailure, actor: str, resolution: str) -> None:
    now = datetime.utcnow()
    failure.processed = True
    failure.processed_at = now
    failure.processed_by = actor[:64]
    failure.resolution = resolution
    failure.updated_at = now
    db.session.commit()


def _replay_failures(actor: str) -> dict:
    found = fixed = still_open = missing = 0
    ids = [fid for (fid,) in db.session.query(SettlementFailure.id).filter_by(processed=False).order_by(SettlementFailure.id).all()]

    for fid in ids:
        failure = db.session.get(SettlementFailure, fid)
        if failure is None or failure.processed:
            continue
        found += 1
        entry = db.session.get(ContestEntry, int(failure.entry_id))

        if entry is None:
            missing += 1
            _close_failure(failure, actor, MISSING_ENTRY)
            current_app.logger.warning("settlement failure %s points at missing entry %s; closed", fid, failure.entry_id)
            continue

        try:
            outcome = credit_contest_win(entry)
        except TransientStoreError as e:
            still_open += 1
            failure = db.session.get(SettlementFailure, fid)
            failure.attempt_count = int(failure.attempt_count or 0) + 1
            failure.error_type = type(e).__name__
            failure.error = str(e)[:240]
            failure.updated_at = datetime.utcnow()
            db.session.commit()
            continue

        _close_failure(db.session.get(SettlementFailure, fid), actor, outcome)
        fixed += 1
        current_app.logger.info("settlement failure %s closed as %s", fid, outcome)

    return {"found": found, "fixed": fixed, "still_open": still_open, "missing_entry": missing}


def _unpaid_winners(window_days: int | None):
    paid = (
        select(WalletTxn.id)
        .where(WalletTxn.kind == TxnKind.CONTEST_WIN, WalletTxn.entry_id == ContestEntry.id)
        .exists()
    )
    # open failures were just replayed; leave them to the next run
    open_failure = (
        select(SettlementFailure.id)
        .where(SettlementFailure.entry_id == ContestEntry.id, SettlementFailure.processed.is_(False))
        .exists()
    )
    q = (
        ContestEntry.query.join(Contest, Contest.id == ContestEntry.contest_id)
        .join(Match, Match.id == Contest.match_id)
        .filter(ContestEntry.win_amount > 0, Match.status == MatchStatus.COMPLETED, ~paid, ~open_failure)
    )
    if window_days is not None:
        q = q.filter(Match.completed_at >= datetime.utcnow() - timedelta(days=int(window_days)))
    return q.order_by(ContestEntry.contest_id.asc(), ContestEntry.rank.asc()).all()


def _credit_missed_wins(window_days: int | None) -> dict:
    found = fixed = failed = 0
    for entry in _unpaid_winners(window_days):
        found += 1
        entry_id, contest_id, user_id = int(entry.id), int(entry.contest_id), int(entry.user_id)
        rank, amount = entry.rank, float(entry.win_amount)
        try:
            outcome = credit_contest_win(entry)
        except TransientStoreError as e:
            failed += 1
            record_failure(entry_id=entry_id, contest_id=contest_id, user_id=user_id, amount=amount, rank=rank, exc=e)
            continue
        if outcome == CREDITED:
            fixed += 1
            current_app.logger.warning("missed contest_win credited contest=%s entry=%s amount=%.2f", contest_id, entry_id, amount)
    return {"found": found, "fixed": fixed, "failed": failed}


def reconcile(window_days: int | None = 7, actor: str = "system:reconciler", repair_balances: bool | None = None) -> dict:
    """Run one reconciliation sweep.

    window_days limits the missed-credit scan to matches completed in that
    many days; None scans every completed match. Only one sweep runs at a
    time across processes; a concurrent call returns skipped.
    """
    if repair_balances is None:
        repair_balances = bool(current_app.config.get("RECONCILE_REPAIR_BALANCES", True))
    ttl = int(current_app.config.get("RECONCILER_LEASE_SECONDS", 300))

    owner = new_owner_id(LEASE_NAME)
    if not acquire_lease(LEASE_NAME, owner, ttl):
        current_app.logger.info("reconcile skipped: another sweep holds the lease")
        return {"skipped": True, "reason": "already_running", "issues_found": 0, "issues_fixed": 0}

    try:
        failures = _replay_failures(actor)
        missed = _credit_missed_wins(window_days)
        wallets = audit_wallets(repair=bool(repair_balances), actor=actor)

        result = {
            "skipped": False,
            "reason": "",
            "window_days": window_days,
            "issues_found": failures["found"] + missed["found"] + wallets["anomalies"],
            "issues_fixed": failures["fixed"] + missed["fixed"] + wallets["repaired"],
            "failures_replayed": failures,
            "missed_credits": missed,
            "wallet_anomalies": wallets["anomalies"],
            "wallets_repaired": wallets["repaired"],
        }
        add_audit("reconcile_run", actor=actor, target_type="system", meta=result)
        db.session.commit()
    finally:
        release_lease(LEASE_NAME, owner)

    current_app.logger.info(
        "reconcile done: found=%s fixed=%s (failures %s/%s, missed %s/%s, wallets %s/%s)",
        result["issues_found"], result["issues_fixed"],
        failures["fixed"], failures["found"], missed["fixed"], missed["found"],
        wallets["repaired"], wallets["anomalies"],
    )
    return result
