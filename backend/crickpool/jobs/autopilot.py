from __future__ import annotations

from flask import current_app

from crickpool.jobs.contest_settlement import settle_completed_matches
from crickpool.jobs.reconciler import reconcile
from crickpool.utils.leases import acquire_lease, new_owner_id

LEASE_NAME = "autopilot"


def should_run(force: bool = False) -> bool:
    """Claim this interval's run. The lease is never released; its expiry is the throttle."""
    interval = int(current_app.config.get("AUTOPILOT_INTERVAL_SECONDS", 600))
    if not force and not current_app.config.get("AUTOPILOT_ENABLED"):
        return False
    return acquire_lease(LEASE_NAME, new_owner_id(LEASE_NAME), interval)


def tick(force: bool = False) -> dict:
    """Settle recently completed matches, then run a reconcile sweep.

    Runs at most once per AUTOPILOT_INTERVAL_SECONDS across all processes.
    """
    if not should_run(force):
        return {"ok": True, "skipped": True}

    settlement = settle_completed_matches()
    recon = reconcile(window_days=current_app.config.get("RECONCILE_WINDOW_DAYS", 7), actor="system:autopilot")

    return {
        "ok": True,
        "skipped": False,
        "settlement": settlement,
        "reconcile": recon,
    }
