from __future__ import annotations

import json

import click
from flask import current_app


def _echo(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def register_cli(app) -> None:
    @app.cli.command("settle-contest")
    @click.argument("contest_id", type=int)
    def settle_contest_cmd(contest_id):
        """Rank a contest and credit its winners."""
        from crickpool.jobs.contest_settlement import settle_contest

        _echo(settle_contest(contest_id))

    @app.cli.command("reconcile")
    @click.option("--window-days", type=int, default=None, help="Defaults to RECONCILE_WINDOW_DAYS.")
    @click.option("--all", "scan_all", is_flag=True, help="Scan every completed match.")
    def reconcile_cmd(window_days, scan_all):
        """Replay failures, credit missed wins and audit wallets."""
        from crickpool.jobs.reconciler import reconcile

        if scan_all:
            window_days = None
        elif window_days is None:
            window_days = current_app.config.get("RECONCILE_WINDOW_DAYS", 7)
        _echo(reconcile(window_days=window_days, actor="cli:reconcile"))

    @app.cli.command("preview-tiers")
    @click.argument("total_prize", type=float)
    @click.argument("winner_count", type=int)
    @click.argument("first_prize", type=float)
    @click.option("--entry-fee", type=float, default=0.0)
    def preview_tiers_cmd(total_prize, winner_count, first_prize, entry_fee):
        """Print the prize breakup for the given numbers."""
        from crickpool.utils.prize_tiers import preview_prize_tiers

        _echo(preview_prize_tiers(total_prize, winner_count, first_prize, entry_fee))

    @app.cli.command("audit-wallets")
    @click.option("--repair", is_flag=True, help="Reset mismatched balances to the ledger sum.")
    def audit_wallets_cmd(repair):
        from crickpool.jobs.wallet_reconciler import audit_wallets

        _echo(audit_wallets(repair=repair, actor="cli:audit_wallets"))

    @app.cli.command("autopilot-tick")
    def autopilot_tick_cmd():
        from crickpool.jobs.autopilot import tick

        _echo(tick(force=True))
