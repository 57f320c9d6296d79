"""contest settlement schema

Revision ID: 3f9a1c2b7d40
Revises:
Create Date: 2026-10-17 09:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f9a1c2b7d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'matches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_matches_status', 'matches', ['status'], unique=False)
    op.create_index('ix_matches_completed_at', 'matches', ['completed_at'], unique=False)

    op.create_table(
        'players',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('role', sa.String(length=8), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'player_match_stats',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('runs', sa.Integer(), nullable=False),
        sa.Column('balls_faced', sa.Integer(), nullable=False),
        sa.Column('fours', sa.Integer(), nullable=False),
        sa.Column('sixes', sa.Integer(), nullable=False),
        sa.Column('is_out', sa.Boolean(), nullable=False),
        sa.Column('wickets', sa.Integer(), nullable=False),
        sa.Column('lbw_bowled_wickets', sa.Integer(), nullable=False),
        sa.Column('overs_bowled', sa.Float(), nullable=False),
        sa.Column('maidens', sa.Integer(), nullable=False),
        sa.Column('runs_conceded', sa.Integer(), nullable=False),
        sa.Column('catches', sa.Integer(), nullable=False),
        sa.Column('stumpings', sa.Integer(), nullable=False),
        sa.Column('run_outs_direct', sa.Integer(), nullable=False),
        sa.Column('run_outs_indirect', sa.Integer(), nullable=False),
        sa.Column('snapshot_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id']),
        sa.ForeignKeyConstraint(['player_id'], ['players.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('match_id', 'player_id', name='uq_player_match_stats_match_player'),
    )
    op.create_index('ix_player_match_stats_match_id', 'player_match_stats', ['match_id'], unique=False)
    op.create_index('ix_player_match_stats_player_id', 'player_match_stats', ['player_id'], unique=False)

    op.create_table(
        'fantasy_teams',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_fantasy_teams_user_id', 'fantasy_teams', ['user_id'], unique=False)
    op.create_index('ix_fantasy_teams_match_id', 'fantasy_teams', ['match_id'], unique=False)

    op.create_table(
        'fantasy_team_players',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('team_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_captain', sa.Boolean(), nullable=False),
        sa.Column('is_vice_captain', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['player_id'], ['players.id']),
        sa.ForeignKeyConstraint(['team_id'], ['fantasy_teams.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'player_id', name='uq_fantasy_team_players_team_player'),
    )
    op.create_index('ix_fantasy_team_players_team_id', 'fantasy_team_players', ['team_id'], unique=False)

    op.create_table(
        'contests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('match_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('entry_fee', sa.Float(), nullable=False),
        sa.Column('total_prize', sa.Float(), nullable=False),
        sa.Column('winner_count', sa.Integer(), nullable=False),
        sa.Column('first_prize', sa.Float(), nullable=False),
        sa.Column('ranked_at', sa.DateTime(), nullable=True),
        sa.Column('settled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['match_id'], ['matches.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contests_match_id', 'contests', ['match_id'], unique=False)

    op.create_table(
        'contest_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('contest_id', sa.Integer(), nullable=False),
        sa.Column('fantasy_team_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('points', sa.Float(), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('win_amount', sa.Float(), nullable=True),
        sa.Column('settlement_status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id']),
        sa.ForeignKeyConstraint(['fantasy_team_id'], ['fantasy_teams.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('contest_id', 'fantasy_team_id', name='uq_contest_entries_contest_team'),
    )
    op.create_index('ix_contest_entries_contest_id', 'contest_entries', ['contest_id'], unique=False)
    op.create_index('ix_contest_entries_fantasy_team_id', 'contest_entries', ['fantasy_team_id'], unique=False)
    op.create_index('ix_contest_entries_user_id', 'contest_entries', ['user_id'], unique=False)
    op.create_index('ix_contest_entries_settlement_status', 'contest_entries', ['settlement_status'], unique=False)

    op.create_table(
        'prize_breakups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('contest_id', sa.Integer(), nullable=False),
        sa.Column('rank_from', sa.Integer(), nullable=False),
        sa.Column('rank_to', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('percentage', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_prize_breakups_contest_id', 'prize_breakups', ['contest_id'], unique=False)

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_wallets_user_id', 'wallets', ['user_id'], unique=True)

    op.create_table(
        'wallet_txns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('wallet_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('direction', sa.String(length=8), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('reference', sa.String(length=120), nullable=True),
        sa.Column('idempotency_key', sa.String(length=160), nullable=True),
        sa.Column('contest_id', sa.Integer(), nullable=True),
        sa.Column('entry_id', sa.Integer(), nullable=True),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.Column('note', sa.String(length=240), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id']),
        sa.ForeignKeyConstraint(['entry_id'], ['contest_entries.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('kind', 'contest_id', 'entry_id', name='uq_wallet_txns_kind_contest_entry'),
    )
    op.create_index('ix_wallet_txns_wallet_id', 'wallet_txns', ['wallet_id'], unique=False)
    op.create_index('ix_wallet_txns_user_id', 'wallet_txns', ['user_id'], unique=False)
    op.create_index('ix_wallet_txns_reference', 'wallet_txns', ['reference'], unique=False)
    op.create_index('ix_wallet_txns_idempotency_key', 'wallet_txns', ['idempotency_key'], unique=True)
    op.create_index('ix_wallet_txns_contest_id', 'wallet_txns', ['contest_id'], unique=False)
    op.create_index('ix_wallet_txns_entry_id', 'wallet_txns', ['entry_id'], unique=False)

    op.create_table(
        'settlement_failures',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.Integer(), nullable=False),
        sa.Column('contest_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('error_type', sa.String(length=64), nullable=False),
        sa.Column('error', sa.String(length=240), nullable=True),
        sa.Column('attempt_count', sa.Integer(), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('processed_by', sa.String(length=64), nullable=True),
        sa.Column('resolution', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id']),
        sa.ForeignKeyConstraint(['entry_id'], ['contest_entries.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_settlement_failures_entry_id', 'settlement_failures', ['entry_id'], unique=False)
    op.create_index('ix_settlement_failures_contest_id', 'settlement_failures', ['contest_id'], unique=False)
    op.create_index('ix_settlement_failures_user_id', 'settlement_failures', ['user_id'], unique=False)
    op.create_index('ix_settlement_failures_processed', 'settlement_failures', ['processed'], unique=False)

    op.create_table(
        'job_leases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('owner', sa.String(length=128), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('target_type', sa.String(length=64), nullable=True),
        sa.Column('target_id', sa.Integer(), nullable=True),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'], unique=False)


def downgrade():
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('job_leases')
    op.drop_table('settlement_failures')
    op.drop_table('wallet_txns')
    op.drop_table('wallets')
    op.drop_table('prize_breakups')
    op.drop_table('contest_entries')
    op.drop_table('contests')
    op.drop_table('fantasy_team_players')
    op.drop_table('fantasy_teams')
    op.drop_table('player_match_stats')
    op.drop_table('players')
    op.drop_table('matches')
    op.drop_table('users')
