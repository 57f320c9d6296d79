import pytest

from crickpool.errors import ValidationError
from crickpool.utils.points import (
    DUCK_PENALTY_APPLIES,
    PlayerRole,
    Selection,
    StatLine,
    compute_points,
    parse_role,
    team_points,
)


def test_batting_bonuses_use_highest_milestone_only():
    stat = StatLine(runs=104, balls_faced=0, fours=10, sixes=3)
    # 104 runs + 10 fours + 3 sixes * 2 + century 8
    assert compute_points(stat, PlayerRole.BATSMAN) == 104 + 10 + 6 + 8


def test_half_century_bonus():
    assert compute_points(StatLine(runs=50), "BAT") == 54


def test_duck_penalty_by_role():
    duck = StatLine(runs=0, balls_faced=3, is_out=True)
    assert compute_points(duck, "BAT") == -2
    assert compute_points(duck, "AR") == -2
    assert compute_points(duck, "WK") == -2
    assert compute_points(duck, "BOWL") == 0


def test_no_duck_without_facing_a_ball():
    run_out_first_ball = StatLine(runs=0, balls_faced=0, is_out=True)
    assert compute_points(run_out_first_ball, "BAT") == 0


def test_duck_table_covers_every_role():
    assert set(DUCK_PENALTY_APPLIES) == set(PlayerRole)


def test_strike_rate_needs_twenty_balls():
    assert compute_points(StatLine(runs=40, balls_faced=19), "BAT") == 40
    # SR 200
    assert compute_points(StatLine(runs=40, balls_faced=20), "BAT") == 42


@pytest.mark.parametrize(
    "runs,balls,modifier",
    [
        (25, 20, 2),    # SR 125
        (24, 20, 1),    # SR 120
        (21, 20, 1),    # SR 105
        (20, 20, 0),    # SR 100
        (16, 20, 0),    # SR 80
        (15, 20, -1),   # SR 75
        (12, 20, -2),   # SR 60
        (11, 20, 0),    # SR 55
    ],
)
def test_strike_rate_bands(runs, balls, modifier):
    assert compute_points(StatLine(runs=runs, balls_faced=balls), "BAT") == runs + modifier


def test_bowling_haul_and_bonuses():
    stat = StatLine(wickets=5, lbw_bowled_wickets=2, maidens=1, overs_bowled=4, runs_conceded=30)
    # 5*25 + 2*8 + 12 + five-wicket 16; economy 7.5 -> no modifier
    assert compute_points(stat, "BOWL") == 125 + 16 + 12 + 16


@pytest.mark.parametrize(
    "overs,conceded,modifier",
    [
        (4, 16, 6),     # 4.0
        (4, 22, 4),     # 5.5
        (4, 26, 2),     # 6.5
        (4, 30, 0),     # 7.5
        (4, 38, -2),    # 9.5
        (4, 42, -4),    # 10.5
        (4, 46, -6),    # 11.5
    ],
)
def test_economy_bands(overs, conceded, modifier):
    assert compute_points(StatLine(overs_bowled=overs, runs_conceded=conceded), "BOWL") == modifier


def test_economy_needs_two_overs():
    assert compute_points(StatLine(overs_bowled=1.5, runs_conceded=30), "BOWL") == 0


def test_fielding_points():
    stat = StatLine(catches=2, stumpings=1, run_outs_direct=1, run_outs_indirect=1)
    assert compute_points(stat, "WK") == 16 + 12 + 12 + 6


def test_multiplier_applies_to_the_sum():
    stat = StatLine(runs=30, wickets=1, catches=1)
    base = 30 + 25 + 8
    assert compute_points(stat, "AR", is_captain=True) == base * 2
    assert compute_points(stat, "AR", is_vice_captain=True) == base * 1.5
    assert compute_points(stat, "AR", is_captain=True, is_vice_captain=True) == base * 2


def test_negative_total_is_multiplied_too():
    duck = StatLine(runs=0, balls_faced=1, is_out=True)
    assert compute_points(duck, "BAT", is_captain=True) == -4


def test_compute_points_is_deterministic():
    stat = StatLine(runs=37, balls_faced=29, fours=4, sixes=1, wickets=2, overs_bowled=3, runs_conceded=20, catches=1)
    first = compute_points(stat, "AR", is_vice_captain=True)
    assert all(compute_points(stat, "AR", is_vice_captain=True) == first for _ in range(50))


def test_parse_role_aliases_and_unknown():
    assert parse_role("bat") is PlayerRole.BATSMAN
    assert parse_role("All Rounder") is PlayerRole.ALL_ROUNDER
    assert parse_role("wicket_keeper") is PlayerRole.WICKET_KEEPER
    with pytest.raises(ValidationError):
        parse_role("COACH")


def test_team_points_skips_players_without_stats():
    selections = [
        Selection(player_id=1, role=PlayerRole.BATSMAN, is_captain=True),
        Selection(player_id=2, role=PlayerRole.BOWLER, is_vice_captain=True),
        Selection(player_id=3, role=PlayerRole.WICKET_KEEPER),
    ]
    stats = {1: StatLine(runs=10), 2: StatLine(wickets=1)}
    assert team_points(selections, stats) == 10 * 2 + 25 * 1.5
