"""Fantasy points for one player's match statistics.

Everything here is pure: the same stat snapshot always scores the same, so
it is safe to recompute on every feed refresh while a match is live.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping

from crickpool.errors import ValidationError


class PlayerRole(str, Enum):
    BATSMAN = "BAT"
    BOWLER = "BOWL"
    ALL_ROUNDER = "AR"
    WICKET_KEEPER = "WK"


_ROLE_ALIASES = {
    "BAT": PlayerRole.BATSMAN,
    "BATSMAN": PlayerRole.BATSMAN,
    "BATTER": PlayerRole.BATSMAN,
    "BOWL": PlayerRole.BOWLER,
    "BOWLER": PlayerRole.BOWLER,
    "AR": PlayerRole.ALL_ROUNDER,
    "ALL-ROUNDER": PlayerRole.ALL_ROUNDER,
    "ALLROUNDER": PlayerRole.ALL_ROUNDER,
    "WK": PlayerRole.WICKET_KEEPER,
    "WICKET-KEEPER": PlayerRole.WICKET_KEEPER,
    "WICKETKEEPER": PlayerRole.WICKET_KEEPER,
}

# Must list every PlayerRole; a missing role fails loudly with KeyError.
DUCK_PENALTY_APPLIES = {
    PlayerRole.BATSMAN: True,
    PlayerRole.ALL_ROUNDER: True,
    PlayerRole.WICKET_KEEPER: True,
    PlayerRole.BOWLER: False,
}

BATTING_POINTS = {
    "run": 1.0,
    "four_bonus": 1.0,
    "six_bonus": 2.0,
    "half_century": 4.0,
    "century": 8.0,
    "duck": -2.0,
}
STRIKE_RATE_MIN_BALLS = 20

BOWLING_POINTS = {
    "wicket": 25.0,
    "lbw_bowled_bonus": 8.0,
    "maiden": 12.0,
    "three_wickets": 4.0,
    "four_wickets": 8.0,
    "five_wickets": 16.0,
}
ECONOMY_MIN_OVERS = 2

FIELDING_POINTS = {
    "catch": 8.0,
    "stumping": 12.0,
    "run_out_direct": 12.0,
    "run_out_indirect": 6.0,
}

CAPTAIN_MULTIPLIER = 2.0
VICE_CAPTAIN_MULTIPLIER = 1.5


def parse_role(raw) -> PlayerRole:
    if isinstance(raw, PlayerRole):
        return raw
    key = (str(raw or "")).strip().upper().replace("_", "-").replace(" ", "-")
    role = _ROLE_ALIASES.get(key)
    if role is None:
        raise ValidationError(f"Unknown player role: {raw!r}")
    return role


@dataclass(frozen=True)
class StatLine:
    """Feed-independent view of one player's match statistics."""

    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    wickets: int = 0
    lbw_bowled_wickets: int = 0
    overs_bowled: float = 0.0
    maidens: int = 0
    runs_conceded: int = 0
    catches: int = 0
    stumpings: int = 0
    run_outs_direct: int = 0
    run_outs_indirect: int = 0

    @classmethod
    def from_row(cls, row) -> "StatLine":
        """Build from a PlayerMatchStat row (or any object with the same attributes)."""
        return cls(
            runs=int(getattr(row, "runs", 0) or 0),
            balls_faced=int(getattr(row, "balls_faced", 0) or 0),
            fours=int(getattr(row, "fours", 0) or 0),
            sixes=int(getattr(row, "sixes", 0) or 0),
            is_out=bool(getattr(row, "is_out", False)),
            wickets=int(getattr(row, "wickets", 0) or 0),
            lbw_bowled_wickets=int(getattr(row, "lbw_bowled_wickets", 0) or 0),
            overs_bowled=float(getattr(row, "overs_bowled", 0.0) or 0.0),
            maidens=int(getattr(row, "maidens", 0) or 0),
            runs_conceded=int(getattr(row, "runs_conceded", 0) or 0),
            catches=int(getattr(row, "catches", 0) or 0),
            stumpings=int(getattr(row, "stumpings", 0) or 0),
            run_outs_direct=int(getattr(row, "run_outs_direct", 0) or 0),
            run_outs_indirect=int(getattr(row, "run_outs_indirect", 0) or 0),
        )


def batting_points(stat: StatLine, role: PlayerRole) -> float:
    runs = stat.runs
    balls = stat.balls_faced

    points = runs * BATTING_POINTS["run"]
    points += stat.fours * BATTING_POINTS["four_bonus"]
    points += stat.sixes * BATTING_POINTS["six_bonus"]

    if runs >= 100:
        points += BATTING_POINTS["century"]
    elif runs >= 50:
        points += BATTING_POINTS["half_century"]

    if runs == 0 and stat.is_out and balls > 0 and DUCK_PENALTY_APPLIES[role]:
        points += BATTING_POINTS["duck"]

    if balls >= STRIKE_RATE_MIN_BALLS:
        strike_rate = runs / balls * 100
        if strike_rate > 120:
            points += 2.0
        elif strike_rate > 100:
            points += 1.0
        elif 60 <= strike_rate < 70:
            points -= 2.0
        elif 70 <= strike_rate < 80:
            points -= 1.0

    return points


def bowling_points(stat: StatLine) -> float:
    wickets = stat.wickets

    points = wickets * BOWLING_POINTS["wicket"]
    points += stat.lbw_bowled_wickets * BOWLING_POINTS["lbw_bowled_bonus"]
    points += stat.maidens * BOWLING_POINTS["maiden"]

    if wickets >= 5:
        points += BOWLING_POINTS["five_wickets"]
    elif wickets >= 4:
        points += BOWLING_POINTS["four_wickets"]
    elif wickets >= 3:
        points += BOWLING_POINTS["three_wickets"]

    overs = stat.overs_bowled
    if overs >= ECONOMY_MIN_OVERS:
        economy = stat.runs_conceded / overs
        if economy < 5:
            points += 6.0
        elif economy < 6:
            points += 4.0
        elif economy < 7:
            points += 2.0
        elif economy > 11:
            points -= 6.0
        elif economy > 10:
            points -= 4.0
        elif economy > 9:
            points -= 2.0

    return points


def fielding_points(stat: StatLine) -> float:
    return (
        stat.catches * FIELDING_POINTS["catch"]
        + stat.stumpings * FIELDING_POINTS["stumping"]
        + stat.run_outs_direct * FIELDING_POINTS["run_out_direct"]
        + stat.run_outs_indirect * FIELDING_POINTS["run_out_indirect"]
    )


def compute_points(stat, role, is_captain: bool = False, is_vice_captain: bool = False) -> float:
    """Total fantasy points for one player.

    `stat` may be a StatLine or a PlayerMatchStat row; `role` a PlayerRole or
    its string code. The captain/vice-captain multiplier applies to the sum of
    batting, bowling and fielding points. Captain wins if both flags are set.
    """
    line = stat if isinstance(stat, StatLine) else StatLine.from_row(stat)
    player_role = parse_role(role)

    total = batting_points(line, player_role) + bowling_points(line) + fielding_points(line)

    if is_captain:
        total *= CAPTAIN_MULTIPLIER
    elif is_vice_captain:
        total *= VICE_CAPTAIN_MULTIPLIER
    return total


@dataclass(frozen=True)
class Selection:
    player_id: int
    role: PlayerRole
    is_captain: bool = False
    is_vice_captain: bool = False


def team_points(selections: Iterable[Selection], stats: Mapping[int, object]) -> float:
    """Sum of player points for a fantasy team. Players without stats score 0."""
    total = 0.0
    for sel in selections:
        stat = stats.get(sel.player_id)
        if stat is None:
            continue
        total += compute_points(stat, sel.role, sel.is_captain, sel.is_vice_captain)
    return total
