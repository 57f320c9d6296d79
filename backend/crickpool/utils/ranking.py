from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Sequence

from crickpool.utils.prize_tiers import PrizeTier, prize_for_rank


@dataclass(frozen=True)
class RankInput:
    entry_id: int
    points: float
    created_at: datetime


@dataclass(frozen=True)
class RankedEntry:
    entry_id: int
    points: float
    rank: int
    win_amount: float = 0.0


def rank_entries(entries: Iterable[RankInput]) -> list[RankedEntry]:
    """Strict total order: points desc, then earliest join, then lowest id.

    Equal points never share a rank; the earlier entry ranks better.
    """
    ordered = sorted(entries, key=lambda e: (-float(e.points or 0.0), e.created_at, e.entry_id))
    return [RankedEntry(entry_id=e.entry_id, points=float(e.points or 0.0), rank=i + 1) for i, e in enumerate(ordered)]


def assign_prizes(ranked: Sequence[RankedEntry], tiers: Sequence[PrizeTier], winner_count: int) -> list[RankedEntry]:
    out = []
    for r in ranked:
        amount = prize_for_rank(tiers, r.rank) if r.rank <= int(winner_count) else 0.0
        out.append(RankedEntry(entry_id=r.entry_id, points=r.points, rank=r.rank, win_amount=float(amount)))
    return out
