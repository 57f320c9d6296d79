from datetime import datetime, timedelta

from crickpool.utils.prize_tiers import generate_tiers
from crickpool.utils.ranking import RankInput, assign_prizes, rank_entries

T0 = datetime(2026, 3, 1, 12, 0, 0)


def test_tied_points_rank_by_join_time():
    ranked = rank_entries([
        RankInput(entry_id=2, points=120, created_at=T0 + timedelta(seconds=5)),
        RankInput(entry_id=1, points=120, created_at=T0),
    ])
    assert [(r.entry_id, r.rank) for r in ranked] == [(1, 1), (2, 2)]


def test_same_join_time_falls_back_to_id():
    ranked = rank_entries([
        RankInput(entry_id=9, points=50, created_at=T0),
        RankInput(entry_id=4, points=50, created_at=T0),
    ])
    assert [r.entry_id for r in ranked] == [4, 9]


def test_higher_points_rank_better_and_ranks_are_dense():
    entries = [
        RankInput(entry_id=i, points=p, created_at=T0 + timedelta(seconds=i))
        for i, p in enumerate([10, 95.5, 40, 95, 0, 61])
    ]
    ranked = rank_entries(entries)
    assert [r.rank for r in ranked] == [1, 2, 3, 4, 5, 6]
    assert [r.points for r in ranked] == [95.5, 95, 61, 40, 10, 0]


def test_assign_prizes_pays_only_within_winner_count():
    tiers = generate_tiers(10000, 3, 5000)
    ranked = rank_entries(
        RankInput(entry_id=i, points=100 - i, created_at=T0) for i in range(1, 6)
    )
    paid = assign_prizes(ranked, tiers, 3)
    assert [r.win_amount for r in paid] == [5000, 3000, 2000, 0, 0]
