"""Prize breakup generation.

Rows partition ranks 1..winner_count. Amounts are computed in whole cents:
each band floors its per-rank amounts and hands its own leftover cents to its
single-rank rows, so no band is paid out of another band's share and a
generated table sums to total_prize exactly. Rank 1 always equals
first_prize and every rank up to winner_count is paid at least one cent.

Large bands (more than 9 ranks) pay their top 9 ranks individually and group
the rest into ranges that roughly double in size. Group sizes for the
grouped remainder n:

    group_count = max(1, min(5, ceil(log2(n))))
    size_i      = floor(n * 2**i / (2**group_count - 1)), last group takes the rest
    empty groups are dropped

e.g. n=81 -> [2, 5, 10, 20, 44], n=5 -> [0, 1, 4] (first group dropped), n=1 -> [1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from crickpool.errors import DataIntegrityError, ValidationError

MAX_WINNER_COUNT = 50000
INDIVIDUAL_BAND_SIZE = 9
MAX_GROUPS = 5
CENTS = 100

# shares in percent of the prize left after rank 1
MEDIUM_TOP_SHARE = 70
SMALL_SECOND_SHARE = 60
MEGA_BANDS = ((2, 10, 25), (11, 100, 35), (101, None, 40))


@dataclass
class PrizeTier:
    rank_from: int
    rank_to: int
    amount: float
    percentage: int = 0

    @property
    def winners(self) -> int:
        return self.rank_to - self.rank_from + 1

    @property
    def total(self) -> float:
        return self.amount * self.winners

    @property
    def label(self) -> str:
        if self.rank_from == self.rank_to:
            return str(self.rank_from)
        return f"{self.rank_from}-{self.rank_to}"

    def contains(self, rank: int) -> bool:
        return self.rank_from <= rank <= self.rank_to

    def to_dict(self):
        return {
            "rank": self.rank_from if self.rank_from == self.rank_to else self.label,
            "rank_from": int(self.rank_from),
            "rank_to": int(self.rank_to),
            "amount": float(self.amount),
            "percentage": int(self.percentage),
        }


@dataclass
class _Row:
    rank_from: int
    size: int
    cents: int = 0


def _to_cents(value: float) -> int:
    return int(round(value * CENTS))


def _validate(total_prize, winner_count, first_prize) -> tuple[float, int, float]:
    try:
        total = float(total_prize)
        winners = int(winner_count)
        first = float(first_prize)
    except (TypeError, ValueError):
        raise ValidationError("total_prize, winner_count and first_prize must be numbers")

    if winners <= 0:
        raise ValidationError("Winner count must be greater than 0")
    if winners > MAX_WINNER_COUNT:
        raise ValidationError(f"Winner count cannot exceed {MAX_WINNER_COUNT}")
    if total <= 0:
        raise ValidationError("Total prize must be greater than 0")
    if first <= 0:
        raise ValidationError("First prize must be greater than 0")
    if first > total:
        raise ValidationError("First prize cannot exceed total prize")
    if winners == 1 and abs(first - total) > 0.005:
        raise ValidationError("First prize must equal total prize when there is a single winner")
    if winners > 1 and _to_cents(total) - _to_cents(first) < winners - 1:
        raise ValidationError("Prize left after first prize cannot pay every winner at least 0.01")
    return total, winners, first


def _paid(rows: list[_Row]) -> int:
    return sum(r.cents * r.size for r in rows)


def _spread(rows: list[_Row], cents: int) -> list[_Row]:
    """Hand a band's leftover cents to its single-rank rows, top rank first."""
    singles = [r for r in rows if r.size == 1]
    each, extra = divmod(cents, len(singles))
    for i, r in enumerate(singles):
        r.cents += each + (1 if i < extra else 0)
    return rows


def _linear(start: int, count: int, pool: int) -> list[_Row]:
    weight_sum = count * (count + 1) // 2
    rows = [_Row(start + i, 1, pool * (count - i) // weight_sum) for i in range(count)]
    return _spread(rows, pool - _paid(rows))


def group_sizes(count: int) -> list[int]:
    group_count = max(1, min(MAX_GROUPS, math.ceil(math.log2(count)) if count > 1 else 0))
    denom = 2 ** group_count - 1
    sizes = [math.floor(count * 2 ** i / denom) for i in range(group_count)]
    sizes[-1] += count - sum(sizes)
    return sizes


def _grouped(start: int, count: int, pool: int) -> list[_Row]:
    # (first rank, size, weight) for every row of the band
    slots = []
    for i in range(INDIVIDUAL_BAND_SIZE):
        slots.append((start + i, 1, 1 + (INDIVIDUAL_BAND_SIZE - i) / INDIVIDUAL_BAND_SIZE))

    sizes = group_sizes(count - INDIVIDUAL_BAND_SIZE)
    rank = start + INDIVIDUAL_BAND_SIZE
    for i, size in enumerate(sizes):
        if size <= 0:
            continue
        slots.append((rank, size, 1 - (i / len(sizes)) * 0.5))
        rank += size

    weight_total = sum(size * weight for _, size, weight in slots)
    rows = [_Row(first, size, math.floor(pool * weight / weight_total)) for first, size, weight in slots]
    return _spread(rows, pool - _paid(rows))


def _small(remainder: int, winners: int) -> list[_Row]:
    if winners == 2:
        return [_Row(2, 1, remainder)]
    second = remainder * SMALL_SECOND_SHARE // 100
    return [_Row(2, 1, second), _Row(3, 1, remainder - second)]


def _medium(remainder: int, winners: int) -> list[_Row]:
    top_count = min(INDIVIDUAL_BAND_SIZE, winners - 1)
    lower_count = winners - 1 - top_count
    if not lower_count:
        return _linear(2, top_count, remainder)

    top_pool = remainder * MEDIUM_TOP_SHARE // 100
    lower_pool = remainder - top_pool
    rows = _linear(2, top_count, top_pool)
    rows.append(_Row(2 + top_count, lower_count, lower_pool // lower_count))
    return _spread(rows, lower_pool - rows[-1].cents * lower_count)


def _mega(remainder: int, winners: int) -> list[_Row]:
    bands = []
    for start, end, share in MEGA_BANDS:
        end = winners if end is None else min(end, winners)
        if start > end:
            continue
        bands.append((start, end, share))
    share_total = sum(share for _, _, share in bands)

    rows = []
    allocated = 0
    for idx, (start, end, share) in enumerate(bands):
        if idx == len(bands) - 1:
            pool = remainder - allocated
        else:
            pool = remainder * share // share_total
        allocated += pool

        count = end - start + 1
        if count <= INDIVIDUAL_BAND_SIZE:
            rows.extend(_linear(start, count, pool))
        else:
            rows.extend(_grouped(start, count, pool))
    return rows


def _lift_unpaid(rows: list[_Row]) -> None:
    """Pay every zero-cent rank one cent, taken from the best-paid ranks.

    The best-paid rows are lowered to a common per-rank ceiling, the highest
    one that frees enough cents; any over-take goes back to rows at the
    ceiling, top rank first.
    """
    short = sum(r.size for r in rows if r.cents <= 0)
    if not short:
        return
    for r in rows:
        if r.cents <= 0:
            r.cents = 1

    def freed(ceiling: int) -> int:
        return sum((r.cents - ceiling) * r.size for r in rows if r.cents > ceiling)

    lo, hi = 1, max(r.cents for r in rows)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if freed(mid) >= short:
            lo = mid
        else:
            hi = mid - 1

    extra = freed(lo) - short
    if extra < 0:
        raise ValidationError("Prize left after first prize cannot pay every winner at least 0.01")
    for r in rows:
        r.cents = min(r.cents, lo)
    for r in rows:
        if extra and r.cents == lo and r.size <= extra:
            r.cents += 1
            extra -= r.size
    rows[0].cents += extra


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _assign_percentages(rows: list[PrizeTier], total: float) -> None:
    for row in rows:
        row.percentage = _round_half_up(row.total / total * 100)
    # display only; amounts are untouched
    rows[0].percentage += 100 - sum(row.percentage for row in rows)
    if rows[0].percentage >= 0:
        return

    over = -rows[0].percentage
    rows[0].percentage = 0
    for row in sorted(rows[1:], key=lambda r: r.percentage, reverse=True):
        take = min(over, row.percentage)
        row.percentage -= take
        over -= take
        if not over:
            break


def generate_tiers(total_prize, winner_count, first_prize, entry_fee=0.0) -> list[PrizeTier]:
    """Build the prize table for a contest.

    entry_fee is accepted for parity with contest creation and does not change
    the amounts.
    """
    total, winners, first = _validate(total_prize, winner_count, first_prize)
    first_cents = _to_cents(first)
    remainder = _to_cents(total) - first_cents

    if winners == 1:
        rows = []
    elif winners <= 3:
        rows = _small(remainder, winners)
    elif winners < 100:
        rows = _medium(remainder, winners)
    else:
        rows = _mega(remainder, winners)
    if rows:
        _lift_unpaid(rows)

    tiers = [PrizeTier(1, 1, first_cents / CENTS)]
    tiers.extend(PrizeTier(r.rank_from, r.rank_from + r.size - 1, r.cents / CENTS) for r in rows)
    _assign_percentages(tiers, total)
    return tiers


def sum_tolerance(tiers: Sequence[PrizeTier]) -> float:
    """Allowed drift between a table's sum and total_prize: one unit per row."""
    return float(max(1, len(tiers)))


def verify_tiers(tiers: Iterable[PrizeTier], winner_count: int, total_prize: float) -> None:
    rows = sorted(tiers, key=lambda t: (t.rank_from, t.rank_to))
    problems = []

    expected = 1
    for row in rows:
        if row.rank_to < row.rank_from:
            problems.append(f"row {row.label} has an inverted range")
            continue
        if row.rank_from > expected:
            problems.append(f"ranks {expected}-{row.rank_from - 1} are not covered")
        elif row.rank_from < expected:
            problems.append(f"row {row.label} overlaps ranks before {expected}")
        expected = max(expected, row.rank_to + 1)

    if expected - 1 < int(winner_count):
        problems.append(f"ranks {expected}-{int(winner_count)} are not covered")
    elif expected - 1 > int(winner_count):
        problems.append(f"breakup covers {expected - 1} ranks but winner count is {int(winner_count)}")

    paid = sum(row.total for row in rows)
    if abs(paid - float(total_prize)) > sum_tolerance(rows):
        problems.append(f"breakup pays {paid:.2f} but total prize is {float(total_prize):.2f}")

    if problems:
        raise DataIntegrityError(problems)


def prize_for_rank(tiers: Iterable[PrizeTier], rank: int) -> float:
    for tier in tiers:
        if tier.contains(rank):
            return float(tier.amount)
    return 0.0


def preview_prize_tiers(total_prize, winner_count, first_prize, entry_fee=0.0) -> dict:
    """Tiers plus coverage numbers for the contest-creation form. Nothing is stored."""
    tiers = generate_tiers(total_prize, winner_count, first_prize, entry_fee)
    distributed = round(sum(t.total for t in tiers), 2)
    covered = sum(t.winners for t in tiers)
    return {
        "prize_breakup": [t.to_dict() for t in tiers],
        "meta": {
            "total_prize_distribution": distributed,
            "total_winners_covered": covered,
            "prize_discrepancy": round(abs(distributed - float(total_prize)), 2),
            "winner_count_discrepancy": abs(covered - int(winner_count)),
        },
    }
