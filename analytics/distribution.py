"""
analytics.distribution

Distribution statistics over a final balance set. Pure computation, no I/O.

Holders are ranked by balance (descending, ties by address) after dropping
dust. Buckets are rank ranges expressed in percent of the holder count, so
"0-10%" is the richest tenth of holders, not the holders of the first tenth
of supply.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Sequence, Tuple

from analytics.models import DistributionBucket

log = logging.getLogger(__name__)

DUST_THRESHOLD = Decimal("0.01")
DEFAULT_BUCKETS: Tuple[Tuple[int, int], ...] = ((0, 10), (10, 25), (25, 50), (50, 80), (80, 100))
TOP_N = 10

_CENTS = Decimal("0.01")
ZERO = Decimal(0)


def _cents(v: Decimal) -> Decimal:
    return v.quantize(_CENTS, rounding=ROUND_HALF_UP)


def rank_holders(balances: Iterable[Tuple[str, Decimal]], dust_threshold: Decimal = DUST_THRESHOLD) -> List[Tuple[str, Decimal]]:
    """Balances strictly above the dust threshold, richest first."""
    kept = [(a, Decimal(b)) for a, b in balances if Decimal(b) > dust_threshold]
    kept.sort(key=lambda x: (-x[1], x[0]))
    return kept


def median(sorted_values: Sequence[Decimal]) -> Decimal:
    n = len(sorted_values)
    if n == 0:
        return ZERO
    mid = n // 2
    if n % 2:
        return sorted_values[mid]
    return (sorted_values[mid - 1] + sorted_values[mid]) / 2


def gini_hhi(values: Sequence[Decimal]) -> Tuple[float, float]:
    arr = [float(v) for v in values if v > 0]
    n = len(arr)
    total = sum(arr)
    if n == 0 or total == 0:
        return 0.0, 0.0
    hhi = sum((x / total) ** 2 for x in arr)
    cum = 0.0
    bsum = 0.0
    for x in sorted(arr):
        cum += x
        bsum += cum
    gini = 1.0 - 2.0 * (bsum / (n * total)) + 1.0 / n
    return max(0.0, gini), hhi


def top_concentration_pct(ranked: Sequence[Tuple[str, Decimal]], total_supply: Decimal, top_n: int = TOP_N) -> float:
    """
    Share of total supply held by the top N balances, in percent. The
    denominator is the unfiltered total supply. A partial scan can credit
    more than the supply to its top holders; the result is clamped to 100.
    """
    if total_supply is None or total_supply <= 0:
        return 0.0
    top = sum((b for _, b in ranked[:top_n]), ZERO)
    pct = float(_cents(top / total_supply * 100))
    if pct > 100.0:
        log.warning("Top %d holders exceed total supply (%.2f%%), clamping to 100", top_n, pct)
        return 100.0
    return max(0.0, pct)


@dataclass(frozen=True)
class DistributionSummary:
    holders: Tuple[Tuple[str, Decimal], ...]
    holder_count: int
    total_balance: Decimal
    average_balance: Decimal
    median_balance: Decimal
    buckets: Tuple[DistributionBucket, ...]
    gini: float
    hhi: float


class DistributionAnalyzer:
    def __init__(
        self,
        dust_threshold: Decimal = DUST_THRESHOLD,
        bucket_ranges: Sequence[Tuple[int, int]] = DEFAULT_BUCKETS,
    ):
        self.dust_threshold = Decimal(dust_threshold)
        self.bucket_ranges = tuple((int(lo), int(hi)) for lo, hi in bucket_ranges)
        edge = 0
        for lo, hi in self.bucket_ranges:
            if lo != edge or hi <= lo:
                raise ValueError("bucket ranges must be contiguous and ascending from 0")
            edge = hi
        if edge != 100:
            raise ValueError("bucket ranges must end at 100")

    def buckets(self, ranked: Sequence[Tuple[str, Decimal]]) -> Tuple[DistributionBucket, ...]:
        n = len(ranked)
        total = sum((b for _, b in ranked), ZERO)
        out = []
        for lo, hi in self.bucket_ranges:
            start, end = lo * n // 100, hi * n // 100
            cumulative = sum((b for _, b in ranked[start:end]), ZERO)
            pct = float(cumulative / total * 100) if total > 0 else 0.0
            out.append(DistributionBucket(
                label=f"{lo}-{hi}%",
                holder_count=end - start,
                cumulative_balance=cumulative,
                percent_of_supply=pct,
            ))
        return tuple(out)

    def analyze(self, balances: Iterable[Tuple[str, Decimal]], total_supply: Decimal = ZERO) -> DistributionSummary:
        """
        `total_supply` is accepted for symmetry with the report; bucket shares
        are relative to the filtered balance total.
        """
        ranked = rank_holders(balances, self.dust_threshold)
        n = len(ranked)
        values = [b for _, b in ranked]
        total = sum(values, ZERO)
        average = _cents(total / n) if n else ZERO
        gini, hhi = gini_hhi(values)
        return DistributionSummary(
            holders=tuple(ranked),
            holder_count=n,
            total_balance=total,
            average_balance=average,
            median_balance=_cents(median(values)),
            buckets=self.buckets(ranked),
            gini=gini,
            hhi=hhi,
        )


__all__ = [
    "DUST_THRESHOLD",
    "DEFAULT_BUCKETS",
    "TOP_N",
    "DistributionAnalyzer",
    "DistributionSummary",
    "rank_holders",
    "median",
    "gini_hhi",
    "top_concentration_pct",
]
