import random
from decimal import Decimal

import pytest

from analytics.distribution import (
    DistributionAnalyzer, gini_hhi, median, rank_holders, top_concentration_pct,
)

D = Decimal


def _bals(*values):
    return [(f"0x{i:02x}", D(v)) for i, v in enumerate(values)]


def test_median_odd_and_even():
    a = DistributionAnalyzer()
    assert a.analyze(_bals(100, 50, 25)).median_balance == 50
    assert a.analyze(_bals(100, 60, 40, 20)).median_balance == 50
    assert median([]) == 0


def test_analysis_is_order_independent():
    vals = _bals(5, 900, 12, 12, 300, 1, 77)
    shuffled = list(vals)
    random.Random(3).shuffle(shuffled)
    a = DistributionAnalyzer()
    assert a.analyze(vals) == a.analyze(shuffled)


def test_dust_is_excluded():
    s = DistributionAnalyzer().analyze(_bals(100, "0.01", "0.009", 0, -5, "0.02"))
    assert s.holder_count == 2
    assert s.total_balance == D("100.02")
    assert [b for _, b in s.holders] == [D(100), D("0.02")]


def test_dust_threshold_monotonicity():
    rng = random.Random(11)
    bals = [(f"0x{i:03x}", D(rng.randint(-1000, 100000)) / 100) for i in range(300)]
    counts = [DistributionAnalyzer(D(t)).analyze(bals).holder_count
              for t in ("0", "0.01", "1", "10", "100", "999")]
    assert counts == sorted(counts, reverse=True)


@pytest.mark.parametrize("n", [0, 1, 2, 3, 7, 9, 10, 11, 33, 101])
def test_buckets_partition_holders(n):
    s = DistributionAnalyzer().analyze(_bals(*range(1, n + 1)))
    assert [b.label for b in s.buckets] == ["0-10%", "10-25%", "25-50%", "50-80%", "80-100%"]
    assert sum(b.holder_count for b in s.buckets) == n
    assert sum(b.cumulative_balance for b in s.buckets) == s.total_balance
    if n:
        assert sum(b.percent_of_supply for b in s.buckets) == pytest.approx(100.0)
    else:
        assert all(b.percent_of_supply == 0.0 for b in s.buckets)


def test_bucket_contents_for_ten_holders():
    s = DistributionAnalyzer().analyze(_bals(*range(10, 0, -1)))  # 10..1, total 55
    by = {b.label: b for b in s.buckets}
    assert by["0-10%"].holder_count == 1
    assert by["0-10%"].cumulative_balance == 10
    assert by["10-25%"].holder_count == 1          # ranks 1..1 (floor(2.5) = 2)
    assert by["25-50%"].holder_count == 3
    assert by["50-80%"].holder_count == 3
    assert by["80-100%"].holder_count == 2
    assert by["0-10%"].percent_of_supply == pytest.approx(10 / 55 * 100)


def test_average_rounded_to_cents():
    s = DistributionAnalyzer().analyze(_bals(600, 300, 100))
    assert s.average_balance == D("333.33")
    assert s.median_balance == 300


def test_empty_analysis():
    s = DistributionAnalyzer().analyze([])
    assert s.holder_count == 0
    assert s.average_balance == 0
    assert s.median_balance == 0
    assert (s.gini, s.hhi) == (0.0, 0.0)


def test_bucket_ranges_must_partition():
    with pytest.raises(ValueError):
        DistributionAnalyzer(bucket_ranges=[(0, 10), (20, 100)])
    with pytest.raises(ValueError):
        DistributionAnalyzer(bucket_ranges=[(0, 50), (50, 90)])


def test_top_concentration_bounds():
    ranked = rank_holders(_bals(*range(1, 30)))
    total = sum(b for _, b in ranked)
    assert top_concentration_pct(ranked, total) == pytest.approx(
        float(sum(range(20, 30)) / total * 100), abs=0.01)
    assert top_concentration_pct(ranked, D(0)) == 0.0
    # a partial scan can credit more than the supply; stays within [0, 100]
    assert top_concentration_pct(ranked, D(10)) == 100.0
    for supply in (1, 50, 435, 10**6):
        assert 0.0 <= top_concentration_pct(ranked, D(supply)) <= 100.0


def test_top_concentration_uses_unfiltered_supply():
    ranked = rank_holders(_bals(600, 300, 100))
    assert top_concentration_pct(ranked, D(2000)) == 50.0


def test_gini_hhi_extremes():
    g, h = gini_hhi([D(5)] * 4)
    assert g == pytest.approx(0.0, abs=1e-9)
    assert h == pytest.approx(0.25)
    g, h = gini_hhi([D(100)])
    assert h == 1.0
