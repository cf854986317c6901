"""
Tests for median, MAD and threshold binning helpers.
"""

import math
import random

import pytest

from cluster_tree.analytics.distribution_statistics import (
    DegenerateDistributionError,
    get_mad,
    get_mad_groups,
    get_mad_multiple_count,
    get_plain_groups,
    get_threshold_sweep,
    median,
    nice_ticks,
    nonzero,
)


def test_median_and_mad_ignore_missing_values():
    values = [1, None, 2, float("nan"), 3, 4, 10]
    assert median(values) == 3.0
    assert get_mad(values) == 1.0


def test_empty_sets_have_no_median_or_mad():
    assert median([]) is None
    assert get_mad([None]) is None


def test_nonzero_drops_zero_and_missing():
    assert nonzero([0, 1.5, None, 0.0, 2]) == [1.5, 2.0]


def test_nice_ticks_unit_steps():
    assert nice_ticks(0, 10, 10) == [float(i) for i in range(11)]


def test_nice_ticks_degenerate_ranges():
    assert nice_ticks(3, 3, 5) == [3.0]
    assert nice_ticks(5, 1, 5) == []
    assert nice_ticks(0, 1, 0) == []
    assert nice_ticks(0, float("inf"), 5) == []


@pytest.mark.parametrize("start,stop,count", [(0, 7.3, 50), (1, 100, 25), (0.5, 0.9, 10), (0, 1234, 50)])
def test_nice_ticks_are_round_and_inside_range(start, stop, count):
    ticks = nice_ticks(start, stop, count)

    assert ticks == sorted(ticks)
    assert all(start <= t <= stop for t in ticks)
    assert 2 <= len(ticks) <= count + 1

    step = ticks[1] - ticks[0]
    mantissa = step / 10 ** math.floor(math.log10(step))
    assert any(math.isclose(mantissa, m, rel_tol=1e-6) for m in (1, 2, 5, 10))


def test_plain_groups_count_values_above_each_threshold():
    assert get_plain_groups([1, 2, 3, 4, 5], bin_count=4) == {1.0: 4, 2.0: 3, 3.0: 2, 4.0: 1, 5.0: 0}
    assert get_plain_groups([]) == {}


def test_mad_groups_use_integer_multiples():
    values = [1, 2, 3, 4, 10]
    groups = get_mad_groups(values, get_mad(values), median(values))
    assert groups == {0: 2, 1: 1, 2: 1, 3: 1, 4: 1, 5: 1, 6: 1, 7: 0}


def test_mad_groups_cap_number_of_bins():
    values = list(range(1, 11)) + [1000]
    groups = get_mad_groups(values, get_mad(values), median(values), max_bins=10)

    assert 0 < len(groups) <= 11
    assert groups[0] == 5


def test_zero_mad_falls_back_to_single_bin():
    assert get_mad_groups([2, 2, 2, 5], 0.0, 2.0) == {0: 1}
    assert get_mad_groups([], 1.0, None) == {}


def test_mad_multiple_count():
    assert get_mad_multiple_count(10, 3, 2) == 4
    with pytest.raises(DegenerateDistributionError):
        get_mad_multiple_count(10, 3, 0)
    with pytest.raises(DegenerateDistributionError):
        get_mad_multiple_count(10, 3, None)


def test_threshold_sweep():
    assert get_threshold_sweep([1, 2], lambda t: t * 10) == {1: 10, 2: 20}


@pytest.mark.parametrize("seed", range(5))
def test_distribution_sanity_on_random_values(seed):
    rng = random.Random(seed)
    values = [rng.lognormvariate(0, 1) for _ in range(rng.randint(1, 200))]

    med = median(values)
    mad = get_mad(values)
    assert min(values) <= med <= max(values)
    assert mad >= 0

    for groups in (get_plain_groups(values), get_mad_groups(values, mad, med)):
        keys = sorted(groups)
        counts = [groups[k] for k in keys]
        assert all(c >= 0 for c in counts)
        assert counts == sorted(counts, reverse=True)
