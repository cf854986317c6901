#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Distribution Statistics Module for Cluster Tree Explorer
Median, median absolute deviation and threshold binning helpers
"""

import logging
import math
from typing import Callable, Dict, Iterable, List, Optional

import numpy as np
from matplotlib.ticker import MaxNLocator

logger = logging.getLogger(__name__)

NICE_STEPS = [1, 2, 5, 10]


class DegenerateDistributionError(Exception):
    """Raised when a value set is empty or has zero spread."""
    pass


def _as_array(values: Iterable[Optional[float]]) -> np.ndarray:
    """Float array with None and NaN dropped"""
    array = np.asarray([v for v in values if v is not None], dtype=float)
    return array[~np.isnan(array)]


def median(values: Iterable[Optional[float]]) -> Optional[float]:
    """
    Median of the numeric values, ignoring None and NaN

    Returns:
        The median, or None for an empty set
    """
    array = _as_array(values)
    if array.size == 0:
        return None
    return float(np.median(array))


def get_mad(values: Iterable[Optional[float]]) -> Optional[float]:
    """
    Median absolute deviation: median of ``|x - median(X)|``

    Args:
        values: Value set, None and NaN ignored

    Returns:
        The MAD, or None for an empty set
    """
    array = _as_array(values)
    if array.size == 0:
        return None
    med = np.median(array)
    return float(np.median(np.abs(array - med)))


def nonzero(values: Iterable[Optional[float]]) -> List[float]:
    """Drop zeros, None and NaN"""
    return [float(v) for v in _as_array(values) if v != 0]


def nice_ticks(start: float, stop: float, count: int, integer: bool = False) -> List[float]:
    """
    Evenly spaced round thresholds across ``[start, stop]``

    Steps are 1, 2 or 5 times a power of ten, chosen so that about
    ``count`` intervals cover the range. Only ticks inside the range are
    returned.

    Args:
        start: Lower bound
        stop: Upper bound
        count: Target number of intervals
        integer: Restrict to integer steps

    Returns:
        Ascending list of ticks
    """
    if count <= 0 or start is None or stop is None:
        return []
    if not (math.isfinite(start) and math.isfinite(stop)) or stop < start:
        return []
    if math.isclose(start, stop):
        return [float(start)]

    locator = MaxNLocator(nbins=count, steps=NICE_STEPS, integer=integer)
    ticks = np.asarray(locator.tick_values(start, stop), dtype=float)

    tolerance = (stop - start) * 1e-9
    ticks = ticks[(ticks >= start - tolerance) & (ticks <= stop + tolerance)]
    ticks = np.clip(np.round(ticks, 10), start, stop)
    return [float(t) for t in ticks]


def get_plain_groups(values: Iterable[float], bin_count: int = 25) -> Dict[float, int]:
    """
    Count of values above each of about ``bin_count`` thresholds across their range

    Args:
        values: Value set
        bin_count: Target number of thresholds

    Returns:
        Mapping threshold -> number of values strictly above it
    """
    array = _as_array(values)
    if array.size == 0:
        return {}

    thresholds = nice_ticks(float(array.min()), float(array.max()), bin_count)
    return {t: int(np.count_nonzero(array > t)) for t in thresholds}


def get_mad_multiple_count(upper: float, med: float, mad: Optional[float]) -> int:
    """
    Number of whole MADs between the median and an upper bound, rounded up

    Raises:
        DegenerateDistributionError: If the MAD is missing or zero
    """
    if mad is None or mad == 0 or not math.isfinite(mad):
        raise DegenerateDistributionError(f"MAD is {mad}, cannot bin by MAD multiples")
    return int(math.ceil((upper - med) / mad))


def get_mad_groups(values: Iterable[float], mad: Optional[float], med: Optional[float],
                   max_bins: int = 25) -> Dict[float, int]:
    """
    Count of values above ``median + k * MAD`` for MAD multiples ``k``

    ``k`` runs over round integer ticks from 0 to
    ``ceil((max - median) / MAD)``, at most ``max_bins`` of them. With a
    zero MAD the result is the single bin ``{0: count(values > median)}``;
    an empty set gives ``{}``.

    Args:
        values: Value set
        mad: MAD of the value set
        med: Median of the value set
        max_bins: Maximum number of MAD multiples

    Returns:
        Mapping k -> number of values above ``median + k * MAD``
    """
    array = _as_array(values)
    if array.size == 0 or med is None:
        return {}

    try:
        max_mads = get_mad_multiple_count(float(array.max()), med, mad)
    except DegenerateDistributionError as e:
        logger.debug(f"{e}; using a single bin")
        return {0: int(np.count_nonzero(array > med))}

    if max_mads <= 0:
        return {0: int(np.count_nonzero(array > med))}

    multiples = nice_ticks(0, max_mads, min(max_mads, max_bins), integer=True)
    return {int(m): int(np.count_nonzero(array > med + mad * m)) for m in multiples}


def get_threshold_sweep(thresholds: Iterable[float], counter: Callable[[float], int]) -> Dict[float, int]:
    """Map each threshold to ``counter(threshold)``"""
    return {t: counter(t) for t in thresholds}

