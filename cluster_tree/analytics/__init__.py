#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Analytics Module for Cluster Tree Explorer
Label aggregation, feature annotation and distribution statistics
"""

from .distribution_statistics import DegenerateDistributionError, get_mad, median
from .label_aggregator import LabelAggregator, LabelLookupError, aggregate_labels
from .feature_annotator import (
    FeatureDistribution,
    MissingFeatureValueError,
    annotate_feature_counts,
    compute_feature_distributions,
    derive_default_thresholds,
    get_scale_combinations,
    merge_features,
)
from .tree_statistics import Distributions, PruneDistribution, TreeMetadata, TreeStatisticsBuilder

__all__ = [
    'DegenerateDistributionError', 'get_mad', 'median',
    'LabelAggregator', 'LabelLookupError', 'aggregate_labels',
    'FeatureDistribution', 'MissingFeatureValueError', 'annotate_feature_counts',
    'compute_feature_distributions', 'derive_default_thresholds',
    'get_scale_combinations', 'merge_features',
    'Distributions', 'PruneDistribution', 'TreeMetadata', 'TreeStatisticsBuilder',
]
