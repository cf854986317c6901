#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Data Module for Cluster Tree Explorer
Handles tree and label files and the feature value source
"""

from .data_loader import TreeDataLoader, TreeFileError
from .feature_source import (
    CsvFeatureSource,
    DataFrameFeatureSource,
    FeatureSource,
    FeatureSourceError,
    rank_feature_names,
    records_to_feature_map,
)

__all__ = [
    'TreeDataLoader', 'TreeFileError',
    'CsvFeatureSource', 'DataFrameFeatureSource', 'FeatureSource', 'FeatureSourceError',
    'rank_feature_names', 'records_to_feature_map',
]
