#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Feature Source Module for Cluster Tree Explorer
Supplies per-cell feature values from pandas frames or CSV matrices
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)


class FeatureSourceError(Exception):
    """Raised when feature names or values cannot be fetched."""
    pass


class FeatureSource(ABC):
    """Collaborator that looks up per-cell feature values by feature name"""

    @abstractmethod
    def fetch_feature_names(self) -> List[str]:
        """
        Names of every feature this source can supply

        Raises:
            FeatureSourceError: If the names cannot be read
        """

    @abstractmethod
    def fetch_features(self, name: str) -> List[Dict[str, Any]]:
        """
        Values of one feature as ``{'id': cell_id, 'value': number}`` records

        Raises:
            FeatureSourceError: If the feature is unknown or cannot be read
        """

    def fetch_feature_map(self, name: str) -> Dict[str, float]:
        """Values of one feature keyed by cell id"""
        return records_to_feature_map(self.fetch_features(name))

    def fetch_feature_maps(self, names: Iterable[str]) -> Dict[str, Dict[str, float]]:
        """
        Fetch several features at once

        Args:
            names: Feature names

        Returns:
            Feature name -> (cell id -> value)

        Raises:
            FeatureSourceError: On the first feature that cannot be fetched
        """
        return {name: self.fetch_feature_map(name) for name in names}


class DataFrameFeatureSource(FeatureSource):
    """Feature values held in a cells x features DataFrame indexed by cell id"""

    def __init__(self, frame: pd.DataFrame):
        self.frame = frame.copy()
        self.frame.index = self.frame.index.astype(str)
        self.frame.columns = [str(column) for column in self.frame.columns]

    def fetch_feature_names(self) -> List[str]:
        return [str(column) for column in self.frame.columns]

    def fetch_features(self, name: str) -> List[Dict[str, Any]]:
        if name not in self.frame.columns:
            raise FeatureSourceError(f"Unknown feature: {name}")

        column = self.frame[name]
        return [{'id': cell_id, 'value': value} for cell_id, value in column.items()]


class CsvFeatureSource(DataFrameFeatureSource):
    """
    Feature values read from a CSV matrix.

    The first column (or ``index_column``) holds cell ids and every other
    column is one feature. Only empty fields count as missing, so ids
    such as ``NA`` stay literal. The file is read once, on first use.
    """

    def __init__(self, file_path: Union[str, Path], config: Optional[Dict[str, Any]] = None):
        loader_config = (config or {}).get('data_loader', {})
        self.file_path = Path(file_path)
        self.encoding = loader_config.get('default_encoding', 'utf-8')
        self.index_column = loader_config.get('feature_index_column', 0)
        self._frame: Optional[pd.DataFrame] = None

    @property
    def frame(self) -> pd.DataFrame:
        if self._frame is None:
            self._frame = self._load()
        return self._frame

    @frame.setter
    def frame(self, value: pd.DataFrame):
        self._frame = value

    def _load(self) -> pd.DataFrame:
        try:
            frame = pd.read_csv(
                self.file_path,
                index_col=self.index_column,
                keep_default_na=False,
                na_values=[''],
                encoding=self.encoding,
                low_memory=False
            )
        except (OSError, ValueError) as e:
            logger.error(f"Error loading feature matrix {self.file_path}: {str(e)}", exc_info=True)
            raise FeatureSourceError(f"Cannot read feature matrix {self.file_path}: {e}") from e

        frame.index = frame.index.astype(str)
        frame.columns = [str(column).strip() for column in frame.columns]
        logger.info(f"Loaded feature matrix {self.file_path}: "
                    f"{len(frame)} cells x {len(frame.columns)} features")
        return frame


def records_to_feature_map(records: Iterable[Dict[str, Any]]) -> Dict[str, float]:
    """
    Turn ``{'id', 'value'}`` records into a cell id -> value map

    Non-numeric values are dropped, so those cells later default to 0.
    """
    frame = pd.DataFrame(list(records), columns=['id', 'value'])
    if frame.empty:
        return {}

    frame['value'] = pd.to_numeric(frame['value'], errors='coerce')
    dropped = int(frame['value'].isna().sum())
    if dropped:
        logger.debug(f"Dropped {dropped} non-numeric feature values")

    frame = frame.dropna(subset=['value'])
    return dict(zip(frame['id'].astype(str), frame['value'].astype(float)))


def _levenshtein(s1: str, s2: str) -> int:
    """Compute Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        return _levenshtein(s2, s1)
    if len(s2) == 0:
        return len(s1)
    prev = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        curr = [i + 1]
        for j, c2 in enumerate(s2):
            cost = 0 if c1 == c2 else 1
            curr.append(min(curr[j] + 1, prev[j + 1] + 1, prev[j] + cost))
        prev = curr
    return prev[-1]


def rank_feature_names(query: str, names: Iterable[str]) -> List[str]:
    """
    Order feature names by case-insensitive edit distance to a search query

    Ties keep their original order.
    """
    query = query.lower()
    return sorted(names, key=lambda name: _levenshtein(name.lower(), query))
