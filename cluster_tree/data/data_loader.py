#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Data Loader Module for Cluster Tree Explorer
Reads cluster tree JSON files and cell label CSV files
"""

import io
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from cluster_tree.models.node import TreeNode
from cluster_tree.models.tree_builder import build_tree, flatten

logger = logging.getLogger(__name__)


class TreeFileError(Exception):
    """Raised when a tree or label file cannot be read or parsed."""
    pass


class TreeDataLoader:
    """Class for loading the cluster tree and its cell labels"""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize TreeDataLoader with configuration"""
        self.config = config or {}
        loader_config = self.config.get('data_loader', {})
        self.encoding = loader_config.get('default_encoding', 'utf-8')
        self.label_delimiter = loader_config.get('label_delimiter', ',')

        self.loaded_files: Dict[str, Dict[str, Any]] = {}

    def load_tree_file(self, file_path: Union[str, Path]) -> List[Any]:
        """
        Read the nested-array tree JSON

        Args:
            file_path: Path to the tree file

        Returns:
            The decoded rose tree

        Raises:
            TreeFileError: If the file is missing or is not a JSON array
        """
        file_path = Path(file_path)

        try:
            with open(file_path, 'r', encoding=self.encoding) as f:
                rose = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading tree file {file_path}: {str(e)}", exc_info=True)
            raise TreeFileError(f"Cannot read tree file {file_path}: {e}") from e

        if not isinstance(rose, list):
            raise TreeFileError(f"Tree file {file_path} does not hold a JSON array")

        self.loaded_files['tree'] = {
            'path': str(file_path),
            'file_size': file_path.stat().st_size,
        }
        logger.info(f"Loaded tree file {file_path}")
        return rose

    def load_tree(self, file_path: Union[str, Path]) -> TreeNode:
        """
        Read a tree file and build the canonical tree from it

        Raises:
            TreeFileError: If the file cannot be read
            MalformedTreeError: If the file's structure is not a single rooted tree
        """
        flat_nodes = flatten(self.load_tree_file(file_path))
        tree = build_tree(flat_nodes)
        self.loaded_files['tree']['node_count'] = len(flat_nodes)
        return tree

    def parse_labels(self, source: Union[str, Path, io.StringIO]) -> Dict[str, str]:
        """
        Parse ``barcode,label`` rows, ignoring the header row

        Fields are taken literally, so labels such as ``NA`` or ``None`` are
        kept. Rows with an empty or missing field are dropped.

        Args:
            source: File path or text buffer

        Returns:
            Barcode id -> label
        """
        try:
            df = pd.read_csv(
                source,
                sep=self.label_delimiter,
                header=None,
                skiprows=1,
                usecols=[0, 1],
                names=['barcode', 'label'],
                dtype=str,
                keep_default_na=False,
                na_filter=False,
                encoding=self.encoding,
                skip_blank_lines=True,
            )
        except pd.errors.EmptyDataError:
            logger.warning("Label file has no rows")
            return {}
        except (OSError, ValueError) as e:
            logger.error(f"Error loading labels: {str(e)}", exc_info=True)
            raise TreeFileError(f"Cannot read label file: {e}") from e

        # Short rows still come back as NaN in the missing column
        df = df.fillna('')
        df['barcode'] = df['barcode'].astype(str).str.strip()
        df['label'] = df['label'].astype(str).str.strip()

        total = len(df)
        df = df[(df['barcode'] != '') & (df['label'] != '')]
        if len(df) < total:
            logger.warning(f"Dropped {total - len(df)} incomplete label rows")

        labels = dict(zip(df['barcode'], df['label']))
        logger.info(f"Loaded {len(labels)} cell labels ({df['label'].nunique()} distinct)")
        return labels

    def load_label_file(self, file_path: Union[str, Path]) -> Dict[str, str]:
        """
        Read the label CSV

        Raises:
            TreeFileError: If the file cannot be read
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise TreeFileError(f"Label file not found: {file_path}")

        labels = self.parse_labels(file_path)
        self.loaded_files['labels'] = {'path': str(file_path), 'rows': len(labels)}
        return labels

    def parse_label_text(self, text: str) -> Dict[str, str]:
        """Parse label CSV content already held in memory"""
        if not text.strip():
            return {}
        return self.parse_labels(io.StringIO(text))
