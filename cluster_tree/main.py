#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Main entry point for Cluster Tree Explorer
Loads a cluster tree, applies one prune step and writes the resulting statistics as JSON.

[main -> parse arguments -> load_configuration, setup_logging_from_config -> ExplorerSession -> safe_json_dump]
"""

import argparse
import logging
import sys
from typing import List, Optional

from cluster_tree.data.data_loader import TreeFileError
from cluster_tree.data.feature_source import CsvFeatureSource, FeatureSourceError
from cluster_tree.models.tree_builder import MalformedTreeError
from cluster_tree.models.tree_pruning import NodeNotFoundError, PrunerKind
from cluster_tree.utils.config import load_configuration
from cluster_tree.utils.logging_utils import log_system_info, setup_logging_from_config
from cluster_tree.utils.serialization_utils import safe_json_dump, safe_json_dumps
from cluster_tree.workflow.explorer_session import ExplorerSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_OUTPUT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cluster-tree",
        description="Prune a cell cluster tree and report its size, distance and feature distributions.",
    )
    parser.add_argument("tree", help="cluster tree JSON file (nested arrays)")
    parser.add_argument("--labels", help="CSV of barcode,label rows (header row ignored)")
    parser.add_argument("--features", help="CSV matrix of cells x features, cell ids in the first column")
    parser.add_argument("--feature", action="append", default=[], metavar="NAME",
                        help="feature to load and activate (repeatable)")
    parser.add_argument("--threshold", action="append", default=[], metavar="NAME=VALUE",
                        help="override a feature's high/low threshold (repeatable)")

    prune = parser.add_mutually_exclusive_group()
    prune.add_argument("--min-size", type=float, help="drop subtrees with fewer cells")
    prune.add_argument("--min-distance", type=float, help="cut below nodes with a smaller distance")
    prune.add_argument("--min-distance-search", type=float,
                       help="drop nodes with a smaller distance, searching from the leaves")
    prune.add_argument("--max-depth", type=int, help="hide nodes deeper than this")

    parser.add_argument("--collapse", action="append", type=int, default=[], metavar="NODE_ID",
                        help="collapse the node with this pre-order index (repeatable)")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--output", help="write the JSON snapshot here instead of stdout")
    parser.add_argument("--include-tree", action="store_true", help="include the visible tree in the output")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="override the configured log level")
    return parser


def _value_pruner(args: argparse.Namespace):
    if args.min_size is not None:
        return PrunerKind.SIZE, args.min_size
    if args.min_distance is not None:
        return PrunerKind.DISTANCE, args.min_distance
    if args.min_distance_search is not None:
        return PrunerKind.DISTANCE_SEARCH, args.min_distance_search
    if args.max_depth is not None:
        return PrunerKind.DEPTH, args.max_depth
    return None


def _parse_threshold(text: str):
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise ValueError(f"Threshold must look like NAME=VALUE, got {text!r}")
    return name, float(value)


def run(args: argparse.Namespace) -> int:
    """Run the pipeline for parsed arguments and return the exit code"""
    config = load_configuration(args.config)
    setup_logging_from_config(config, level_override=args.log_level)
    log_system_info()

    feature_source = CsvFeatureSource(args.features, config) if args.features else None
    session = ExplorerSession(config, feature_source=feature_source)

    try:
        thresholds = [_parse_threshold(t) for t in args.threshold]

        session.load_files(args.tree, args.labels)

        with session.batch():
            if args.feature:
                session.add_features(args.feature)
            for name, value in thresholds:
                session.set_threshold(name, value)

        visible = session.state.visible_tree
        with session.batch():
            for index in args.collapse:
                node = next((n for n in visible.iter_preorder() if n.node_id == index), None)
                if node is None:
                    raise NodeNotFoundError(f"No node with index {index}")
                session.collapse_node(node.data.id)

            pruner = _value_pruner(args)
            if pruner is not None:
                session.set_value_pruner(*pruner)

    except (TreeFileError, MalformedTreeError, FeatureSourceError, NodeNotFoundError, ValueError) as e:
        logger.error(f"Cannot build the tree snapshot: {e}")
        return EXIT_INPUT_ERROR

    snapshot = session.snapshot(include_tree=args.include_tree)

    if args.output:
        if not safe_json_dump(snapshot, args.output):
            return EXIT_OUTPUT_ERROR
        logger.info(f"Snapshot written to {args.output}")
    else:
        sys.stdout.write(safe_json_dumps(snapshot) + "\n")

    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to start the command-line tool"""
    parser = build_parser()
    args = parser.parse_args(argv)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
