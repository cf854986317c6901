"""
Tests for tree and label file loading and the feature sources.
"""

import json

import pandas as pd
import pytest

from cluster_tree.data.data_loader import TreeDataLoader, TreeFileError
from cluster_tree.data.feature_source import (
    CsvFeatureSource,
    DataFrameFeatureSource,
    FeatureSourceError,
    rank_feature_names,
    records_to_feature_map,
)
from cluster_tree.models.tree_builder import MalformedTreeError
from cluster_tree.utils.config import default_configuration


@pytest.fixture
def loader():
    return TreeDataLoader(default_configuration())


def test_load_tree(loader, tmp_path, distance_rose):
    path = tmp_path / "tree.json"
    path.write_text(json.dumps(distance_rose))

    tree = loader.load_tree(path)

    assert tree.value == 6
    assert len(tree.get_subtree_nodes()) == 5
    assert loader.loaded_files['tree']['node_count'] == 5


def test_load_tree_rejects_invalid_json(loader, tmp_path):
    path = tmp_path / "tree.json"
    path.write_text("[{]")

    with pytest.raises(TreeFileError):
        loader.load_tree(path)


def test_load_tree_rejects_non_arrays(loader, tmp_path):
    path = tmp_path / "tree.json"
    path.write_text('{"_item": []}')

    with pytest.raises(TreeFileError):
        loader.load_tree_file(path)


def test_load_tree_missing_file(loader, tmp_path):
    with pytest.raises(TreeFileError):
        loader.load_tree(tmp_path / "absent.json")


def test_load_malformed_tree(loader, tmp_path):
    path = tmp_path / "tree.json"
    path.write_text("[{}, [5]]")

    with pytest.raises(MalformedTreeError):
        loader.load_tree(path)


def test_parse_labels_drops_incomplete_rows(loader, caplog):
    labels = loader.parse_label_text("id,label\n1,red\n2\n3,blue\n")

    assert labels == {"1": "red", "3": "blue"}
    assert any("incomplete" in r.getMessage() for r in caplog.records)


def test_parse_labels_keeps_na_like_values(loader):
    labels = loader.parse_label_text("id,label\n1,NA\n2,None\nNA,red\n4,null\n5,\n")

    assert labels == {"1": "NA", "2": "None", "NA": "red", "4": "null"}


def test_parse_labels_strips_and_ignores_extra_columns(loader):
    labels = loader.parse_label_text("barcode,cluster,extra\nAAAC , T cell ,x\nGGTA,B cell,y\n")
    assert labels == {"AAAC": "T cell", "GGTA": "B cell"}


def test_parse_empty_label_text(loader):
    assert loader.parse_label_text("") == {}
    assert loader.parse_label_text("   \n") == {}


def test_label_delimiter_from_config(tmp_path):
    config = default_configuration()
    config['data_loader']['label_delimiter'] = '\t'
    path = tmp_path / "labels.tsv"
    path.write_text("cell\tlabel\nc1\tA\nc2\tB\n")

    loader = TreeDataLoader(config)

    assert loader.load_label_file(path) == {"c1": "A", "c2": "B"}
    assert loader.loaded_files['labels']['rows'] == 2


def test_missing_label_file(loader, tmp_path):
    with pytest.raises(TreeFileError):
        loader.load_label_file(tmp_path / "labels.csv")


def test_data_frame_source():
    frame = pd.DataFrame({"CD3": [1.5, None], 7: [2, 3]}, index=[10, 11])
    source = DataFrameFeatureSource(frame)

    assert source.fetch_feature_names() == ["CD3", "7"]
    assert source.fetch_feature_map("CD3") == {"10": 1.5}
    assert source.fetch_feature_maps(["7"]) == {"7": {"10": 2.0, "11": 3.0}}
    assert list(frame.index) == [10, 11]

    with pytest.raises(FeatureSourceError):
        source.fetch_features("CD8")


def test_csv_source(tmp_path):
    path = tmp_path / "features.csv"
    path.write_text("cell,CD3, CD4\nx,5,1\ny,0,2\n")

    source = CsvFeatureSource(path, default_configuration())

    assert source.fetch_feature_names() == ["CD3", "CD4"]
    assert source.fetch_feature_map("CD4") == {"x": 1.0, "y": 2.0}


def test_csv_source_keeps_na_like_cell_ids(tmp_path):
    path = tmp_path / "features.csv"
    path.write_text("cell,F\nNA,3\nnull,2\nx,\n")

    source = CsvFeatureSource(path)

    assert source.fetch_feature_map("F") == {"NA": 3.0, "null": 2.0}


def test_csv_source_missing_file(tmp_path):
    source = CsvFeatureSource(tmp_path / "absent.csv")

    with pytest.raises(FeatureSourceError):
        source.fetch_feature_names()


def test_records_to_feature_map():
    records = [{"id": 1, "value": "2.5"}, {"id": "b", "value": "n/a"}, {"id": "c", "value": 0}]

    assert records_to_feature_map(records) == {"1": 2.5, "c": 0.0}
    assert records_to_feature_map([]) == {}


def test_rank_feature_names():
    assert rank_feature_names("cd3", ["CD4", "CD3", "MS4A1"]) == ["CD3", "CD4", "MS4A1"]
