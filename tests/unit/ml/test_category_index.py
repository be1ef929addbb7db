"""
Unit tests for CategoryIndex.
"""

import numpy as np
import pytest

from txn_categorizer.core.exceptions import ArtifactLoadError, UnknownCategoryError
from txn_categorizer.ml.category_index import CategoryIndex


def test_from_labels_uses_first_seen_order():
    index = CategoryIndex.from_labels(["FOOD", "TRANSPORT", "FOOD", "RENT"])
    assert index.to_dict() == {"0": "FOOD", "1": "TRANSPORT", "2": "RENT"}
    assert len(index) == 3


def test_round_trip_identity():
    labels = ["64a1f0", "64a1f1", "64a1f2", "64a1f0"]
    index = CategoryIndex.from_labels(labels)
    for category_id in set(labels):
        assert index.decode(index.index_of(category_id)) == category_id


def test_unknown_category_raises():
    index = CategoryIndex(["FOOD"])
    with pytest.raises(UnknownCategoryError):
        index.index_of("TRAVEL")
    # also usable as a KeyError
    with pytest.raises(KeyError):
        index.index_of("TRAVEL")


def test_decode_out_of_range():
    index = CategoryIndex(["FOOD", "TRANSPORT"])
    with pytest.raises(IndexError):
        index.decode(2)
    with pytest.raises(IndexError):
        index.decode(-1)


def test_duplicate_categories_rejected():
    with pytest.raises(ValueError):
        CategoryIndex(["FOOD", "FOOD"])


def test_one_hot():
    index = CategoryIndex(["FOOD", "TRANSPORT", "RENT"])
    encoded = index.one_hot(["TRANSPORT", "FOOD", "TRANSPORT"])

    assert encoded.shape == (3, 3)
    assert encoded.dtype == np.float32
    assert encoded.tolist() == [[0, 1, 0], [1, 0, 0], [0, 1, 0]]


def test_from_dict_round_trip():
    index = CategoryIndex(["FOOD", "TRANSPORT"])
    assert CategoryIndex.from_dict(index.to_dict()) == index


def test_from_dict_ignores_key_order():
    index = CategoryIndex.from_dict({"1": "TRANSPORT", "0": "FOOD"})
    assert index.decode(0) == "FOOD"
    assert index.decode(1) == "TRANSPORT"


@pytest.mark.parametrize("data", [
    {},
    {"0": "FOOD", "2": "RENT"},
    {"0": "FOOD", "1": "FOOD"},
    {"zero": "FOOD"},
    {"0": ""},
    ["FOOD"],
])
def test_from_dict_rejects_invalid_snapshots(data):
    with pytest.raises(ArtifactLoadError):
        CategoryIndex.from_dict(data)
