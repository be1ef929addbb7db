"""
Unit tests for ModelManager artifact persistence.
"""

import json
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import torch

from txn_categorizer.core.exceptions import ArtifactLoadError
from txn_categorizer.ml.categorization_model import TransactionCategoryNet
from txn_categorizer.ml.category_index import CategoryIndex
from txn_categorizer.ml.text_features import Vocabulary
from txn_categorizer.services.model_manager import (
    CATEGORY_MAP_FILE,
    CURRENT_FILE,
    MANIFEST_FILE,
    MODEL_FILE,
    VOCAB_FILE,
    ModelArtifact,
    ModelManager,
)


def _artifact(version="1.0.0", categories=("FOOD", "TRANSPORT")) -> ModelArtifact:
    torch.manual_seed(0)
    vocabulary = Vocabulary({"coffee": 1, "shop": 2, "gas": 3, "station": 4})
    category_index = CategoryIndex(list(categories))
    model = TransactionCategoryNet(len(vocabulary), len(category_index), embedding_dim=16)
    return ModelArtifact(
        model=model,
        vocabulary=vocabulary,
        category_index=category_index,
        version=version,
        trained_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


def test_loaded_artifact_cannot_be_modified(model_manager):
    model_manager.save(_artifact())
    loaded = model_manager.load()

    with pytest.raises(FrozenInstanceError):
        loaded.version = "tampered"


def test_save_and_load_round_trip(model_manager):
    artifact = _artifact()
    path = model_manager.save(artifact)

    for name in (MODEL_FILE, VOCAB_FILE, CATEGORY_MAP_FILE, MANIFEST_FILE):
        assert (path / name).is_file()

    loaded = model_manager.load()
    assert loaded.vocabulary == artifact.vocabulary
    assert loaded.category_index == artifact.category_index
    assert loaded.version == "1.0.0"
    assert loaded.trained_at == artifact.trained_at
    assert loaded.max_sequence_length == 50
    assert not loaded.model.training

    x = torch.tensor([[1, 2] + [0] * 48])
    with torch.no_grad():
        assert torch.allclose(loaded.model(x), artifact.model(x))


def test_vocab_and_category_map_are_plain_json(model_manager):
    path = model_manager.save(_artifact())

    assert json.loads((path / VOCAB_FILE).read_text()) == {
        "coffee": 1, "shop": 2, "gas": 3, "station": 4
    }
    assert json.loads((path / CATEGORY_MAP_FILE).read_text()) == {"0": "FOOD", "1": "TRANSPORT"}


def test_new_save_replaces_current(model_manager):
    model_manager.save(_artifact(version="1.0.0"))
    second = model_manager.save(_artifact(version="2.0.0", categories=("FOOD", "RENT", "TRAVEL")))

    assert model_manager.current_path() == second
    loaded = model_manager.load()
    assert loaded.version == "2.0.0"
    assert len(loaded.category_index) == 3


def test_old_generations_are_pruned(tmp_path):
    manager = ModelManager(str(tmp_path / "m"), keep_generations=2)
    for i in range(4):
        manager.save(_artifact(version=f"v{i}"))

    generations = [p for p in manager.models_dir.iterdir() if p.is_dir()]
    assert len(generations) == 2
    assert manager.current_path() in generations


def test_failed_save_publishes_nothing(model_manager):
    first = model_manager.save(_artifact(version="1.0.0"))

    with patch("txn_categorizer.services.model_manager.torch.save", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            model_manager.save(_artifact(version="2.0.0"))

    assert model_manager.current_path() == first
    assert model_manager.load().version == "1.0.0"
    leftovers = [p.name for p in model_manager.models_dir.iterdir() if p.name.startswith(".staging-")]
    assert leftovers == []


def test_failed_pointer_swap_keeps_previous(model_manager):
    first = model_manager.save(_artifact(version="1.0.0"))

    with patch("txn_categorizer.services.model_manager.os.replace", side_effect=OSError("boom")):
        with pytest.raises(OSError):
            model_manager.save(_artifact(version="2.0.0"))

    assert model_manager.current_path() == first
    dirs = [p for p in model_manager.models_dir.iterdir() if p.is_dir()]
    assert dirs == [first]


def test_load_without_artifact_fails(model_manager):
    with pytest.raises(ArtifactLoadError):
        model_manager.load()


@pytest.mark.parametrize("missing", [MODEL_FILE, VOCAB_FILE, CATEGORY_MAP_FILE, MANIFEST_FILE])
def test_load_fails_when_any_component_is_missing(model_manager, missing):
    path = model_manager.save(_artifact())
    (path / missing).unlink()

    with pytest.raises(ArtifactLoadError):
        model_manager.load()


def test_load_fails_on_malformed_vocabulary(model_manager):
    path = model_manager.save(_artifact())
    (path / VOCAB_FILE).write_text("{not json")

    with pytest.raises(ArtifactLoadError):
        model_manager.load()


def test_load_fails_on_mismatched_components(model_manager):
    path = model_manager.save(_artifact())
    (path / CATEGORY_MAP_FILE).write_text(json.dumps({"0": "FOOD"}))

    with pytest.raises(ArtifactLoadError):
        model_manager.load()


def test_load_fails_on_corrupt_weights(model_manager):
    path = model_manager.save(_artifact())
    (path / MODEL_FILE).write_bytes(b"garbage")

    with pytest.raises(ArtifactLoadError):
        model_manager.load()


def test_dangling_pointer_fails(model_manager):
    model_manager.models_dir.mkdir(parents=True)
    (model_manager.models_dir / CURRENT_FILE).write_text("does-not-exist")

    with pytest.raises(ArtifactLoadError):
        model_manager.load()


def test_get_model_info(model_manager):
    assert model_manager.get_model_info() == {}

    path = model_manager.save(_artifact(version="3.1.4"))
    info = model_manager.get_model_info()

    assert info["version"] == "3.1.4"
    assert info["vocab_size"] == 4
    assert info["num_classes"] == 2
    assert info["embedding_dim"] == 16
    assert info["path"] == str(path)
