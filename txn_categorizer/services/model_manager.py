"""
Model Manager Service

Handles saving and loading of the categorization model artifact.

An artifact is three components that are always written and read together:
- model.pt: PyTorch state dict
- vocab.json: token -> index
- category_map.json: class index -> category id
plus a manifest.json with the version label and hyperparameters.

Each save goes to a hidden staging directory which is renamed into a new
generation directory; the CURRENT pointer file is then swapped atomically.
Readers only ever follow CURRENT, so they see either the old or the new
artifact, never a mix.
"""

import json
import os
import re
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import torch

from txn_categorizer.core.exceptions import ArtifactLoadError
from txn_categorizer.ml.categorization_model import TransactionCategoryNet
from txn_categorizer.ml.category_index import CategoryIndex
from txn_categorizer.ml.text_features import MAX_SEQUENCE_LENGTH, Vocabulary

logger = structlog.get_logger(__name__)

MODEL_FILE = "model.pt"
VOCAB_FILE = "vocab.json"
CATEGORY_MAP_FILE = "category_map.json"
MANIFEST_FILE = "manifest.json"
CURRENT_FILE = "CURRENT"
STAGING_PREFIX = ".staging-"


@dataclass(frozen=True)
class ModelArtifact:
    """Immutable bundle of everything inference needs"""
    model: torch.nn.Module
    vocabulary: Vocabulary
    category_index: CategoryIndex
    version: str
    trained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    max_sequence_length: int = MAX_SEQUENCE_LENGTH


class ModelManager:
    """Manages artifact persistence - save, load, and generation bookkeeping"""

    def __init__(self, models_dir: str = "ml/categorization_model", keep_generations: int = 2):
        """
        Args:
            models_dir: Root directory of the artifact
            keep_generations: Published generations to keep on disk (current included)
        """
        self.models_dir = Path(models_dir)
        self.keep_generations = max(1, keep_generations)

    # ---------- Saving ----------

    def save(self, artifact: ModelArtifact) -> Path:
        """
        Persist an artifact and publish it as the current one.

        Returns:
            Path of the published generation directory

        Raises:
            Whatever the failing write raised; nothing is published in that case.
        """
        self.models_dir.mkdir(parents=True, exist_ok=True)
        staging = self.models_dir / f"{STAGING_PREFIX}{uuid.uuid4().hex}"
        generation = self.models_dir / self._generation_name(artifact)

        try:
            staging.mkdir()
            self._write_components(staging, artifact)
            staging.rename(generation)
            self._write_current(generation.name)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            if generation.exists() and self._read_current() != generation.name:
                shutil.rmtree(generation, ignore_errors=True)
            raise

        logger.info(
            "Model artifact published",
            path=str(generation),
            version=artifact.version,
            vocabulary_size=len(artifact.vocabulary),
            category_count=len(artifact.category_index),
        )
        self._prune(current=generation.name)
        return generation

    def _write_components(self, target: Path, artifact: ModelArtifact):
        model = artifact.model
        state = {k: v.detach().cpu() for k, v in model.state_dict().items()}
        torch.save(state, target / MODEL_FILE)

        with open(target / VOCAB_FILE, "w", encoding="utf-8") as f:
            json.dump(artifact.vocabulary.to_dict(), f, ensure_ascii=False)

        with open(target / CATEGORY_MAP_FILE, "w", encoding="utf-8") as f:
            json.dump(artifact.category_index.to_dict(), f, indent=2)

        manifest = {
            "version": artifact.version,
            "trained_at": artifact.trained_at.isoformat(),
            "vocab_size": len(artifact.vocabulary),
            "num_classes": len(artifact.category_index),
            "embedding_dim": getattr(model, "embedding_dim", None),
            "max_sequence_length": artifact.max_sequence_length,
        }
        with open(target / MANIFEST_FILE, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)

    def _write_current(self, generation_name: str):
        tmp = self.models_dir / f"{CURRENT_FILE}.{uuid.uuid4().hex}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(generation_name)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.models_dir / CURRENT_FILE)
        finally:
            if tmp.exists():
                tmp.unlink()

    @staticmethod
    def _generation_name(artifact: ModelArtifact) -> str:
        label = re.sub(r"[^A-Za-z0-9._-]+", "_", artifact.version) or "model"
        stamp = artifact.trained_at.strftime("%Y%m%dT%H%M%S%f")
        return f"{label}-{stamp}-{uuid.uuid4().hex[:8]}"

    def _prune(self, current: str):
        generations = sorted(
            (p for p in self.models_dir.iterdir()
             if p.is_dir() and not p.name.startswith(STAGING_PREFIX) and p.name != current),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        for old in generations[self.keep_generations - 1:]:
            try:
                shutil.rmtree(old)
            except OSError as e:
                logger.warning("Could not prune old model generation", path=str(old), error=str(e))

    # ---------- Loading ----------

    def _read_current(self) -> Optional[str]:
        pointer = self.models_dir / CURRENT_FILE
        if not pointer.exists():
            return None
        name = pointer.read_text(encoding="utf-8").strip()
        return name or None

    def current_path(self) -> Optional[Path]:
        name = self._read_current()
        return self.models_dir / name if name else None

    def load(self, device: str = "cpu") -> ModelArtifact:
        """
        Load the published artifact.

        Raises:
            ArtifactLoadError: if any component is missing or malformed
        """
        path = self.current_path()
        if path is None:
            raise ArtifactLoadError(f"No published model artifact under {self.models_dir}")

        missing = [
            name for name in (MODEL_FILE, VOCAB_FILE, CATEGORY_MAP_FILE, MANIFEST_FILE)
            if not (path / name).is_file()
        ]
        if missing:
            raise ArtifactLoadError(f"Model artifact {path} is incomplete, missing: {', '.join(missing)}")

        try:
            with open(path / MANIFEST_FILE, "r", encoding="utf-8") as f:
                manifest = json.load(f)
            with open(path / VOCAB_FILE, "r", encoding="utf-8") as f:
                vocabulary = Vocabulary.from_dict(json.load(f))
            with open(path / CATEGORY_MAP_FILE, "r", encoding="utf-8") as f:
                category_index = CategoryIndex.from_dict(json.load(f))

            if manifest.get("vocab_size") != len(vocabulary):
                raise ArtifactLoadError("Manifest vocabulary size does not match vocab.json")
            if manifest.get("num_classes") != len(category_index):
                raise ArtifactLoadError("Manifest class count does not match category_map.json")

            model = TransactionCategoryNet(
                vocab_size=len(vocabulary),
                num_classes=len(category_index),
                embedding_dim=int(manifest["embedding_dim"]),
            )
            state = torch.load(path / MODEL_FILE, map_location=device, weights_only=True)
            model.load_state_dict(state)
            model.to(device)
            model.eval()

            return ModelArtifact(
                model=model,
                vocabulary=vocabulary,
                category_index=category_index,
                version=str(manifest.get("version", "")),
                trained_at=datetime.fromisoformat(manifest["trained_at"]),
                max_sequence_length=int(manifest.get("max_sequence_length", MAX_SEQUENCE_LENGTH)),
            )
        except ArtifactLoadError:
            raise
        except Exception as e:
            raise ArtifactLoadError(f"Model artifact {path} is malformed: {e}") from e

    def get_model_info(self) -> Dict[str, Any]:
        """Manifest of the published artifact, empty when there is none"""
        path = self.current_path()
        if path is None or not (path / MANIFEST_FILE).is_file():
            return {}
        try:
            with open(path / MANIFEST_FILE, "r", encoding="utf-8") as f:
                info = json.load(f)
        except (OSError, ValueError):
            return {}
        info["path"] = str(path)
        return info
