"""
Transaction Categorization Service

Owns the loaded model artifact and serves predictions.

The service is created UNLOADED and loads its artifact once, in an awaited
initialize() call. A failed load leaves it in LOAD_FAILED for the rest of the
process; predictions then return None. Prediction never raises: categorization
is optional and callers treat None as "no suggestion".
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np
import structlog
import torch

from txn_categorizer.core.config import Settings, settings as default_settings
from txn_categorizer.core.exceptions import ArtifactLoadError, PredictionError
from txn_categorizer.ml.text_features import encode_batch, tokenize
from txn_categorizer.models.training_model import ModelMetadata
from txn_categorizer.services.model_manager import ModelArtifact, ModelManager

logger = structlog.get_logger(__name__)


class ServiceState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    LOAD_FAILED = "load_failed"


class CategorizationService:
    """Service for transaction categorization using the trained model"""

    def __init__(
        self,
        model_manager: ModelManager,
        version: Optional[str] = None,
        settings: Optional[Settings] = None,
        device: str = "cpu",
    ):
        """
        Args:
            model_manager: Source of the persisted artifact
            version: Version label reported in metadata (default: the artifact's label)
            settings: Application settings
            device: Torch device for forward passes
        """
        self.settings = settings or default_settings
        self.model_manager = model_manager
        self._explicit_version = version
        self.version_label = version or self.settings.resolved_model_version
        self.device = device
        self.state = ServiceState.UNLOADED
        self.artifact: Optional[ModelArtifact] = None
        self.load_timestamp: Optional[datetime] = None
        self._init_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self.state == ServiceState.READY

    async def initialize(self) -> ServiceState:
        """
        Load the artifact once. Later calls return the existing state.

        The reported version is the explicit constructor label when given,
        otherwise the label stored with the artifact.

        Returns:
            READY on success, LOAD_FAILED otherwise
        """
        async with self._init_lock:
            if self.state != ServiceState.UNLOADED:
                return self.state

            self.state = ServiceState.LOADING
            try:
                artifact = await asyncio.to_thread(self.model_manager.load, self.device)
            except ArtifactLoadError as e:
                logger.warning("Could not load categorization model", error=e.message)
            except Exception as e:
                logger.error("Unexpected error loading categorization model", error=str(e), exc_info=True)
            else:
                self.artifact = artifact
                self.version_label = (
                    self._explicit_version or artifact.version or self.settings.resolved_model_version
                )
                self.load_timestamp = datetime.now(timezone.utc)
                self.state = ServiceState.READY
            finally:
                # failure or cancellation while loading is terminal
                if self.state != ServiceState.READY:
                    self.state = ServiceState.LOAD_FAILED

            if not self.is_ready:
                return self.state

            logger.info(
                "Categorization model loaded",
                version=self.version_label,
                loaded_at=self.load_timestamp.isoformat(),
                vocabulary_size=len(artifact.vocabulary),
                category_count=len(artifact.category_index),
            )
            return self.state

    # ---------- Inference ----------

    def _predict_indices(self, descriptions: Sequence[Optional[str]]) -> List[str]:
        """One forward pass over the whole batch; returns category ids."""
        artifact = self.artifact
        try:
            token_lists = [tokenize(d) for d in descriptions]
            sequences = encode_batch(token_lists, artifact.vocabulary, artifact.max_sequence_length)

            with torch.no_grad():
                logits = artifact.model(torch.as_tensor(sequences, dtype=torch.long, device=self.device))
                probs = torch.softmax(logits, dim=1).cpu().numpy()

            if probs.shape != (len(descriptions), len(artifact.category_index)):
                raise PredictionError(
                    f"Model output shape {probs.shape} does not match "
                    f"({len(descriptions)}, {len(artifact.category_index)})"
                )
            # np.argmax returns the first maximum, so ties go to the lowest class index
            best = np.argmax(probs, axis=1)
            return [artifact.category_index.decode(int(i)) for i in best]
        except PredictionError:
            raise
        except Exception as e:
            raise PredictionError(f"Prediction failed: {e}") from e

    async def predict_single(self, description: Optional[str]) -> Optional[str]:
        """
        Predict the category id for one description.

        Returns:
            Category id, or None when the model is unavailable or prediction fails
        """
        if not self.is_ready:
            logger.debug("Categorization model not ready", state=self.state.value)
            return None
        try:
            result = await asyncio.to_thread(self._predict_indices, [description])
        except PredictionError as e:
            logger.error("Error predicting single category", error=e.message)
            return None
        return result[0]

    async def predict_batch(self, descriptions: Sequence[Optional[str]]) -> List[Optional[str]]:
        """
        Predict category ids for many descriptions in one forward pass.

        The whole batch fails together: if anything goes wrong every entry is None.
        """
        descriptions = list(descriptions)
        if not self.is_ready:
            logger.debug("Categorization model not ready", state=self.state.value)
            return [None] * len(descriptions)
        if not descriptions:
            return []
        try:
            return list(await asyncio.to_thread(self._predict_indices, descriptions))
        except PredictionError as e:
            logger.error("Error predicting batch categories", error=e.message, batch_size=len(descriptions))
            return [None] * len(descriptions)

    def get_metadata(self) -> ModelMetadata:
        """Metadata about the loaded model; safe to call in any state"""
        artifact = self.artifact if self.is_ready else None
        if artifact is None:
            return ModelMetadata(is_ready=False)
        return ModelMetadata(
            version=self.version_label,
            load_timestamp=self.load_timestamp,
            is_ready=True,
            vocabulary_size=len(artifact.vocabulary),
            category_count=len(artifact.category_index),
        )
