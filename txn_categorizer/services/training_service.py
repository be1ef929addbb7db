"""
Model Training Service

Runs one full training job for the categorization model:

    COLLECTING_DATA -> BUILDING_VOCABULARY -> ENCODING_EXAMPLES
        -> TRAINING -> PERSISTING -> DONE

Any failure moves the job to FAILED and raises TrainingError. The artifact
is only published by the last step, so a failed run leaves the previously
published model untouched.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import structlog
import torch

from txn_categorizer.core.config import Settings, settings as default_settings
from txn_categorizer.core.exceptions import TrainingError
from txn_categorizer.ml.categorization_model import (
    TransactionCategoryNet,
    fit_model,
)
from txn_categorizer.ml.category_index import CategoryIndex
from txn_categorizer.ml.text_features import Vocabulary, encode_batch, tokenize
from txn_categorizer.models.category_model import Category
from txn_categorizer.models.feedback_model import Feedback
from txn_categorizer.models.training_model import EpochMetrics, TrainingExample, TrainingReport
from txn_categorizer.models.transaction_model import Transaction
from txn_categorizer.repositories.category_repository import CategoryRepository
from txn_categorizer.repositories.feedback_repository import FeedbackRepository
from txn_categorizer.repositories.transaction_repository import TransactionRepository
from txn_categorizer.services.model_manager import ModelArtifact, ModelManager

logger = structlog.get_logger(__name__)


class TrainingState(str, Enum):
    IDLE = "idle"
    COLLECTING_DATA = "collecting_data"
    BUILDING_VOCABULARY = "building_vocabulary"
    ENCODING_EXAMPLES = "encoding_examples"
    TRAINING = "training"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


def collect_training_examples(
    transactions: Sequence[Transaction],
    feedback: Sequence[Feedback],
) -> List[TrainingExample]:
    """
    Build the training corpus: every transaction, then every correction.

    Feedback whose prediction was right adds no signal and is ignored.
    Corrections whose transaction has no description are skipped.
    """
    examples = [
        TrainingExample(description=txn.description, label=txn.category, source="transaction")
        for txn in transactions
    ]

    for fb in feedback:
        if not fb.is_correction:
            continue
        if not fb.description:
            logger.warning(
                "Skipping correction without transaction description",
                feedback_id=fb.id,
                transaction_id=fb.transaction,
            )
            continue
        examples.append(
            TrainingExample(description=fb.description, label=fb.actual_category, source="feedback")
        )

    return examples


class TrainingService:
    """Service that trains and publishes the categorization model"""

    def __init__(
        self,
        transaction_repository: TransactionRepository,
        feedback_repository: FeedbackRepository,
        model_manager: ModelManager,
        category_repository: Optional[CategoryRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.transaction_repository = transaction_repository
        self.feedback_repository = feedback_repository
        self.category_repository = category_repository
        self.model_manager = model_manager
        self.settings = settings or default_settings
        self.state = TrainingState.IDLE

    def _transition(self, state: TrainingState):
        logger.info("Training state changed", previous=self.state.value, state=state.value)
        self.state = state

    # ---------- Steps ----------

    def _load_sources(self) -> Tuple[List[Transaction], List[Feedback], List[Category]]:
        transactions = self.transaction_repository.find_labeled_transactions()
        feedback = self.feedback_repository.find_all_feedback()
        categories = (
            self.category_repository.find_all_categories()
            if self.category_repository is not None
            else []
        )
        return transactions, feedback, categories

    def _summarize_corpus(
        self, examples: List[TrainingExample], categories: List[Category]
    ) -> Tuple[Dict[str, int], Dict[str, int]]:
        corpus = pd.DataFrame([e.model_dump() for e in examples])
        per_category = {str(k): int(v) for k, v in corpus["label"].value_counts().items()}
        per_source = {str(k): int(v) for k, v in corpus["source"].value_counts().items()}

        if categories:
            known = {c.id: c.name for c in categories}
            unknown = sorted(set(per_category) - set(known))
            if unknown:
                logger.warning("Training labels reference unknown categories", category_ids=unknown)
            logger.info(
                "Examples per category",
                counts={known.get(cat_id) or cat_id: n for cat_id, n in per_category.items()},
            )
        return per_category, per_source

    def _train(
        self, sequences: np.ndarray, targets: np.ndarray, vocab_size: int, num_classes: int
    ) -> Tuple[TransactionCategoryNet, List[EpochMetrics], Optional[float]]:
        torch.manual_seed(self.settings.RANDOM_SEED)
        model = TransactionCategoryNet(
            vocab_size=vocab_size,
            num_classes=num_classes,
            embedding_dim=self.settings.EMBEDDING_DIM,
        )
        history, val_f1 = fit_model(
            model,
            sequences,
            targets,
            num_epochs=self.settings.TRAIN_EPOCHS,
            batch_size=self.settings.TRAIN_BATCH_SIZE,
            validation_split=self.settings.VALIDATION_SPLIT,
            lr=self.settings.LEARNING_RATE,
            seed=self.settings.RANDOM_SEED,
            device=self.settings.TRAIN_DEVICE,
        )
        return model.cpu(), history, val_f1

    # ---------- Entry point ----------

    async def run(self, version: Optional[str] = None) -> TrainingReport:
        """
        Train a new model from all transactions and corrections and publish it.

        Args:
            version: Version label for the artifact (default: configured label)

        Returns:
            TrainingReport with corpus statistics and per-epoch metrics

        Raises:
            TrainingError: on any failure; no artifact is published
        """
        version = version or self.settings.resolved_model_version
        max_length = self.settings.MAX_SEQUENCE_LENGTH
        logger.info("Starting model training", version=version)

        try:
            self._transition(TrainingState.COLLECTING_DATA)
            transactions, feedback, categories = await asyncio.to_thread(self._load_sources)
            examples = collect_training_examples(transactions, feedback)
            if not examples:
                raise TrainingError("No training examples available", state=self.state.value)
            per_category, per_source = self._summarize_corpus(examples, categories)
            logger.info(
                "Training data collected",
                transactions=len(transactions),
                feedback=len(feedback),
                examples=len(examples),
            )

            self._transition(TrainingState.BUILDING_VOCABULARY)
            token_lists = [tokenize(e.description) for e in examples]
            labels = [e.label for e in examples]
            vocabulary = Vocabulary.build(token_lists)
            category_index = CategoryIndex.from_labels(labels)

            self._transition(TrainingState.ENCODING_EXAMPLES)
            sequences = encode_batch(token_lists, vocabulary, max_length)
            targets = category_index.one_hot(labels)

            self._transition(TrainingState.TRAINING)
            model, history, val_f1 = await asyncio.to_thread(
                self._train, sequences, targets, len(vocabulary), len(category_index)
            )

            self._transition(TrainingState.PERSISTING)
            trained_at = datetime.now(timezone.utc)
            artifact = ModelArtifact(
                model=model,
                vocabulary=vocabulary,
                category_index=category_index,
                version=version,
                trained_at=trained_at,
                max_sequence_length=max_length,
            )
            path = await asyncio.to_thread(self.model_manager.save, artifact)
        except Exception as e:
            failed_in = self.state.value
            self._transition(TrainingState.FAILED)
            logger.error("Model training failed", failed_in=failed_in, error=str(e), exc_info=True)
            if isinstance(e, TrainingError):
                raise
            raise TrainingError(f"Training failed during {failed_in}: {e}", state=failed_in) from e

        self._transition(TrainingState.DONE)
        report = TrainingReport(
            version=version,
            trained_at=trained_at,
            artifact_path=str(path),
            transaction_examples=per_source.get("transaction", 0),
            feedback_examples=per_source.get("feedback", 0),
            total_examples=len(examples),
            examples_per_category=per_category,
            vocabulary_size=len(vocabulary),
            category_count=len(category_index),
            history=history,
            val_macro_f1=val_f1,
        )
        final = history[-1]
        logger.info(
            "Training complete",
            version=version,
            loss=round(final.loss, 4),
            accuracy=round(final.accuracy, 4),
            val_macro_f1=None if val_f1 is None else round(val_f1, 4),
            path=str(path),
        )
        return report
