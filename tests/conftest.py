"""Shared test fixtures and configuration for all tests."""

from typing import List

import pytest

from txn_categorizer.core.config import Settings
from txn_categorizer.ml.category_index import CategoryIndex
from txn_categorizer.ml.text_features import Vocabulary
from txn_categorizer.models.category_model import Category
from txn_categorizer.models.feedback_model import Feedback
from txn_categorizer.models.transaction_model import Transaction
from txn_categorizer.repositories.category_repository import CategoryRepository
from txn_categorizer.repositories.feedback_repository import FeedbackRepository
from txn_categorizer.repositories.transaction_repository import TransactionRepository
from txn_categorizer.services.model_manager import ModelArtifact, ModelManager

from tests.fixtures.stub_models import FixedScoreModel


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self, transactions: List[Transaction]):
        self.transactions = list(transactions)

    def find_labeled_transactions(self) -> List[Transaction]:
        return list(self.transactions)


class InMemoryFeedbackRepository(FeedbackRepository):
    def __init__(self, feedback: List[Feedback]):
        self.feedback = list(feedback)

    def find_all_feedback(self) -> List[Feedback]:
        return list(self.feedback)


class InMemoryCategoryRepository(CategoryRepository):
    def __init__(self, categories: List[Category]):
        self.categories = list(categories)

    def find_all_categories(self) -> List[Category]:
        return list(self.categories)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with a temporary artifact directory and a short training run."""
    return Settings(
        APP_NAME="Transaction Categorizer (Test)",
        LOG_LEVEL="DEBUG",
        MODEL_DIR=str(tmp_path / "categorization_model"),
        ML_MODEL_VERSION="test-1.0",
        TRAIN_EPOCHS=3,
        TRAIN_BATCH_SIZE=4,
        VALIDATION_SPLIT=0.2,
        RANDOM_SEED=7,
    )


@pytest.fixture
def model_manager(test_settings) -> ModelManager:
    return ModelManager(test_settings.MODEL_DIR)


@pytest.fixture
def sample_transactions() -> List[Transaction]:
    return [
        Transaction(_id="t1", description="coffee shop", category="FOOD"),
        Transaction(_id="t2", description="gas station", category="TRANSPORT"),
    ]


@pytest.fixture
def sample_feedback() -> List[Feedback]:
    return [
        # correction: contributes an example
        Feedback(_id="f1", transaction="t3", predictedCategory="FOOD",
                 actualCategory="TRANSPORT", description="Shell fuel"),
        # confirmed prediction: no signal
        Feedback(_id="f2", transaction="t1", predictedCategory="FOOD",
                 actualCategory="FOOD", description="coffee shop"),
    ]


@pytest.fixture
def make_repositories():
    """Factory fixture returning in-memory repositories."""
    def _make(transactions=(), feedback=(), categories=()):
        return (
            InMemoryTransactionRepository(list(transactions)),
            InMemoryFeedbackRepository(list(feedback)),
            InMemoryCategoryRepository(list(categories)),
        )
    return _make


@pytest.fixture
def coffee_gas_artifact() -> ModelArtifact:
    """Artifact for the coffee/gas corpus with a stub model preferring class 0."""
    vocabulary = Vocabulary({"coffee": 1, "shop": 2, "gas": 3, "station": 4})
    category_index = CategoryIndex(["FOOD", "TRANSPORT"])
    return ModelArtifact(
        model=FixedScoreModel(num_classes=2, winner=0),
        vocabulary=vocabulary,
        category_index=category_index,
        version="stub",
    )
