"""
Train the Transaction Categorization Model

Reads every labeled transaction and every category correction from MongoDB,
trains a new model and publishes it under MODEL_DIR. Intended to be run as a
standalone job; do not run two instances against the same MODEL_DIR.

Running services keep serving their loaded model until they restart.
"""

import argparse
import asyncio
import sys

import structlog
from pymongo import MongoClient

from txn_categorizer.core.config import settings
from txn_categorizer.core.exceptions import TrainingError
from txn_categorizer.core.logging_config import configure_logging
from txn_categorizer.repositories.mongo_category_repository import MongoCategoryRepository
from txn_categorizer.repositories.mongo_feedback_repository import MongoFeedbackRepository
from txn_categorizer.repositories.mongo_transaction_repository import MongoTransactionRepository
from txn_categorizer.services.model_manager import ModelManager
from txn_categorizer.services.training_service import TrainingService

logger = structlog.get_logger(__name__)


async def train(version: str, models_dir: str) -> int:
    mongo_client = MongoClient(settings.MONGO_URI)
    try:
        db = mongo_client[settings.MONGO_DB]
        service = TrainingService(
            transaction_repository=MongoTransactionRepository(db, settings.TRANSACTIONS_COLLECTION),
            feedback_repository=MongoFeedbackRepository(
                db,
                collection_name=settings.FEEDBACK_COLLECTION,
                transactions_collection=settings.TRANSACTIONS_COLLECTION,
            ),
            category_repository=MongoCategoryRepository(db, settings.CATEGORIES_COLLECTION),
            model_manager=ModelManager(models_dir),
            settings=settings,
        )
        try:
            report = await service.run(version=version)
        except TrainingError as e:
            logger.error("Training run aborted", state=e.state, error=e.message)
            return 1
    finally:
        mongo_client.close()

    print(report.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Train the transaction categorization model")
    parser.add_argument(
        "--version",
        type=str,
        default=settings.resolved_model_version,
        help="Version label for the artifact (default: ML_MODEL_VERSION or 1.0.0)",
    )
    parser.add_argument(
        "--models-dir",
        type=str,
        default=settings.MODEL_DIR,
        help=f"Artifact directory (default: {settings.MODEL_DIR})",
    )
    args = parser.parse_args()

    configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)
    sys.exit(asyncio.run(train(args.version, args.models_dir)))
