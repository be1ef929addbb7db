"""MongoDB implementation of FeedbackRepository"""

from typing import List

import structlog
from pymongo.database import Database

from txn_categorizer.models.feedback_model import Feedback
from txn_categorizer.repositories.feedback_repository import FeedbackRepository

logger = structlog.get_logger(__name__)


class MongoFeedbackRepository(FeedbackRepository):
    """MongoDB implementation of FeedbackRepository"""

    def __init__(
        self,
        db: Database,
        collection_name: str = "feedbacks",
        transactions_collection: str = "transactions",
    ):
        self.db = db
        self.collection = db[collection_name]
        self.transactions_collection = transactions_collection

    def find_all_feedback(self) -> List[Feedback]:
        """Load feedback joined with the referenced transaction's description"""
        pipeline = [
            {"$sort": {"_id": 1}},
            {
                "$lookup": {
                    "from": self.transactions_collection,
                    "localField": "transaction",
                    "foreignField": "_id",
                    "as": "transaction_doc",
                }
            },
            {
                "$project": {
                    "transaction": 1,
                    "predictedCategory": 1,
                    "actualCategory": 1,
                    "description": {"$arrayElemAt": ["$transaction_doc.description", 0]},
                }
            },
        ]

        feedback = []
        for doc in self.collection.aggregate(pipeline):
            if doc.get("predictedCategory") is None or doc.get("actualCategory") is None:
                logger.warning("Skipping feedback without category references", feedback_id=str(doc["_id"]))
                continue
            feedback.append(
                Feedback(
                    _id=str(doc["_id"]),
                    transaction=str(doc.get("transaction")),
                    predictedCategory=str(doc["predictedCategory"]),
                    actualCategory=str(doc["actualCategory"]),
                    description=doc.get("description"),
                )
            )

        logger.debug("Loaded feedback", count=len(feedback))
        return feedback
