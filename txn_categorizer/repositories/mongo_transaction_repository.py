"""MongoDB implementation of TransactionRepository"""

from typing import List

import structlog
from pymongo.database import Database

from txn_categorizer.models.transaction_model import Transaction
from txn_categorizer.repositories.transaction_repository import TransactionRepository

logger = structlog.get_logger(__name__)


class MongoTransactionRepository(TransactionRepository):
    """MongoDB implementation of TransactionRepository"""

    def __init__(self, db: Database, collection_name: str = "transactions"):
        """
        Args:
            db: MongoDB database instance
            collection_name: Collection holding transactions
        """
        self.db = db
        self.collection = db[collection_name]

    def find_labeled_transactions(self) -> List[Transaction]:
        """Find transactions that have a category reference, ordered by _id"""
        query = {"category": {"$exists": True, "$nin": [None, ""]}}
        projection = {"description": 1, "category": 1}

        transactions = []
        for doc in self.collection.find(query, projection).sort("_id", 1):
            transactions.append(
                Transaction(
                    _id=str(doc["_id"]),
                    description=doc.get("description"),
                    category=str(doc["category"]),
                )
            )

        logger.debug("Loaded labeled transactions", count=len(transactions))
        return transactions
