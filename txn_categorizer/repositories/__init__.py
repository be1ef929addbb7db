"""Repository interfaces and implementations for clean architecture"""

from txn_categorizer.repositories.transaction_repository import TransactionRepository
from txn_categorizer.repositories.feedback_repository import FeedbackRepository
from txn_categorizer.repositories.category_repository import CategoryRepository

__all__ = ["TransactionRepository", "FeedbackRepository", "CategoryRepository"]
