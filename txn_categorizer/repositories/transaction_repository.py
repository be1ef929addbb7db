"""Transaction repository interface following clean architecture"""

from abc import ABC, abstractmethod
from typing import List

from txn_categorizer.models.transaction_model import Transaction


class TransactionRepository(ABC):
    """Read access to labeled transactions"""

    @abstractmethod
    def find_labeled_transactions(self) -> List[Transaction]:
        """
        Find every transaction that carries a category.

        Returns:
            Transactions in a stable, reproducible order
        """
        pass
