"""Feedback repository interface following clean architecture"""

from abc import ABC, abstractmethod
from typing import List

from txn_categorizer.models.feedback_model import Feedback


class FeedbackRepository(ABC):
    """Read access to user category corrections"""

    @abstractmethod
    def find_all_feedback(self) -> List[Feedback]:
        """
        Find every feedback record with the referenced transaction's
        description resolved.

        Returns:
            Feedback records in a stable, reproducible order
        """
        pass
