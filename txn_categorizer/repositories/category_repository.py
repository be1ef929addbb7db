"""Category repository interface following clean architecture"""

from abc import ABC, abstractmethod
from typing import List

from txn_categorizer.models.category_model import Category


class CategoryRepository(ABC):
    """Read access to spending categories"""

    @abstractmethod
    def find_all_categories(self) -> List[Category]:
        pass
