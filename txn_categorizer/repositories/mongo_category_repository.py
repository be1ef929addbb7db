"""MongoDB implementation of CategoryRepository"""

from typing import List

from pymongo.database import Database

from txn_categorizer.models.category_model import Category
from txn_categorizer.repositories.category_repository import CategoryRepository


class MongoCategoryRepository(CategoryRepository):
    """MongoDB implementation of CategoryRepository"""

    def __init__(self, db: Database, collection_name: str = "categories"):
        self.db = db
        self.collection = db[collection_name]

    def find_all_categories(self) -> List[Category]:
        return [
            Category(_id=str(doc["_id"]), name=doc.get("name"))
            for doc in self.collection.find({}, {"name": 1}).sort("_id", 1)
        ]
