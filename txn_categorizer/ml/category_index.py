"""Bidirectional category id <-> class index mapping"""

from typing import Dict, Iterable, List, Sequence

import numpy as np

from txn_categorizer.core.exceptions import ArtifactLoadError, UnknownCategoryError


class CategoryIndex:
    """Total bijection between the category ids of one training run and [0, K)."""

    def __init__(self, categories: Sequence[str]):
        if len(set(categories)) != len(categories):
            raise ValueError("Category ids must be unique")
        self.categories: List[str] = list(categories)
        self._index: Dict[str, int] = {cat: i for i, cat in enumerate(self.categories)}

    @classmethod
    def from_labels(cls, labels: Iterable[str]) -> "CategoryIndex":
        """Build the index from observed labels, in first-seen order."""
        seen: Dict[str, None] = {}
        for label in labels:
            seen.setdefault(label, None)
        return cls(list(seen))

    def index_of(self, category_id: str) -> int:
        try:
            return self._index[category_id]
        except KeyError:
            raise UnknownCategoryError(category_id) from None

    def decode(self, class_index: int) -> str:
        if not 0 <= class_index < len(self.categories):
            raise IndexError(f"Class index {class_index} out of range for {len(self)} categories")
        return self.categories[class_index]

    def one_hot(self, labels: Sequence[str]) -> np.ndarray:
        """One-hot encode category ids into an (n, K) float32 matrix."""
        out = np.zeros((len(labels), len(self.categories)), dtype=np.float32)
        for row, label in enumerate(labels):
            out[row, self.index_of(label)] = 1.0
        return out

    def __len__(self) -> int:
        return len(self.categories)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CategoryIndex):
            return NotImplemented
        return self.categories == other.categories

    def to_dict(self) -> Dict[str, str]:
        # JSON object keys are strings
        return {str(i): cat for i, cat in enumerate(self.categories)}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "CategoryIndex":
        if not isinstance(data, dict) or not data:
            raise ArtifactLoadError("Category map snapshot must be a non-empty JSON object")
        try:
            by_index = {int(k): v for k, v in data.items()}
        except (TypeError, ValueError) as e:
            raise ArtifactLoadError(f"Malformed category map key: {e}") from e
        if sorted(by_index) != list(range(len(by_index))):
            raise ArtifactLoadError("Category map indices must cover [0, K) without gaps")
        categories = [by_index[i] for i in range(len(by_index))]
        if not all(isinstance(c, str) and c for c in categories):
            raise ArtifactLoadError("Category map values must be non-empty category ids")
        if len(set(categories)) != len(categories):
            raise ArtifactLoadError("Category map must be a bijection")
        return cls(categories)
