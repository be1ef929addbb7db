"""
Text features for transaction descriptions

- Word tokenizer (lowercase)
- Vocabulary built per training run (token -> 1-based index, 0 = padding)
- Fixed-length integer sequence encoding
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from txn_categorizer.core.exceptions import ArtifactLoadError

MAX_SEQUENCE_LENGTH = 50
PADDING_INDEX = 0

_WORD_RE = re.compile(r"[a-z0-9_]+")


# ============================================================
# 1. Tokenizer
# ============================================================

def tokenize(description: Optional[str]) -> List[str]:
    """Lower-case a description and split it into word tokens.

    Returns an empty list for None or empty input. Never raises.
    """
    if description is None:
        return []
    if not isinstance(description, str):
        description = str(description)
    return _WORD_RE.findall(description.lower())


# ============================================================
# 2. Vocabulary
# ============================================================

class Vocabulary:
    """Token -> dense index mapping, contiguous from 1."""

    def __init__(self, token_to_index: Optional[Dict[str, int]] = None):
        self.token_to_index: Dict[str, int] = dict(token_to_index or {})

    @classmethod
    def build(cls, corpus: Iterable[Sequence[str]]) -> "Vocabulary":
        """Assign each distinct token the next index in first-seen order."""
        token_to_index: Dict[str, int] = {}
        for tokens in corpus:
            for token in tokens:
                if token not in token_to_index:
                    token_to_index[token] = len(token_to_index) + 1
        return cls(token_to_index)

    def get(self, token: str) -> Optional[int]:
        return self.token_to_index.get(token)

    def __contains__(self, token: str) -> bool:
        return token in self.token_to_index

    def __len__(self) -> int:
        return len(self.token_to_index)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Vocabulary):
            return NotImplemented
        return self.token_to_index == other.token_to_index

    def to_dict(self) -> Dict[str, int]:
        return dict(self.token_to_index)

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> "Vocabulary":
        """Restore a vocabulary snapshot, rejecting gaps, duplicates and index 0."""
        if not isinstance(data, dict):
            raise ArtifactLoadError("Vocabulary snapshot must be a JSON object")
        indices = []
        for token, index in data.items():
            if not isinstance(token, str) or isinstance(index, bool) or not isinstance(index, int):
                raise ArtifactLoadError(f"Malformed vocabulary entry: {token!r} -> {index!r}")
            indices.append(index)
        if sorted(indices) != list(range(1, len(indices) + 1)):
            raise ArtifactLoadError("Vocabulary indices must be contiguous starting at 1")
        return cls(data)


# ============================================================
# 3. Sequence encoding
# ============================================================

def encode_sequence(
    tokens: Sequence[str],
    vocabulary: Vocabulary,
    max_length: int = MAX_SEQUENCE_LENGTH,
) -> List[int]:
    """Map tokens to indices, right-pad with 0 or truncate to max_length.

    Out-of-vocabulary tokens are dropped before padding/truncation.
    """
    indices = [vocabulary.get(token) for token in tokens]
    sequence = [i for i in indices if i is not None][:max_length]
    return sequence + [PADDING_INDEX] * (max_length - len(sequence))


def encode_batch(
    token_lists: Sequence[Sequence[str]],
    vocabulary: Vocabulary,
    max_length: int = MAX_SEQUENCE_LENGTH,
) -> np.ndarray:
    """Encode many token lists into an (n, max_length) int64 array."""
    if len(token_lists) == 0:
        return np.zeros((0, max_length), dtype=np.int64)
    return np.array(
        [encode_sequence(tokens, vocabulary, max_length) for tokens in token_lists],
        dtype=np.int64,
    )
