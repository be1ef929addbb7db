"""
Transaction category classifier (PyTorch)

Bag-of-tokens network: embedding -> mean over all sequence positions ->
linear layer -> softmax. Word order is ignored; descriptions are short and
dominated by merchant keywords.
"""

import math
from typing import Callable, List, Optional, Tuple

import numpy as np
import structlog
import torch
import torch.nn as nn
from sklearn.metrics import f1_score
from sklearn.model_selection import train_test_split

from txn_categorizer.models.training_model import EpochMetrics

logger = structlog.get_logger(__name__)


# ============================================================
# 1. Network
# ============================================================

class TransactionCategoryNet(nn.Module):
    def __init__(self, vocab_size: int, num_classes: int, embedding_dim: int = 16):
        super().__init__()
        self.vocab_size = vocab_size
        self.num_classes = num_classes
        self.embedding_dim = embedding_dim

        # +1 for the reserved padding index 0
        self.embedding = nn.Embedding(vocab_size + 1, embedding_dim)
        self.classifier = nn.Linear(embedding_dim, num_classes)

    def forward(self, sequences: torch.Tensor) -> torch.Tensor:
        embedded = self.embedding(sequences)   # (batch, L, dim)
        pooled = embedded.mean(dim=1)          # average over every position, padding included
        return self.classifier(pooled)         # logits

    def predict_proba(self, sequences: torch.Tensor) -> torch.Tensor:
        return torch.softmax(self.forward(sequences), dim=1)


# ============================================================
# 2. Training loop
# ============================================================

def _split_indices(
    n: int, validation_split: float, seed: int
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    indices = np.arange(n)
    if validation_split <= 0 or n < 2:
        return indices, None
    # the held-out rows must leave at least one training row
    if n - math.ceil(validation_split * n) < 1:
        return indices, None
    train_idx, val_idx = train_test_split(
        indices, test_size=validation_split, random_state=seed, shuffle=True
    )
    return np.sort(train_idx), np.sort(val_idx)


def _evaluate(
    model: nn.Module,
    criterion: nn.Module,
    X: torch.Tensor,
    Y: torch.Tensor,
) -> Tuple[float, float, np.ndarray]:
    model.eval()
    with torch.no_grad():
        logits = model(X)
        loss = criterion(logits, Y).item()
        preds = torch.argmax(logits, dim=1)
        accuracy = (preds == torch.argmax(Y, dim=1)).float().mean().item()
    return loss, accuracy, preds.cpu().numpy()


def fit_model(
    model: TransactionCategoryNet,
    sequences: np.ndarray,
    targets: np.ndarray,
    num_epochs: int = 10,
    batch_size: int = 32,
    validation_split: float = 0.2,
    lr: float = 1e-3,
    seed: int = 42,
    device: str = "cpu",
    on_epoch_end: Optional[Callable[[EpochMetrics], None]] = None,
) -> Tuple[List[EpochMetrics], Optional[float]]:
    """
    Train the model in place with Adam + cross-entropy on one-hot targets.

    sequences: (n, L) int array of token indices
    targets:   (n, K) float one-hot labels

    The validation split is only used for reporting. Every epoch runs
    regardless of the metrics.
    Runs are reproducible for a fixed seed on CPU; CUDA kernels are not
    guaranteed to be deterministic.

    Returns (per-epoch history, validation macro F1 or None).
    """
    if len(sequences) == 0:
        raise ValueError("Cannot train on an empty corpus")
    if len(sequences) != len(targets):
        raise ValueError(
            f"Sequence/target count mismatch: {len(sequences)} != {len(targets)}"
        )

    model.to(device)

    train_idx, val_idx = _split_indices(len(sequences), validation_split, seed)

    X_train = torch.as_tensor(sequences[train_idx], dtype=torch.long)
    Y_train = torch.as_tensor(targets[train_idx], dtype=torch.float32)
    if val_idx is not None:
        X_val = torch.as_tensor(sequences[val_idx], dtype=torch.long).to(device)
        Y_val = torch.as_tensor(targets[val_idx], dtype=torch.float32).to(device)

    optimizer = torch.optim.Adam(model.parameters(), lr=lr)
    # Probability targets: softmax + categorical cross-entropy against one-hot labels
    criterion = nn.CrossEntropyLoss()
    rng = np.random.default_rng(seed)

    history: List[EpochMetrics] = []
    val_preds = None
    n = len(train_idx)

    for epoch in range(num_epochs):
        model.train()
        total_loss = 0.0
        correct = 0

        order = rng.permutation(n)
        for start in range(0, n, batch_size):
            idx = torch.as_tensor(order[start:start + batch_size])
            X_b = X_train[idx].to(device)
            Y_b = Y_train[idx].to(device)

            optimizer.zero_grad()
            logits = model(X_b)
            loss = criterion(logits, Y_b)
            loss.backward()
            optimizer.step()

            total_loss += loss.item() * len(idx)
            correct += (torch.argmax(logits, dim=1) == torch.argmax(Y_b, dim=1)).sum().item()

        metrics = EpochMetrics(
            epoch=epoch + 1,
            loss=total_loss / n,
            accuracy=correct / n,
        )

        if val_idx is not None:
            val_loss, val_acc, val_preds = _evaluate(model, criterion, X_val, Y_val)
            metrics.val_loss = val_loss
            metrics.val_accuracy = val_acc

        history.append(metrics)
        logger.info(
            "Epoch finished",
            epoch=metrics.epoch,
            num_epochs=num_epochs,
            loss=round(metrics.loss, 4),
            accuracy=round(metrics.accuracy, 4),
            val_loss=None if metrics.val_loss is None else round(metrics.val_loss, 4),
            val_accuracy=None if metrics.val_accuracy is None else round(metrics.val_accuracy, 4),
        )
        if on_epoch_end is not None:
            on_epoch_end(metrics)

    model.eval()

    val_f1 = None
    if val_idx is not None and val_preds is not None:
        y_true = np.argmax(targets[val_idx], axis=1)
        val_f1 = float(f1_score(y_true, val_preds, average="macro", zero_division=0))

    return history, val_f1
