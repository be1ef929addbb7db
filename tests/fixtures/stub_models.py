"""Stub classifiers standing in for a trained network."""

import torch
import torch.nn as nn


class FixedScoreModel(nn.Module):
    """Always scores one class highest."""

    def __init__(self, num_classes: int, winner: int = 0):
        super().__init__()
        self.num_classes = num_classes
        self.winner = winner

    def forward(self, sequences: torch.Tensor) -> torch.Tensor:
        logits = torch.zeros(sequences.shape[0], self.num_classes)
        logits[:, self.winner] = 5.0
        return logits


class FlatModel(FixedScoreModel):
    """Scores every class equally."""

    def forward(self, sequences: torch.Tensor) -> torch.Tensor:
        return torch.zeros(sequences.shape[0], self.num_classes)


class FirstTokenModel(FixedScoreModel):
    """Scores class 1 for sequences starting with token 2, class 0 otherwise."""

    def forward(self, sequences: torch.Tensor) -> torch.Tensor:
        logits = torch.zeros(sequences.shape[0], self.num_classes)
        logits[:, 0] = 1.0
        logits[sequences[:, 0] == 2, 1] = 2.0
        return logits


class FailingModel(nn.Module):
    def forward(self, sequences: torch.Tensor) -> torch.Tensor:
        raise RuntimeError("forward pass exploded")
