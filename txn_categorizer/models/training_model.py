from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class TrainingExample(BaseModel):
    """One (description, label) pair of a training corpus"""

    model_config = ConfigDict(frozen=True)

    description: Optional[str]
    label: str = Field(..., description="Category id")
    source: str = Field("transaction", description="'transaction' or 'feedback'")


class EpochMetrics(BaseModel):
    epoch: int
    loss: float
    accuracy: float
    val_loss: Optional[float] = None
    val_accuracy: Optional[float] = None


class TrainingReport(BaseModel):
    """Summary of a successful training run"""

    version: str
    trained_at: datetime
    artifact_path: str
    transaction_examples: int
    feedback_examples: int
    total_examples: int
    examples_per_category: Dict[str, int] = Field(default_factory=dict)
    vocabulary_size: int
    category_count: int
    history: List[EpochMetrics] = Field(default_factory=list)
    val_macro_f1: Optional[float] = None


class ModelMetadata(BaseModel):
    """Snapshot of the inference service state"""

    version: str = "N/A"
    load_timestamp: Optional[datetime] = None
    is_ready: bool = False
    vocabulary_size: int = 0
    category_count: int = 0
