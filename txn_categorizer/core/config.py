from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_VERSION = "1.0.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Transaction Categorizer"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Training data store (read-only from this package's point of view)
    MONGO_URI: str = Field(default="mongodb://localhost:27017")
    MONGO_DB: str = Field(default="finance_dashboard")
    TRANSACTIONS_COLLECTION: str = "transactions"
    FEEDBACK_COLLECTION: str = "feedbacks"
    CATEGORIES_COLLECTION: str = "categories"

    # Model artifact
    MODEL_DIR: str = "ml/categorization_model"
    ML_MODEL_VERSION: Optional[str] = None

    # Model architecture (fixed)
    MAX_SEQUENCE_LENGTH: int = Field(default=50, gt=0)
    EMBEDDING_DIM: int = Field(default=16, gt=0)

    # Training run
    TRAIN_EPOCHS: int = Field(default=10, gt=0)
    TRAIN_BATCH_SIZE: int = Field(default=32, gt=0)
    VALIDATION_SPLIT: float = Field(default=0.2, ge=0.0, lt=1.0)
    LEARNING_RATE: float = Field(default=1e-3, gt=0.0)
    RANDOM_SEED: int = 42
    # seeded runs are only reproducible on CPU
    TRAIN_DEVICE: str = "cpu"

    @property
    def resolved_model_version(self) -> str:
        """Version label for the artifact, falling back when none is configured."""
        return self.ML_MODEL_VERSION or DEFAULT_MODEL_VERSION


settings = Settings()
