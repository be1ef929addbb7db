"""
Exceptions raised by the categorization pipeline
"""


class CategorizationError(Exception):
    """Base class for categorization pipeline errors"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ArtifactLoadError(CategorizationError):
    """Model artifact is missing, incomplete or malformed"""


class PredictionError(CategorizationError):
    """Runtime failure while computing a prediction"""


class TrainingError(CategorizationError):
    """A training run aborted; no artifact was published"""
    def __init__(self, message: str, state: str = "unknown"):
        self.state = state
        super().__init__(message)


class UnknownCategoryError(CategorizationError, KeyError):
    """Category id is not part of the trained category index"""
    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Unknown category id: {category_id!r}")

    def __str__(self) -> str:
        return self.message
