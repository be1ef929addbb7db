from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Feedback(BaseModel):
    """User correction of a predicted category"""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id")
    transaction: str = Field(..., description="Id of the corrected transaction")
    predicted_category: str = Field(..., alias="predictedCategory")
    actual_category: str = Field(..., alias="actualCategory")
    description: Optional[str] = Field(
        None,
        description="Description of the referenced transaction, None when it no longer exists",
    )

    @property
    def is_correction(self) -> bool:
        return self.predicted_category != self.actual_category
