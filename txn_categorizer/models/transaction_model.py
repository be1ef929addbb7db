from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Transaction(BaseModel):
    """Labeled transaction as read from the transaction store"""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id")
    description: Optional[str] = Field(None, description="Free-text transaction description")
    category: str = Field(..., description="Category id the transaction is filed under")
