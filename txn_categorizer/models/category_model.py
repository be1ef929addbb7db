from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Category(BaseModel):
    """Spending category"""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: Optional[str] = Field(None, description="Display name of the category")
