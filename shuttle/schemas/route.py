"""
Pydantic schemas for the route catalog.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RouteCreate(BaseModel):
    origin_city: str = Field(..., min_length=2, max_length=100)
    destination_city: str = Field(..., min_length=2, max_length=100)


class RouteUpdate(BaseModel):
    origin_city: Optional[str] = Field(None, min_length=2, max_length=100)
    destination_city: Optional[str] = Field(None, min_length=2, max_length=100)


class RouteResponse(BaseModel):
    id: int
    origin_city: str
    destination_city: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
