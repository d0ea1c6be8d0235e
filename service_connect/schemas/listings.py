from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ListingCategory = Literal[
    "DIY",
    "Cleaning",
    "Gardening",
    "IT",
    "Moving",
    "Electrical",
    "Plumbing",
    "Painting",
    "Cooking",
    "Mechanics",
    "Other",
]
PriceType = Literal["hour", "day", "fixed", "negotiable"]


class ListingCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    category: ListingCategory
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    price_type: PriceType = "negotiable"
    location: str | None = Field(default=None, max_length=200)


class ListingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: str
    description: str
    category: ListingCategory
    price: Decimal | None
    price_type: PriceType
    location: str | None
    is_active: bool
    created_at: datetime
