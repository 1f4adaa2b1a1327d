"""
Request/response schemas

Order documents are stored and exchanged with camelCase keys (shopName,
createdAt, ...); the models expose snake_case attributes and accept either.
"""

from __future__ import annotations
from datetime import datetime
from typing import Annotated, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderDraft(CamelModel):
    """Order as submitted by the intake form. Required fields are checked by the store."""
    shop_name: Optional[str] = None
    client_name: Optional[str] = None
    client_number: Optional[str] = None
    delivery_date: Optional[str] = None
    pickup_date: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    measurements: dict[str, Annotated[float, Field(allow_inf_nan=False)]] = Field(default_factory=dict)


class OrderFilter(CamelModel):
    shop: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class AdminPrincipal(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str = "admin"


# Admin list/detail views read orders back as plain dicts; these models
# describe what the dashboard controller gets from them.

class OrderSummary(CamelModel):
    id: str = Field(alias="_id")
    shop_name: str
    client_name: Optional[str] = None
    client_number: Optional[str] = None
    category: str
    subcategory: str
    created_at: datetime


class Order(OrderSummary):
    delivery_date: Optional[str] = None
    pickup_date: Optional[str] = None
    measurements: dict[str, Optional[float]] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None
