"""
Service catalogue schemas.

Prices are accepted as decimals and returned as floats, like every
other money field in the API.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from app.models.service import ServiceUnitType


class ServiceCreate(BaseModel):
    """Schema for adding a service to the catalogue."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    default_unit_price: Decimal = Field(..., ge=0, description="Price per unit")
    unit_type: ServiceUnitType = Field(..., description="hours, days, project or item")
    currency: Optional[str] = Field(
        default=None,
        max_length=3,
        description="ISO currency code (defaults to the agency currency)",
    )


class ServiceUpdate(BaseModel):
    """
    Schema for editing a service. Only provided fields change.

    Sending is_active=false retires a service without deleting it; a
    null or blank description clears it.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    default_unit_price: Optional[Decimal] = Field(default=None, ge=0)
    unit_type: Optional[ServiceUnitType] = None
    currency: Optional[str] = Field(default=None, max_length=3)
    is_active: Optional[bool] = None


class ServiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    default_unit_price: float
    unit_type: ServiceUnitType
    currency: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ServiceListResponse(BaseModel):
    items: List[ServiceResponse]
    total: int
