"""
Client schemas for API request/response validation.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ClientCreate(BaseModel):
    """Schema for creating a client."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255, description="Client name")
    email: Optional[EmailStr] = Field(
        default=None,
        description="Billing email (required before invoices can be sent)",
    )
    company: Optional[str] = Field(default=None, max_length=255)


class ClientUpdate(BaseModel):
    """Schema for updating a client. Only provided fields change."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    company: Optional[str] = Field(default=None, max_length=255)


class ClientResponse(BaseModel):
    """Schema for client response data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: Optional[str]
    company: Optional[str]
    created_at: datetime
    updated_at: datetime


class ClientListResponse(BaseModel):
    """Paginated list response for clients."""

    items: List[ClientResponse]
    total: int
    skip: int
    limit: int
