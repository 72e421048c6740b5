"""
Support ticket schemas.
"""

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from app.models.support_ticket import TicketPriority


class SupportTicketCreate(BaseModel):
    """Subject and description are both required after trimming."""

    model_config = ConfigDict(str_strip_whitespace=True)

    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=10000)


class SupportTicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject: str
    description: str
    priority: TicketPriority
    plan: str
    email: Optional[str]
    created_at: datetime


class SupportTicketListResponse(BaseModel):
    items: List[SupportTicketResponse]
    total: int
    skip: int
    limit: int
