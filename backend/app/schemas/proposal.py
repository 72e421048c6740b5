"""
Proposal schemas for API request/response validation.

WHAT: Pydantic schemas for proposals, their line items and the
proposal-to-invoice conversion result.

HOW: Line items reuse the invoice item schemas; the total is computed
server-side and never accepted from the client.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from app.models.proposal import ProposalStatus
from app.schemas.invoice import LineItemInput, LineItemResponse


# ============================================================================
# Request Schemas
# ============================================================================


class ProposalCreate(BaseModel):
    """Schema for creating a proposal (always starts as draft)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255, description="Proposal title")
    client_id: Optional[int] = Field(default=None, description="Recipient client")
    items: List[LineItemInput] = Field(..., min_length=1)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    notes: Optional[str] = Field(default=None, max_length=5000)


class ProposalUpdate(BaseModel):
    """Schema for updating a draft proposal."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    client_id: Optional[int] = None
    items: Optional[List[LineItemInput]] = Field(default=None, min_length=1)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    notes: Optional[str] = Field(default=None, max_length=5000)


class ProposalSendRequest(BaseModel):
    """Options for sending a proposal."""

    send_email: bool = Field(
        default=True,
        description="Email the review link to the client when it has an email",
    )


# ============================================================================
# Response Schemas
# ============================================================================


class ProposalResponse(BaseModel):
    """Schema for proposal response data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    status: ProposalStatus
    client_id: Optional[int]
    currency: Optional[str]
    tax_rate: float
    total: float
    notes: Optional[str]
    public_token: str
    sent_at: Optional[datetime]
    converted_to_invoice_id: Optional[int]
    is_editable: bool
    created_at: datetime
    updated_at: datetime
    items: List[LineItemResponse] = []


class ProposalListResponse(BaseModel):
    """Paginated list response for proposals."""

    items: List[ProposalResponse]
    total: int
    skip: int
    limit: int


class PublicProposalResponse(BaseModel):
    """
    Proposal as shown on the unauthenticated review page.

    WHY: Leaves out internal ids and the conversion pointer.
    """

    model_config = ConfigDict(from_attributes=True)

    title: str
    status: ProposalStatus
    agency_name: str
    client_name: Optional[str] = None
    currency: Optional[str]
    tax_rate: float
    total: float
    notes: Optional[str]
    sent_at: Optional[datetime]
    items: List[LineItemResponse] = []


class ProposalConvertResponse(BaseModel):
    """Result of converting an approved proposal."""

    proposal_id: int
    invoice_id: int
    invoice_number: str
