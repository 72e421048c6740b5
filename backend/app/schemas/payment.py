"""
Payment schemas for API request/response validation.

WHAT: Pydantic schemas for the manual payments ledger.

WHY: The amount, date and method checks live in PaymentService so that
the messages match the ledger rules (amount above balance, missing date).
The schemas only shape the payload.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field

from app.models.payment import PaymentMethod
from app.services.billing import PaymentStatus


class PaymentCreate(BaseModel):
    """
    Schema for recording a manual payment.

    WHY: Supports offline payments (bank transfers, cash, card terminals).
    An unknown method is recorded as "other".
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., description="Payment amount received (> 0)")
    payment_date: Optional[date] = Field(default=None, description="Date received (required)")
    method: Optional[str] = Field(default=None, max_length=50)
    note: Optional[str] = Field(default=None, max_length=2000)


class PaymentUpdate(BaseModel):
    """
    Schema for editing a payment. At least one field must be provided.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[Decimal] = None
    payment_date: Optional[date] = None
    method: Optional[str] = Field(default=None, max_length=50)
    note: Optional[str] = Field(default=None, max_length=2000)


class PaymentResponse(BaseModel):
    """Schema for payment response data."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    amount: float
    payment_date: date
    method: PaymentMethod
    note: Optional[str]
    created_at: datetime


class PaymentListResponse(BaseModel):
    """
    Payments of one invoice with the balance they produce.
    """

    payments: List[PaymentResponse]
    total: float
    paid_amount: float
    balance_due: float
    payment_status: PaymentStatus
