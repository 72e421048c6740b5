"""
Subscription schemas for plan information and invoice usage.
"""

from typing import Optional, List

from pydantic import BaseModel


class PlanInfo(BaseModel):
    """Information about a subscription plan."""

    plan: str
    name: str
    description: str
    monthly_invoice_limit: Optional[int]
    user_limit: int


class PlansResponse(BaseModel):
    """All available plans plus the caller's current plan."""

    plans: List[PlanInfo]
    current_plan: str


class InvoiceUsageResponse(BaseModel):
    """
    Monthly invoice usage.

    limit and remaining are null on unlimited plans.
    """

    plan: str
    period: str
    limit: Optional[int]
    used: int
    remaining: Optional[int]
    at_limit: bool


class UserUsageResponse(BaseModel):
    """Active users against the plan's user limit."""

    plan: str
    active_user_count: int
    user_limit: int
    at_limit: bool
