"""
Subscription API endpoints.

WHAT: REST API endpoints for plan information:
1. GET /subscription/plans - List available plans
2. GET /subscription/invoice-usage - This month's invoice quota usage
3. GET /subscription/user-usage - Active users against the plan's user limit

WHY: The frontend shows remaining invoices and an upgrade prompt when
the quota is used up. Plan changes go through the payment processor
and are not handled here.

SECURITY (OWASP):
- A01: Agency-scoped data access
- A07: Authenticated endpoints only
"""

from fastapi import APIRouter, Depends

from app.core.deps import get_current_agency
from app.models.agency import Agency
from app.schemas.subscription import (
    PlansResponse,
    PlanInfo,
    InvoiceUsageResponse,
    UserUsageResponse,
)
from app.services.subscription_service import SubscriptionService, normalize_plan_key


router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("/plans", response_model=PlansResponse)
async def list_plans(
    agency: Agency = Depends(get_current_agency),
) -> PlansResponse:
    """
    List available subscription plans.

    Returns:
        All plans in upgrade order and the agency's current plan
    """
    service = SubscriptionService()
    return PlansResponse(
        plans=[PlanInfo(**plan) for plan in service.get_all_plans()],
        current_plan=normalize_plan_key(agency.subscription_plan),
    )


@router.get("/invoice-usage", response_model=InvoiceUsageResponse)
async def get_invoice_usage(
    agency: Agency = Depends(get_current_agency),
) -> InvoiceUsageResponse:
    """
    Current month's invoice usage against the plan limit.
    """
    usage = SubscriptionService().get_invoice_usage(agency)
    return InvoiceUsageResponse(
        plan=usage.plan,
        period=usage.period,
        limit=usage.limit,
        used=usage.used,
        remaining=usage.remaining,
        at_limit=usage.at_limit,
    )


@router.get("/user-usage", response_model=UserUsageResponse)
async def get_user_usage(
    agency: Agency = Depends(get_current_agency),
) -> UserUsageResponse:
    usage = SubscriptionService().get_user_usage(agency)
    return UserUsageResponse(
        plan=usage.plan,
        active_user_count=usage.active_users,
        user_limit=usage.limit,
        at_limit=usage.at_limit,
    )
