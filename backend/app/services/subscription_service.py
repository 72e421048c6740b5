"""
Subscription plans and monthly invoice quota.

WHAT: Plan catalogue, plan-key normalization and the invoice quota check
applied before any invoice is created (manually or by conversion), and
the per-plan seat usage.

WHY: Plans gate how many invoices an agency may create per calendar
month. Every creation counts, drafts included, and deleting or voiding
an invoice does not give quota back.

HOW: Usage is read from the agency's usage ledger (usage_period /
usage_count), which AgencyDAO.allocate_invoice_number bumps in the same
statement that allocates the invoice number. Counting invoice rows
instead would let deletions restore quota.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.exceptions import InvoiceLimitReachedError
from app.dao.agency import usage_period_for
from app.models.agency import Agency

logger = logging.getLogger(__name__)


# ============================================================================
# Plan Catalogue
# ============================================================================

PLAN_KEYS = ("freelancer", "starter", "growth", "scale")
DEFAULT_PLAN_KEY = "freelancer"

# WHY: None means unlimited
PLAN_LIMITS: Dict[str, Dict[str, Optional[int]]] = {
    "freelancer": {"monthly_invoice_limit": 10, "user_limit": 1},
    "starter": {"monthly_invoice_limit": 25, "user_limit": 3},
    "growth": {"monthly_invoice_limit": 150, "user_limit": 10},
    "scale": {"monthly_invoice_limit": None, "user_limit": 50},
}

PLAN_DISPLAY: Dict[str, Dict[str, str]] = {
    "freelancer": {"name": "Freelancer", "description": "For solo freelancers."},
    "starter": {"name": "Starter", "description": "Ideal for small agencies getting started."},
    "growth": {"name": "Growth", "description": "For growing teams with higher volume."},
    "scale": {"name": "Scale", "description": "For established agencies with high demand."},
}


def normalize_plan_key(value: Optional[str]) -> str:
    """Return a known plan key; unknown or missing plans fall back to freelancer."""
    if value and value in PLAN_KEYS:
        return value
    return DEFAULT_PLAN_KEY


def monthly_invoice_limit(plan: Optional[str]) -> Optional[int]:
    return PLAN_LIMITS[normalize_plan_key(plan)]["monthly_invoice_limit"]


def is_invoice_limit_reached(used_this_month: int, plan: Optional[str]) -> bool:
    """
    Check if the agency is at or over its monthly invoice limit.

    Args:
        used_this_month: Invoices created this month (all statuses)
        plan: Agency's plan key

    Returns:
        True if no more invoices may be created this month
    """
    limit = monthly_invoice_limit(plan)
    if limit is None:
        return False
    return used_this_month >= limit


def is_user_limit_reached(active_users: int, plan: Optional[str]) -> bool:
    """True when no further users may be activated on the plan."""
    return active_users >= PLAN_LIMITS[normalize_plan_key(plan)]["user_limit"]


@dataclass(frozen=True)
class InvoiceUsage:
    """Invoice quota usage for the current month."""

    plan: str
    limit: Optional[int]
    used: int
    period: str

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(0, self.limit - self.used)

    @property
    def at_limit(self) -> bool:
        return is_invoice_limit_reached(self.used, self.plan)


@dataclass(frozen=True)
class UserUsage:
    """Active users against the plan's seat limit."""

    plan: str
    limit: int
    active_users: int

    @property
    def at_limit(self) -> bool:
        return is_user_limit_reached(self.active_users, self.plan)


def invoice_limit_error(usage: InvoiceUsage) -> InvoiceLimitReachedError:
    """Build the 403 raised when the monthly quota is used up."""
    return InvoiceLimitReachedError(
        message=(
            f"You have reached your monthly limit of {usage.limit} invoices "
            f"on the {PLAN_DISPLAY[usage.plan]['name']} plan. Upgrade to create more."
        ),
        limit=usage.limit,
        used=usage.used,
        plan=usage.plan,
    )


# ============================================================================
# Service
# ============================================================================


class SubscriptionService:
    """
    Plan information and quota enforcement for an agency.

    WHY: Stateless apart from the clock; the usage numbers live on the
    agency row.
    """

    def __init__(self, now: Optional[datetime] = None):
        """
        Args:
            now: Clock override (tests)
        """
        self._now = now

    def get_all_plans(self) -> List[Dict[str, Any]]:
        """
        Get information about all available plans.

        Returns:
            List of plan info dictionaries in upgrade order
        """
        plans = []
        for key in PLAN_KEYS:
            limits = PLAN_LIMITS[key]
            plans.append({
                "plan": key,
                "name": PLAN_DISPLAY[key]["name"],
                "description": PLAN_DISPLAY[key]["description"],
                "monthly_invoice_limit": limits["monthly_invoice_limit"],
                "user_limit": limits["user_limit"],
            })
        return plans

    def get_invoice_usage(self, agency: Agency) -> InvoiceUsage:
        """
        Current month's invoice usage for an agency.

        Args:
            agency: Agency row (counters as last loaded)

        Returns:
            InvoiceUsage
        """
        period = usage_period_for(self._now)
        plan = normalize_plan_key(agency.subscription_plan)
        return InvoiceUsage(
            plan=plan,
            limit=monthly_invoice_limit(plan),
            used=agency.invoices_used_in(period),
            period=period,
        )

    def get_user_usage(self, agency: Agency) -> UserUsage:
        """
        Seat usage for an agency.

        The owner is the only active user until member invitations
        exist, so every agency counts exactly one.
        """
        plan = normalize_plan_key(agency.subscription_plan)
        return UserUsage(
            plan=plan,
            limit=PLAN_LIMITS[plan]["user_limit"],
            active_users=1,
        )

    def ensure_can_create_invoice(self, agency: Agency) -> InvoiceUsage:
        """
        Raise if the agency has used up this month's invoice quota.

        Raises:
            InvoiceLimitReachedError: 403 with limit, used and plan details
        """
        usage = self.get_invoice_usage(agency)
        if usage.at_limit:
            logger.warning(
                "Invoice limit reached for agency %s (%s/%s on %s)",
                agency.id,
                usage.used,
                usage.limit,
                usage.plan,
            )
            raise invoice_limit_error(usage)
        return usage
