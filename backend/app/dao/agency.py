"""
Agency Data Access Object (DAO).

WHAT: Database operations for the Agency (tenant) model.

WHY: The agency row holds the two counters that must never be
read-modified-written from application code: the invoice sequence and
the monthly invoice usage ledger.

HOW: allocate_invoice_number issues a single UPDATE ... RETURNING that
increments both counters in the database, so two concurrent conversions
can never receive the same number.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple
from sqlalchemy import select, update, case
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.agency import Agency

logger = logging.getLogger(__name__)


def usage_period_for(moment: Optional[datetime] = None) -> str:
    """Month key (YYYY-MM) used by the invoice usage ledger."""
    return (moment or datetime.utcnow()).strftime("%Y-%m")


class AgencyDAO(BaseDAO[Agency]):
    """
    Data Access Object for Agency model.

    WHAT: Lookups by auth subject plus the atomic counters.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize AgencyDAO.

        Args:
            session: Async database session
        """
        super().__init__(Agency, session)

    async def get_by_user_id(self, user_id: str) -> Optional[Agency]:
        """
        Get the agency owned by an authenticated user.

        Args:
            user_id: Subject claim from the auth provider's token

        Returns:
            Agency if one exists for the user, None otherwise
        """
        result = await self.session.execute(select(Agency).where(Agency.user_id == user_id))
        return result.scalar_one_or_none()

    async def allocate_invoice_number(
        self,
        agency_id: int,
        now: Optional[datetime] = None,
    ) -> Tuple[int, int]:
        """
        Atomically allocate the next invoice sequence number.

        WHAT: Increments invoice_counter and records one unit of monthly
        usage in the same statement.

        WHY: A read-then-write from Python would let two concurrent
        requests read the same counter value. Here the database does the
        increment; the usage ledger resets itself when the month changes.

        HOW: UPDATE agencies SET invoice_counter = invoice_counter + 1,
        usage_count = CASE WHEN usage_period = :period THEN usage_count + 1
        ELSE 1 END, usage_period = :period WHERE id = :id
        RETURNING invoice_counter, usage_count

        Args:
            agency_id: Agency allocating the number
            now: Clock override (tests)

        Returns:
            Tuple of (sequence number, invoices used this month)

        Raises:
            LookupError: If the agency row does not exist
        """
        period = usage_period_for(now)
        result = await self.session.execute(
            update(Agency)
            .where(Agency.id == agency_id)
            .values(
                invoice_counter=Agency.invoice_counter + 1,
                usage_count=case(
                    (Agency.usage_period == period, Agency.usage_count + 1),
                    else_=1,
                ),
                usage_period=period,
            )
            .returning(Agency.invoice_counter, Agency.usage_count)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        if row is None:
            raise LookupError(f"Agency {agency_id} does not exist")

        # Reload counters on any instance already held by this session
        await self.session.get(Agency, agency_id, populate_existing=True)

        sequence, used = row
        logger.info(
            "Allocated invoice sequence %s for agency %s (usage %s in %s)",
            sequence,
            agency_id,
            used,
            period,
        )
        return sequence, used
