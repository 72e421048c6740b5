"""
Proposal Data Access Object (DAO).

WHAT: Database operations for the Proposal model.

WHY: The DAO pattern:
1. Separates data access from business logic
2. Provides a consistent API for proposal operations
3. Enforces agency-scoping for multi-tenancy
4. Owns the guarded write that links a proposal to its invoice

HOW: Extends BaseDAO with proposal-specific queries:
- Status-based filtering
- Public token lookup
- Conversion link (compare-and-set on converted_to_invoice_id)
"""

from typing import Dict, List, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.dao.base import BaseDAO
from app.models.proposal import Proposal, ProposalStatus


class ProposalDAO(BaseDAO[Proposal]):
    """
    Data Access Object for Proposal model.

    WHAT: Provides CRUD and query operations for proposals.

    HOW: Extends BaseDAO with proposal-specific methods.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize ProposalDAO.

        Args:
            session: Async database session
        """
        super().__init__(Proposal, session)

    async def list_for_agency(
        self,
        agency_id: int,
        status: Optional[ProposalStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Proposal]:
        """
        List an agency's proposals, newest first.

        Args:
            agency_id: Owning agency
            status: Optional status filter
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            List of proposals
        """
        query = select(Proposal).where(Proposal.agency_id == agency_id)
        if status is not None:
            query = query.where(Proposal.status == status)

        result = await self.session.execute(
            query.order_by(Proposal.created_at.desc(), Proposal.id.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def get_by_public_token(self, token: str) -> Optional[Proposal]:
        """
        Get a proposal by its public link token.

        WHY: Used by the unauthenticated acceptance page, so there is no
        agency context to scope by.
        """
        result = await self.session.execute(
            select(Proposal)
            .where(Proposal.public_token == token)
            .options(selectinload(Proposal.agency))
        )
        return result.scalar_one_or_none()

    async def link_invoice(self, proposal_id: int, invoice_id: int) -> bool:
        """
        Point a proposal at the invoice created from it.

        WHAT: Compare-and-set of converted_to_invoice_id.

        WHY: The column is a one-way pointer. Only the first of two
        racing conversions may set it; the loser sees False and its
        transaction is rolled back by the caller.

        Args:
            proposal_id: Proposal being converted
            invoice_id: Newly created invoice

        Returns:
            True if the link was written, False if already converted
        """
        result = await self.session.execute(
            update(Proposal)
            .where(
                Proposal.id == proposal_id,
                Proposal.converted_to_invoice_id.is_(None),
            )
            .values(converted_to_invoice_id=invoice_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False

        await self.session.get(Proposal, proposal_id, populate_existing=True)
        return True

    async def count_by_status(self, agency_id: int) -> Dict[str, int]:
        """
        Get count of proposals by status for an agency.

        WHY: Dashboard statistics.

        Returns:
            Dict mapping status to count
        """
        result = await self.session.execute(
            select(Proposal.status, func.count(Proposal.id))
            .where(Proposal.agency_id == agency_id)
            .group_by(Proposal.status)
        )
        return {row[0].value: row[1] for row in result.all()}
