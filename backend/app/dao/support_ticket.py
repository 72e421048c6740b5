"""
Support ticket Data Access Object (DAO).

WHAT: Agency-scoped queries for support tickets, newest first.
"""

from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.support_ticket import SupportTicket


class SupportTicketDAO(BaseDAO[SupportTicket]):
    """Data Access Object for the SupportTicket model."""

    def __init__(self, session: AsyncSession):
        super().__init__(SupportTicket, session)

    async def list_for_agency(
        self,
        agency_id: int,
        skip: int = 0,
        limit: int = 50,
    ) -> List[SupportTicket]:
        result = await self.session.execute(
            select(SupportTicket)
            .where(SupportTicket.agency_id == agency_id)
            .order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
