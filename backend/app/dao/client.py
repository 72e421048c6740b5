"""
Client Data Access Object (DAO).

WHAT: Agency-scoped queries for clients.
"""

from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.client import Client


class ClientDAO(BaseDAO[Client]):
    """Data Access Object for Client model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Client, session)

    async def list_for_agency(
        self,
        agency_id: int,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Client]:
        """
        List an agency's clients alphabetically.

        Args:
            agency_id: Owning agency
            skip: Pagination offset
            limit: Pagination limit

        Returns:
            List of clients
        """
        result = await self.session.execute(
            select(Client)
            .where(Client.agency_id == agency_id)
            .order_by(Client.name)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
