"""
Service catalogue Data Access Object (DAO).

WHAT: Agency-scoped queries for price templates.
"""

from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.service import Service


class ServiceDAO(BaseDAO[Service]):
    """Data Access Object for the Service model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Service, session)

    async def list_for_agency(self, agency_id: int, active_only: bool = False) -> List[Service]:
        """
        List an agency's services by name.

        Args:
            agency_id: Owning agency
            active_only: Leave out deactivated services

        Returns:
            List of services
        """
        query = select(Service).where(Service.agency_id == agency_id)
        if active_only:
            query = query.where(Service.is_active.is_(True))
        result = await self.session.execute(query.order_by(Service.name, Service.id))
        return list(result.scalars().all())
