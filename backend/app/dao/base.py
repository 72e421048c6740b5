"""
Base Data Access Object (DAO) class.

WHY: The DAO pattern separates database operations from business logic,
making the services testable without HTTP and keeping every tenant
filter in one place.

HOW: DAOs never commit. They add, flush and query inside the caller's
transaction; the request-scoped session (or a test) decides when to
commit.
"""

from typing import Generic, TypeVar, Type, Optional, Any
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseDAO(Generic[ModelType]):
    """
    Generic CRUD for the billing models.

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Args:
            model: The SQLAlchemy model class
            session: Async database session (transaction owned by caller)
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Insert a record and flush so generated ids and defaults are set.

        Raises:
            IntegrityError: If unique constraints are violated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def reload(self, id: int) -> Optional[ModelType]:
        """
        Re-select a record, overwriting any state held by the session.

        WHY: After inserts and bulk UPDATEs the identity map can hold
        expired or unloaded attributes; async sessions cannot lazy load
        them, so the eager loaders are run again here.
        """
        result = await self.session.execute(
            select(self.model)
            .where(self.model.id == id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id_and_agency(self, id: int, agency_id: int) -> Optional[ModelType]:
        """
        Retrieve a record by ID, ensuring it belongs to the specified agency.

        WHY: A record owned by another agency must be indistinguishable
        from a missing one. Services use this for every caller-supplied id.

        Args:
            id: Primary key value
            agency_id: Agency ID that must own the record

        Returns:
            The model instance if found and owned by the agency, None otherwise

        Raises:
            AttributeError: If the model doesn't have an agency_id field
        """
        if not hasattr(self.model, "agency_id"):
            raise AttributeError(
                f"{self.model.__name__} is not a multi-tenant model (no agency_id field)"
            )

        result = await self.session.execute(
            select(self.model).where(
                self.model.id == id,
                self.model.agency_id == agency_id,
            )
        )
        return result.scalar_one_or_none()

    async def update(self, id: int, **kwargs: Any) -> Optional[ModelType]:
        """
        Update columns of one record.

        Returns:
            Updated model instance if found, None otherwise
        """
        result = await self.session.execute(
            update(self.model).where(self.model.id == id).values(**kwargs).returning(self.model)
        )
        instance = result.scalar_one_or_none()
        if instance:
            await self.session.refresh(instance)
        return instance

    async def delete(self, id: int) -> bool:
        """
        Delete a record by primary key.

        Returns:
            True if a record was deleted, False if not found
        """
        result = await self.session.execute(delete(self.model).where(self.model.id == id))
        return result.rowcount > 0

    async def count(self, **filters: Any) -> int:
        """
        Count records whose columns equal the given values.

        Example:
            await invoice_dao.count(agency_id=1, status=InvoiceStatus.SENT)
        """
        query = select(func.count()).select_from(self.model)
        for field, value in filters.items():
            query = query.where(getattr(self.model, field) == value)

        result = await self.session.execute(query)
        return result.scalar_one()
