"""
Payment API endpoints.

WHAT: Edit and delete individual payments.

HOW: Payments are created under /invoices/{id}/payments; these routes
address a payment directly and resolve ownership through its invoice.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_current_agency
from app.db.session import get_db
from app.models.agency import Agency
from app.schemas.payment import PaymentUpdate, PaymentResponse
from app.services.payment_service import PaymentService


router = APIRouter(prefix="/payments", tags=["payments"])


@router.patch(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Edit payment",
)
async def update_payment(
    payment_id: int,
    data: PaymentUpdate,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    """
    Edit a payment. Only the fields sent in the body are changed.

    Raises:
        ValidationError (400): No fields, or amount above total minus
            the invoice's other payments
        PaymentNotFoundError (404): Unknown or foreign payment
    """
    payment = await PaymentService(db).edit_payment(
        agency.id, payment_id, data.model_dump(exclude_unset=True)
    )
    return PaymentResponse.model_validate(payment)


@router.delete(
    "/{payment_id}",
    summary="Delete payment",
)
async def delete_payment(
    payment_id: int,
    agency: Agency = Depends(get_current_agency),
    db: AsyncSession = Depends(get_db),
) -> dict:
    await PaymentService(db).delete_payment(agency.id, payment_id)
    return {"success": True}
