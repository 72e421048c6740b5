"""
Payment ledger service.

WHAT: Guarded add, edit, delete and list operations over the payments
recorded against an invoice.

WHY: The ledger is the only source of an invoice's paid amount, so every
write is validated against the balance computed from the payments that
exist at the moment of the write:
1. A new payment may not exceed the current balance due
2. An edited payment may not exceed total minus all *other* payments
3. Deleting a payment only frees balance, so it needs no re-validation

HOW: Ownership is resolved through the invoice's agency_id; a payment or
invoice belonging to another agency raises the same NotFound error as a
missing one. Concurrent edits are last-writer-wins.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InvalidStateTransitionError,
    InvoiceNotFoundError,
    PaymentNotFoundError,
    ValidationError,
)
from app.dao.invoice import InvoiceDAO
from app.dao.payment import PaymentDAO
from app.models.invoice import Invoice, InvoiceStatus
from app.models.payment import Payment, PaymentMethod
from app.services.billing import Balance, ZERO, compute_balance, round_money

logger = logging.getLogger(__name__)


def normalize_method(value: Optional[str]) -> PaymentMethod:
    """Map free-form input to a PaymentMethod; anything unknown is "other"."""
    if value:
        try:
            return PaymentMethod(value.strip().lower())
        except ValueError:
            pass
    return PaymentMethod.OTHER


def _parse_amount(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return round_money(value)
    except (InvalidOperation, ValueError):
        return None


class PaymentService:
    """
    Service for the manual payments ledger.

    Usage:
        service = PaymentService(session)
        payment = await service.add_payment(
            agency_id=1,
            invoice_id=10,
            amount=Decimal("400.00"),
            payment_date=date(2024, 3, 1),
            method="bank_transfer",
        )
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize PaymentService.

        Args:
            session: Async database session
        """
        self.session = session
        self.invoice_dao = InvoiceDAO(session)
        self.payment_dao = PaymentDAO(session)

    async def _get_invoice(self, invoice_id: int, agency_id: int) -> Invoice:
        invoice = await self.invoice_dao.get_by_id_and_agency(invoice_id, agency_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id=invoice_id)
        return invoice

    async def _get_payment(self, payment_id: int, agency_id: int) -> Payment:
        payment = await self.payment_dao.get_by_id_and_agency(payment_id, agency_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id=payment_id)
        return payment

    async def add_payment(
        self,
        agency_id: int,
        invoice_id: int,
        amount: Any,
        payment_date: Optional[date],
        method: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Payment:
        """
        Record a payment against an invoice.

        WHAT: Inserts one payment row; the invoice row is not touched.

        Args:
            agency_id: Caller's agency
            invoice_id: Invoice being paid
            amount: Amount received (rounded to 2 decimals)
            payment_date: Date received (required)
            method: Payment method (unknown values become "other")
            note: Optional note

        Returns:
            The created Payment

        Raises:
            InvoiceNotFoundError: If the invoice is missing or not the agency's
            InvalidStateTransitionError: If the invoice is void
            ValidationError: Non-positive amount, missing date, amount above
                the balance due, or an invoice that is already paid
        """
        invoice = await self._get_invoice(invoice_id, agency_id)
        if invoice.status == InvoiceStatus.VOID:
            raise InvalidStateTransitionError(
                message="Cannot record payments on a void invoice",
                invoice_id=invoice_id,
            )

        parsed = _parse_amount(amount)
        if parsed is None or parsed <= 0:
            raise ValidationError(message="amount must be a number greater than 0")
        if payment_date is None:
            raise ValidationError(message="payment_date is required")

        paid = await self.payment_dao.sum_for_invoice(invoice.id)
        balance_due = max(ZERO, round_money(invoice.total) - round_money(paid))
        if balance_due <= 0:
            raise ValidationError(message="Invoice is already fully paid")
        if parsed > balance_due:
            raise ValidationError(
                message="Payment exceeds balance due",
                balance_due=str(balance_due),
                amount=str(parsed),
            )

        payment = await self.payment_dao.create(
            invoice_id=invoice.id,
            amount=parsed,
            payment_date=payment_date,
            method=normalize_method(method),
            note=note,
        )
        logger.info(
            "Recorded payment %s of %s on invoice %s (agency %s)",
            payment.id,
            parsed,
            invoice.invoice_number,
            agency_id,
        )
        return payment

    async def edit_payment(
        self,
        agency_id: int,
        payment_id: int,
        changes: Dict[str, Any],
    ) -> Payment:
        """
        Edit a payment. Only the keys present in changes are updated.

        WHAT: Validates a new amount against total minus the sum of all
        other payments of the same invoice.

        Args:
            agency_id: Caller's agency
            payment_id: Payment to edit
            changes: Subset of amount, payment_date, method, note

        Returns:
            The updated Payment

        Raises:
            PaymentNotFoundError: If the payment is missing or not the agency's
            InvalidStateTransitionError: If the invoice is void
            ValidationError: If no fields are given or a value is invalid
        """
        payment = await self._get_payment(payment_id, agency_id)
        invoice = payment.invoice
        if invoice.status == InvoiceStatus.VOID:
            raise InvalidStateTransitionError(
                message="Cannot edit payments on a void invoice",
                invoice_id=invoice.id,
            )

        updates: Dict[str, Any] = {}

        if "amount" in changes:
            amount = _parse_amount(changes["amount"])
            if amount is None or amount <= 0:
                raise ValidationError(message="Amount must be greater than 0")

            others = await self.payment_dao.sum_for_invoice(
                invoice.id, exclude_payment_id=payment.id
            )
            ceiling = max(ZERO, round_money(invoice.total) - round_money(others))
            if amount > ceiling:
                raise ValidationError(
                    message=f"Amount cannot exceed balance due ({ceiling:.2f})",
                    balance_due=str(ceiling),
                )
            updates["amount"] = amount

        if "payment_date" in changes:
            if changes["payment_date"] is None:
                raise ValidationError(message="payment_date is required")
            updates["payment_date"] = changes["payment_date"]

        if "method" in changes:
            updates["method"] = normalize_method(changes["method"])

        if "note" in changes:
            updates["note"] = changes["note"]

        if not updates:
            raise ValidationError(message="No fields to update")

        for field, value in updates.items():
            setattr(payment, field, value)
        await self.session.flush()

        logger.info(
            "Updated payment %s on invoice %s (fields: %s)",
            payment.id,
            invoice.invoice_number,
            ", ".join(sorted(updates)),
        )
        return payment

    async def delete_payment(self, agency_id: int, payment_id: int) -> None:
        """
        Delete a payment after the ownership check.

        Raises:
            PaymentNotFoundError: If the payment is missing or not the agency's
        """
        payment = await self._get_payment(payment_id, agency_id)
        invoice_id = payment.invoice_id
        await self.session.delete(payment)
        await self.session.flush()
        logger.info("Deleted payment %s from invoice %s", payment_id, invoice_id)

    async def list_payments(
        self,
        agency_id: int,
        invoice_id: int,
    ) -> Tuple[Invoice, List[Payment], Balance]:
        """
        List an invoice's payments with the balance they produce.

        Returns:
            Tuple of (invoice, payments oldest first, balance)

        Raises:
            InvoiceNotFoundError: If the invoice is missing or not the agency's
        """
        invoice = await self._get_invoice(invoice_id, agency_id)
        payments = await self.payment_dao.list_for_invoice(invoice.id)
        return invoice, payments, compute_balance(invoice.total, payments)
