"""
Balance and status calculator for invoices.

WHAT: Pure functions that derive every financial figure of an invoice:
totals from line items, paid amount and balance from payments, and the
payment / display / overdue status.

WHY: Nothing in this module is ever persisted. The stored invoice status
only tracks the workflow (draft, sent, void); whether an invoice is paid
is recomputed from the full payments list on every read, so it can never
drift from the ledger. List views, detail views, reports and the payment
guards all call the same functions.

HOW: Money is Decimal throughout. Amounts are rounded to 2 places
(half-up) where they are stored and where they are displayed. Paid
comparisons use >=, so an over-payment is reported as paid with a zero
balance, never a negative one.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, Optional, Union

from app.core.exceptions import ValidationError
from app.models.invoice import InvoiceStatus

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


class PaymentStatus(str, Enum):
    """Payment status derived from the ledger."""

    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


@dataclass(frozen=True)
class Totals:
    """Result of compute_totals."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class Balance:
    """Result of compute_balance."""

    paid_amount: Decimal
    balance_due: Decimal
    status: PaymentStatus


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a DB or JSON number to Decimal without float artifacts."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Optional[Number]) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _field(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name)


def compute_totals(items: Iterable[Any], tax_rate: Number) -> Totals:
    """
    Compute subtotal, tax and total for a set of line items.

    subtotal = sum(quantity * unit_price), a missing quantity counting as 1
    tax_amount = round(subtotal * tax_rate, 2) (half-up)
    total = subtotal + tax_amount

    Args:
        items: Objects or dicts exposing quantity and unit_price
        tax_rate: Fraction in [0, 1]

    Returns:
        Totals

    Raises:
        ValidationError: If tax_rate is outside [0, 1] or an item has a
            negative quantity or price
    """
    rate = to_decimal(tax_rate)
    if rate < 0 or rate > 1:
        raise ValidationError(message="Tax rate must be between 0 and 1", tax_rate=str(rate))

    subtotal = Decimal("0")
    for item in items:
        quantity = _field(item, "quantity")
        quantity = to_decimal(quantity if quantity is not None else 1)
        unit_price = to_decimal(_field(item, "unit_price"))
        if quantity < 0 or unit_price < 0:
            raise ValidationError(message="Quantity and unit price must not be negative")
        subtotal += quantity * unit_price

    subtotal = round_money(subtotal)
    tax_amount = round_money(subtotal * rate)
    return Totals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def payment_status(total: Number, paid_amount: Number) -> PaymentStatus:
    """
    Derive the payment status from the total and the paid amount.

    paid if paid >= total, partially_paid if 0 < paid < total, else unpaid.
    """
    total = round_money(total)
    paid = round_money(paid_amount)
    if paid >= total:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.UNPAID


def compute_balance(invoice_total: Number, payments: Iterable[Any]) -> Balance:
    """
    Compute paid amount, balance due and payment status.

    Args:
        invoice_total: Invoice total
        payments: The full, current list of payments for the invoice
            (Payment rows, objects with .amount, or plain amounts)

    Returns:
        Balance with balance_due floored at zero
    """
    paid = Decimal("0")
    for payment in payments:
        amount = payment if isinstance(payment, (Decimal, int, float, str)) else _field(payment, "amount")
        paid += to_decimal(amount)

    total = round_money(invoice_total)
    paid = round_money(paid)
    balance_due = max(ZERO, total - paid)
    return Balance(
        paid_amount=paid,
        balance_due=round_money(balance_due),
        status=payment_status(total, paid),
    )


def display_status(stored_status: Union[InvoiceStatus, str], status: PaymentStatus) -> str:
    """
    Status shown to users.

    Drafts and voided invoices show their workflow status; every other
    invoice shows its payment status.
    """
    stored = InvoiceStatus(stored_status)
    if stored in (InvoiceStatus.DRAFT, InvoiceStatus.VOID):
        return stored.value
    return status.value


def is_overdue(
    status: PaymentStatus,
    due_date: Optional[date],
    now: Optional[datetime] = None,
) -> bool:
    """
    An invoice is overdue when it is not fully paid and its due date has passed.

    Args:
        status: Derived payment status
        due_date: Due date (None means never overdue)
        now: Clock override

    Returns:
        True if overdue
    """
    if status == PaymentStatus.PAID or due_date is None:
        return False
    now = now or datetime.utcnow()
    if isinstance(due_date, datetime):
        return due_date < now
    return due_date < now.date()


@dataclass(frozen=True)
class InvoiceFinancials:
    """All derived figures of one invoice."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    payment_status: PaymentStatus
    display_status: str
    is_overdue: bool


def summarize_invoice(invoice: Any, payments: Optional[Iterable[Any]] = None, now: Optional[datetime] = None) -> InvoiceFinancials:
    """
    Derive every financial figure of an invoice in one place.

    WHY: Responses, the dashboard and reports all show the same numbers
    for the same invoice.

    Args:
        invoice: Invoice row (items loaded)
        payments: Payments to use (defaults to invoice.payments)
        now: Clock override

    Returns:
        InvoiceFinancials
    """
    totals = compute_totals(invoice.items, invoice.tax_rate)
    balance = compute_balance(
        invoice.total,
        invoice.payments if payments is None else payments,
    )
    stored = InvoiceStatus(invoice.status)
    overdue = stored != InvoiceStatus.VOID and is_overdue(balance.status, invoice.due_date, now)

    return InvoiceFinancials(
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        total=round_money(invoice.total),
        paid_amount=balance.paid_amount,
        balance_due=balance.balance_due,
        payment_status=balance.status,
        display_status=display_status(stored, balance.status),
        is_overdue=overdue,
    )


def tax_portion(total: Number, tax_rate: Number) -> Decimal:
    """
    Tax contained in a tax-inclusive total: round(total * r / (1 + r), 2).
    """
    rate = to_decimal(tax_rate)
    if rate <= 0:
        return ZERO
    return round_money(to_decimal(total) * rate / (1 + rate))
