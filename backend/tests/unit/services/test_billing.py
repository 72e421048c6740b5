"""
Tests for the balance and status calculator.

WHY: Every figure shown for an invoice comes from these functions; a
rounding or comparison mistake here shows up in every view and report.
"""

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import ValidationError
from app.models.invoice import InvoiceStatus
from app.services.billing import (
    PaymentStatus,
    compute_balance,
    compute_totals,
    display_status,
    is_overdue,
    payment_status,
    round_money,
    summarize_invoice,
    tax_portion,
)


class TestComputeTotals:
    """Tests for subtotal, tax and total."""

    def test_sum_of_line_items(self):
        totals = compute_totals(
            [
                {"quantity": Decimal("2"), "unit_price": Decimal("150.00")},
                {"quantity": Decimal("1"), "unit_price": Decimal("75.50")},
            ],
            Decimal("0"),
        )

        assert totals.subtotal == Decimal("375.50")
        assert totals.tax_amount == Decimal("0.00")
        assert totals.total == Decimal("375.50")

    def test_tax_rounds_half_up(self):
        """833.33 at 20% is 166.666 tax, shown as 166.67, total 1000.00."""
        totals = compute_totals(
            [{"quantity": 1, "unit_price": Decimal("833.33")}],
            Decimal("0.20"),
        )

        assert totals.tax_amount == Decimal("166.67")
        assert totals.total == Decimal("1000.00")

    def test_accepts_objects(self):
        item = SimpleNamespace(quantity=Decimal("3"), unit_price=Decimal("10"))

        assert compute_totals([item], "0.1").total == Decimal("33.00")

    def test_missing_quantity_counts_as_one(self):
        totals = compute_totals([{"title": "Retainer", "unit_price": Decimal("1000.00")}], Decimal("0.20"))

        assert totals.subtotal == Decimal("1000.00")
        assert totals.total == Decimal("1200.00")

    def test_no_items_is_zero(self):
        assert compute_totals([], 0).total == Decimal("0.00")

    @pytest.mark.parametrize("rate", [Decimal("-0.01"), Decimal("1.01")])
    def test_rejects_out_of_range_tax_rate(self, rate):
        with pytest.raises(ValidationError):
            compute_totals([{"quantity": 1, "unit_price": 1}], rate)

    def test_rejects_negative_price(self):
        with pytest.raises(ValidationError):
            compute_totals([{"quantity": 1, "unit_price": -5}], 0)


class TestPaymentStatus:
    """Tests for the derived payment status."""

    @pytest.mark.parametrize(
        "total,paid,expected",
        [
            ("1000.00", "0", PaymentStatus.UNPAID),
            ("1000.00", "400.00", PaymentStatus.PARTIALLY_PAID),
            ("1000.00", "1000.00", PaymentStatus.PAID),
            ("1000.00", "1200.00", PaymentStatus.PAID),
            ("0", "0", PaymentStatus.PAID),
        ],
    )
    def test_status(self, total, paid, expected):
        assert payment_status(total, paid) == expected


class TestComputeBalance:
    """Tests for paid amount and balance due."""

    def test_partial_payments(self):
        balance = compute_balance(Decimal("1000.00"), [Decimal("400.00"), Decimal("100.00")])

        assert balance.paid_amount == Decimal("500.00")
        assert balance.balance_due == Decimal("500.00")
        assert balance.status == PaymentStatus.PARTIALLY_PAID

    def test_overpayment_floors_balance_at_zero(self):
        balance = compute_balance("100.00", [SimpleNamespace(amount=Decimal("150.00"))])

        assert balance.balance_due == Decimal("0.00")
        assert balance.status == PaymentStatus.PAID

    def test_no_payments(self):
        balance = compute_balance("250.00", [])

        assert balance.paid_amount == Decimal("0.00")
        assert balance.balance_due == Decimal("250.00")
        assert balance.status == PaymentStatus.UNPAID


class TestDisplayStatus:
    def test_draft_and_void_keep_workflow_status(self):
        assert display_status(InvoiceStatus.DRAFT, PaymentStatus.PAID) == "draft"
        assert display_status(InvoiceStatus.VOID, PaymentStatus.PARTIALLY_PAID) == "void"

    def test_sent_shows_payment_status(self):
        assert display_status("sent", PaymentStatus.PARTIALLY_PAID) == "partially_paid"
        assert display_status(InvoiceStatus.SENT, PaymentStatus.UNPAID) == "unpaid"


class TestIsOverdue:
    NOW = datetime(2024, 3, 15, 12, 0)

    def test_past_due_and_unpaid(self):
        assert is_overdue(PaymentStatus.UNPAID, date(2024, 3, 14), now=self.NOW) is True

    def test_due_today_is_not_overdue(self):
        assert is_overdue(PaymentStatus.UNPAID, date(2024, 3, 15), now=self.NOW) is False

    def test_paid_is_never_overdue(self):
        assert is_overdue(PaymentStatus.PAID, date(2024, 1, 1), now=self.NOW) is False

    def test_no_due_date(self):
        assert is_overdue(PaymentStatus.PARTIALLY_PAID, None, now=self.NOW) is False


class TestSummarizeInvoice:
    def _invoice(self, status, payments, due_date=None):
        return SimpleNamespace(
            items=[SimpleNamespace(quantity=Decimal("1"), unit_price=Decimal("833.33"))],
            tax_rate=Decimal("0.20"),
            total=Decimal("1000.00"),
            status=status,
            due_date=due_date,
            payments=payments,
        )

    def test_sent_invoice_figures(self):
        invoice = self._invoice(
            InvoiceStatus.SENT,
            [SimpleNamespace(amount=Decimal("400.00"))],
            due_date=date(2024, 1, 31),
        )

        figures = summarize_invoice(invoice, now=datetime(2024, 2, 1))

        assert figures.subtotal == Decimal("833.33")
        assert figures.tax_amount == Decimal("166.67")
        assert figures.paid_amount == Decimal("400.00")
        assert figures.balance_due == Decimal("600.00")
        assert figures.display_status == "partially_paid"
        assert figures.is_overdue is True

    def test_void_invoice_is_not_overdue(self):
        invoice = self._invoice(InvoiceStatus.VOID, [], due_date=date(2024, 1, 31))

        figures = summarize_invoice(invoice, now=datetime(2024, 2, 1))

        assert figures.display_status == "void"
        assert figures.is_overdue is False

    def test_explicit_payments_override_collection(self):
        invoice = self._invoice(InvoiceStatus.SENT, [])

        figures = summarize_invoice(invoice, payments=[Decimal("1000.00")])

        assert figures.payment_status == PaymentStatus.PAID


def test_tax_portion_of_inclusive_total():
    assert tax_portion(Decimal("1200.00"), Decimal("0.20")) == Decimal("200.00")
    assert tax_portion(Decimal("500.00"), Decimal("0")) == Decimal("0.00")


def test_round_money_half_up():
    assert round_money("2.345") == Decimal("2.35")
    assert round_money(None) == Decimal("0.00")
