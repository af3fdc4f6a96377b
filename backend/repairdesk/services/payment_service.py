# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Capture

Settles an invoice exactly once, by one of three paths:
- cash: tender must equal the total; credits the open drawer session in the
  same transaction as the status change
- card: records an approved processor result whose amount equals the total;
  the drawer is untouched
- manual: back-office recording (check, bank transfer, late entry); the drawer
  is untouched even when the method says cash

Refunds apply to paid invoices only and never exceed the invoice total in
aggregate. A cash refund is paid out of an open drawer session.

Any capture on a paid or cancelled invoice is a ConflictError and leaves the
invoice as it was. The customer receipt goes out after commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Invoice
from ..models.cash_drawer import EVENT_CASH_REFUND, EVENT_CASH_SALE
from ..models.invoices import INVOICE_STATUS_CANCELLED, INVOICE_STATUS_DRAFT, INVOICE_STATUS_PAID
from ..money import from_cents
from ..time_utils import utcnow
from ..validation import MARK_PAID_POLICY, validate_payload
from . import cash_drawer_service, invoice_service, notification_service
from .concurrency import run_with_retry


# =============================================================================
# TENDER TYPES (CONSTANTS)
# =============================================================================

TENDER_CASH = "cash"
TENDER_CARD = "card"


@dataclass(frozen=True)
class ProcessorResult:
    """Confirmation from the external card processor, relayed by the POS client."""
    reference: str
    amount_cents: int
    succeeded: bool


def _lock_payable_invoice(invoice_id: int, company_id: int) -> Invoice:
    invoice = invoice_service.require_invoice(invoice_id, company_id, for_update=True)
    _ensure_payable(invoice)
    _settle_totals(invoice)
    return invoice


def _ensure_payable(invoice: Invoice) -> None:
    if invoice.status == INVOICE_STATUS_PAID:
        raise ConflictError(f"Invoice {invoice.invoice_number} is already paid")
    if invoice.status == INVOICE_STATUS_CANCELLED:
        raise ConflictError(f"Invoice {invoice.invoice_number} is cancelled")


def _settle_totals(invoice: Invoice) -> None:
    """A draft may carry a hand-entered total; settlement uses the computed one."""
    if invoice.status == INVOICE_STATUS_DRAFT:
        items = invoice_service.get_invoice_items(invoice.id)
        invoice_service.recompute_totals(invoice, items or None)


def _require_exact_amount(invoice: Invoice, amount_cents: int, field: str = "amount") -> None:
    if amount_cents != invoice.total_amount_cents:
        raise ValidationError(
            f"Payment amount {from_cents(amount_cents):.2f} does not match invoice total "
            f"{from_cents(invoice.total_amount_cents):.2f}",
            [{"field": field, "message": f"must equal the invoice total {from_cents(invoice.total_amount_cents):.2f}"}],
        )


def _settle(
    invoice: Invoice,
    method: str,
    *,
    reference: str | None = None,
    notes: str | None = None,
    paid_date: datetime | None = None,
) -> None:
    invoice.status = INVOICE_STATUS_PAID
    invoice.paid_date = paid_date or utcnow()
    invoice.payment_method = method
    invoice.payment_reference = reference
    invoice.payment_notes = notes


# =============================================================================
# CAPTURE
# =============================================================================

def capture_cash(
    invoice_id: int,
    company_id: int,
    amount_cents: int,
    *,
    user_id: int | None = None,
    session_id: int | None = None,
    location_id: int | None = None,
) -> Invoice:
    """
    Take cash for the full invoice total.

    Without session_id the current open session of location_id's slot is used.

    Raises:
        NotFoundError: invoice or named session missing or foreign
        ConflictError: invoice paid/cancelled, or session closed
        ValidationError: tender differs from the total, or no open session
    """
    def _op() -> Invoice:
        invoice = _lock_payable_invoice(invoice_id, company_id)
        _require_exact_amount(invoice, amount_cents)

        drawer_session = cash_drawer_service.resolve_open_session(
            company_id, session_id=session_id, location_id=location_id
        )

        _settle(invoice, TENDER_CASH)
        invoice.cash_drawer_session_id = drawer_session.id

        cash_drawer_service.credit_cash(drawer_session.id, amount_cents)
        cash_drawer_service.log_drawer_event(
            drawer_session,
            user_id,
            EVENT_CASH_SALE,
            amount_cents=amount_cents,
            invoice_id=invoice.id,
            note=f"Cash payment for {invoice.invoice_number}",
        )

        notification_service.queue_payment_receipt(invoice)
        db.session.commit()

        current_app.logger.info(
            "Invoice %s paid in cash (%s cents) into drawer session %s",
            invoice.invoice_number, amount_cents, drawer_session.id,
        )
        return invoice

    return run_with_retry(_op)


def capture_card(
    invoice_id: int,
    company_id: int,
    processor_result: ProcessorResult,
) -> Invoice:
    """Record an approved card payment. The cash drawer is not involved."""
    def _op() -> Invoice:
        invoice = _lock_payable_invoice(invoice_id, company_id)

        if not processor_result.succeeded:
            raise ValidationError(
                "Card payment was not approved",
                [{"field": "succeeded", "message": "processor did not approve the payment"}],
            )
        _require_exact_amount(invoice, processor_result.amount_cents)

        _settle(invoice, TENDER_CARD, reference=processor_result.reference)

        notification_service.queue_payment_receipt(invoice)
        db.session.commit()

        current_app.logger.info(
            "Invoice %s paid by card (reference %s)", invoice.invoice_number, processor_result.reference,
        )
        return invoice

    return run_with_retry(_op)


def mark_invoice_as_paid(invoice_id: int, company_id: int, payload: dict | None) -> Invoice | None:
    """
    Manual settlement. Returns None when the invoice is missing or foreign.

    paidDate defaults to now. Does not credit any cash drawer session, whatever
    the payment method; cash taken at the counter belongs on capture_cash.
    """
    details = validate_payload(payload=payload, policy=MARK_PAID_POLICY, partial=False)

    def _op() -> Invoice | None:
        invoice = invoice_service.get_invoice_for_update(invoice_id, company_id)
        if invoice is None:
            return None
        _ensure_payable(invoice)
        _settle_totals(invoice)

        method = details["payment_method"]
        _settle(
            invoice,
            method,
            reference=details.get("payment_reference"),
            notes=details.get("payment_notes"),
            paid_date=details.get("paid_date"),
        )

        notification_service.queue_payment_receipt(invoice)
        db.session.commit()

        if method.lower() == TENDER_CASH:
            current_app.logger.warning(
                "Invoice %s manually marked paid with method 'cash'; no drawer session was credited",
                invoice.invoice_number,
            )
        else:
            current_app.logger.info("Invoice %s manually marked paid (%s)", invoice.invoice_number, method)
        return invoice

    return run_with_retry(_op)


# =============================================================================
# REFUNDS
# =============================================================================

def refund_invoice(
    invoice_id: int,
    company_id: int,
    amount_cents: int,
    method: str,
    *,
    reason: str | None = None,
    user_id: int | None = None,
    session_id: int | None = None,
    location_id: int | None = None,
) -> Invoice:
    """
    Refund part or all of a paid invoice.

    Refunds accumulate in refund_amount_cents and may not exceed the total.
    The invoice stays paid. A cash refund debits an open drawer session.
    """
    method = method.strip().lower()

    def _op() -> Invoice:
        invoice = invoice_service.require_invoice(invoice_id, company_id, for_update=True)
        if invoice.status != INVOICE_STATUS_PAID:
            raise ConflictError("Only paid invoices can be refunded")

        if amount_cents <= 0:
            raise ValidationError("Refund amount must be greater than 0",
                                  [{"field": "amount", "message": "must be greater than 0"}])

        already_refunded = int(invoice.refund_amount_cents or 0)
        remaining = invoice.total_amount_cents - already_refunded
        if amount_cents > remaining:
            raise ValidationError(
                f"Refund exceeds the refundable amount {from_cents(remaining):.2f}",
                [{"field": "amount", "message": f"cannot exceed {from_cents(remaining):.2f}"}],
            )

        if method == TENDER_CASH:
            drawer_session = cash_drawer_service.resolve_open_session(
                company_id, session_id=session_id, location_id=location_id
            )
            cash_drawer_service.debit_cash(drawer_session.id, amount_cents)
            cash_drawer_service.log_drawer_event(
                drawer_session,
                user_id,
                EVENT_CASH_REFUND,
                amount_cents=amount_cents,
                invoice_id=invoice.id,
                note=reason or f"Cash refund for {invoice.invoice_number}",
            )

        invoice.refund_amount_cents = already_refunded + amount_cents
        invoice.refund_date = utcnow()
        invoice.refund_reason = reason
        invoice.refund_method = method

        notification_service.queue_refund_notice(invoice, amount_cents)
        db.session.commit()

        current_app.logger.info(
            "Refunded %s cents on invoice %s (%s)", amount_cents, invoice.invoice_number, method,
        )
        return invoice

    return run_with_retry(_op)
