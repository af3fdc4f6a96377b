# Overview: Service-layer operations for invoice line items; encapsulates business logic and database work.

"""
Line items and their effect on the parent invoice.

Every mutation runs in one transaction that:
1. locks the parent invoice row (SELECT ... FOR UPDATE)
2. writes the item with its derived discount and subtotal
3. recomputes the invoice totals from all of its items
4. bumps the invoice version, so a concurrent writer fails with StaleDataError
   and is retried by run_with_retry

Items are frozen once the invoice is paid or cancelled.
"""

from __future__ import annotations

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Invoice, InvoiceItem
from ..money import line_amounts
from ..time_utils import utcnow
from ..validation import INVOICE_ITEM_POLICY, validate_payload
from . import invoice_service
from .concurrency import run_with_retry
from .invoice_service import TERMINAL_STATUSES


def _lock_editable_invoice(invoice_id: int, company_id: int) -> Invoice | None:
    invoice = invoice_service.get_invoice_for_update(invoice_id, company_id)
    if invoice is not None and invoice.status in TERMINAL_STATUSES:
        raise ConflictError(f"Cannot modify items of a {invoice.status} invoice")
    return invoice


def _derive(item: InvoiceItem) -> None:
    item.discount_amount_cents, item.subtotal_cents = line_amounts(
        item.quantity, item.unit_price_cents, item.discount_percent_bps
    )


def _refresh_totals(invoice: Invoice) -> None:
    db.session.flush()
    invoice_service.recompute_totals(invoice, invoice_service.get_invoice_items(invoice.id))
    # Always write the invoice row so the version check serializes item edits
    invoice.updated_at = utcnow()


def list_items(invoice_id: int, company_id: int) -> list[InvoiceItem]:
    invoice = invoice_service.require_invoice(invoice_id, company_id)
    return invoice_service.get_invoice_items(invoice.id)


def add_item(invoice_id: int, company_id: int, payload: dict | None) -> InvoiceItem:
    """
    Add a line item. quantity > 0, unitPrice >= 0, discountPercent 0-100;
    type defaults to "other".
    """
    fields = validate_payload(payload=payload, policy=INVOICE_ITEM_POLICY, partial=False)

    def _op() -> InvoiceItem:
        invoice = _lock_editable_invoice(invoice_id, company_id)
        if invoice is None:
            raise NotFoundError("Invoice not found")

        item = InvoiceItem(
            invoice_id=invoice.id,
            description=fields["description"],
            quantity=fields["quantity"],
            unit_price_cents=fields["unit_price_cents"],
            discount_percent_bps=fields.get("discount_percent_bps") or 0,
            item_type=fields.get("item_type") or "other",
            inventory_item_id=fields.get("inventory_item_id"),
        )
        _derive(item)
        db.session.add(item)

        _refresh_totals(invoice)
        db.session.commit()
        return item

    return run_with_retry(_op)


def update_item(invoice_id: int, item_id: int, company_id: int, payload: dict | None) -> InvoiceItem | None:
    """Partial update; derived amounts are recalculated from the merged fields. None if not found."""
    patch = validate_payload(payload=payload, policy=INVOICE_ITEM_POLICY, partial=True)

    def _op() -> InvoiceItem | None:
        invoice = _lock_editable_invoice(invoice_id, company_id)
        if invoice is None:
            return None

        item = db.session.query(InvoiceItem).filter_by(id=item_id, invoice_id=invoice.id).first()
        if item is None:
            return None

        for attr, value in patch.items():
            setattr(item, attr, value)
        _derive(item)

        _refresh_totals(invoice)
        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_item(invoice_id: int, item_id: int, company_id: int) -> bool:
    """
    Delete a line item. Removing the last one leaves subtotal and tax at zero
    and the total at max(0, -discount) = 0.
    """
    def _op() -> bool:
        invoice = _lock_editable_invoice(invoice_id, company_id)
        if invoice is None:
            return False

        item = db.session.query(InvoiceItem).filter_by(id=item_id, invoice_id=invoice.id).first()
        if item is None:
            return False

        db.session.delete(item)
        _refresh_totals(invoice)
        db.session.commit()
        return True

    return run_with_retry(_op)
