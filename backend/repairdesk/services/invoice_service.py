# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice aggregate: create, update, soft delete, list, get, and the totals math.

MONEY: integer cents, tax rate in basis points.
- tax = round(subtotal * rate) unless tax_amount_is_manual
- total = max(0, subtotal + tax - discount)
A client-supplied total is accepted only while the invoice is a draft and
holds until the next recomputation.

TENANCY: every lookup filters by company_id and deleted_at IS NULL, so foreign
and soft-deleted invoices are indistinguishable from missing ones.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Invoice, InvoiceItem
from ..models.invoices import (
    INVOICE_STATUSES,
    INVOICE_STATUS_CANCELLED,
    INVOICE_STATUS_DRAFT,
    INVOICE_STATUS_ISSUED,
    INVOICE_STATUS_PAID,
)
from ..money import invoice_total, percent_of
from ..time_utils import utcnow
from ..validation import INVOICE_CREATE_POLICY, INVOICE_UPDATE_POLICY, validate_payload
from . import numbering_service, tenant_service
from .concurrency import lock_for_update, run_with_retry


FINANCIAL_FIELDS = frozenset({
    "subtotal_cents",
    "tax_rate_bps",
    "tax_amount_cents",
    "discount_amount_cents",
    "total_amount_cents",
})

# Statuses an invoice can never leave
TERMINAL_STATUSES = frozenset({INVOICE_STATUS_PAID, INVOICE_STATUS_CANCELLED})


def _invoice_query(company_id: int):
    return db.session.query(Invoice).filter(
        Invoice.company_id == company_id,
        Invoice.deleted_at.is_(None),
    )


def get_invoice(invoice_id: int, company_id: int) -> Invoice | None:
    return _invoice_query(company_id).filter(Invoice.id == invoice_id).first()


def get_invoice_for_update(invoice_id: int, company_id: int) -> Invoice | None:
    return lock_for_update(_invoice_query(company_id).filter(Invoice.id == invoice_id)).first()


def require_invoice(invoice_id: int, company_id: int, *, for_update: bool = False) -> Invoice:
    """Tenant-scoped fetch; raises NotFoundError. for_update takes a row lock."""
    if for_update:
        invoice = get_invoice_for_update(invoice_id, company_id)
    else:
        invoice = get_invoice(invoice_id, company_id)
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def get_invoice_items(invoice_id: int) -> list[InvoiceItem]:
    return (
        db.session.query(InvoiceItem)
        .filter(InvoiceItem.invoice_id == invoice_id)
        .order_by(InvoiceItem.id.asc())
        .all()
    )


def list_invoices(
    company_id: int,
    *,
    customer_id: int | None = None,
    status: str | None = None,
) -> list[Invoice]:
    """Newest first. Unknown status values are rejected rather than matching nothing."""
    query = _invoice_query(company_id)

    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)

    if status is not None:
        status = status.strip().lower()
        if status not in INVOICE_STATUSES:
            raise ValidationError(
                "Invalid status filter",
                [{"field": "status", "message": f"must be one of: {', '.join(INVOICE_STATUSES)}"}],
            )
        query = query.filter(Invoice.status == status)

    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def recompute_totals(invoice: Invoice, items: list[InvoiceItem] | None = None) -> Invoice:
    """
    Recalculate subtotal (when items are given), tax and total in place.

    items=None keeps the stored subtotal, which is how invoices without line
    items carry a client-supplied subtotal. Idempotent; never commits.
    """
    if items is not None:
        invoice.subtotal_cents = sum(int(item.subtotal_cents or 0) for item in items)

    subtotal = int(invoice.subtotal_cents or 0)
    if not invoice.tax_amount_is_manual:
        invoice.tax_amount_cents = percent_of(subtotal, int(invoice.tax_rate_bps or 0))

    invoice.total_amount_cents = invoice_total(
        subtotal,
        int(invoice.tax_amount_cents or 0),
        int(invoice.discount_amount_cents or 0),
    )
    return invoice


def _reject_total_override(target_status: str) -> None:
    if target_status != INVOICE_STATUS_DRAFT:
        raise ValidationError(
            "totalAmount can only be set on draft invoices",
            [{"field": "totalAmount", "message": "can only be set while the invoice is a draft"}],
        )


def create_invoice(
    company_id: int,
    payload: dict | None,
    *,
    user_id: int | None = None,
    location_id: int | None = None,
) -> Invoice:
    """
    Create a draft (or issued) invoice with a freshly allocated number.

    location_id in the payload wins over the caller's location context. When no
    taxRate is supplied the location's default rate applies if tax is enabled there.

    NUMBERING: insert-and-catch. A unique violation on invoice_number rolls back
    and retries with a new candidate, without an attempt cap. Any other
    integrity error propagates.
    """
    fields = validate_payload(payload=payload, policy=INVOICE_CREATE_POLICY, partial=False)
    if "location_id" in fields:
        location_id = fields.pop("location_id")

    status = fields.get("status") or INVOICE_STATUS_DRAFT
    total_override = fields.get("total_amount_cents")
    if total_override is not None:
        _reject_total_override(status)

    def _op() -> Invoice:
        if fields.get("customer_id") is not None:
            tenant_service.require_customer_in_company(fields["customer_id"], company_id)

        location = None
        if location_id is not None:
            location = tenant_service.require_location_in_company(location_id, company_id)

        tax_rate_bps = fields.get("tax_rate_bps")
        if tax_rate_bps is None:
            tax_rate_bps = location.tax_rate_bps if location is not None and location.tax_enabled else 0

        while True:
            invoice = Invoice(
                company_id=company_id,
                location_id=location_id,
                invoice_number=numbering_service.generate_invoice_number(),
                customer_id=fields.get("customer_id"),
                ticket_id=fields.get("ticket_id"),
                status=status,
                issue_date=fields.get("issue_date"),
                due_date=fields.get("due_date"),
                subtotal_cents=fields.get("subtotal_cents") or 0,
                tax_rate_bps=tax_rate_bps,
                tax_amount_cents=fields.get("tax_amount_cents") or 0,
                tax_amount_is_manual=fields.get("tax_amount_cents") is not None,
                discount_amount_cents=fields.get("discount_amount_cents") or 0,
                notes=fields.get("notes"),
                refund_amount_cents=0,
                created_by_user_id=user_id,
            )
            if status == INVOICE_STATUS_ISSUED and invoice.issue_date is None:
                invoice.issue_date = utcnow()

            recompute_totals(invoice)
            if total_override is not None:
                invoice.total_amount_cents = total_override

            db.session.add(invoice)
            try:
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                if numbering_service.invoice_number_exists(invoice.invoice_number):
                    current_app.logger.info("Invoice number %s already taken, drawing another", invoice.invoice_number)
                    continue
                raise

            current_app.logger.info("Created invoice %s (company=%s)", invoice.invoice_number, company_id)
            return invoice

    return run_with_retry(_op)


def update_invoice(invoice_id: int, company_id: int, payload: dict | None) -> Invoice:
    """
    Partial update.

    RULES:
    - status=paid is rejected (ValidationError); payment capture is the only way to paid
    - a paid or cancelled invoice cannot move to another status (ConflictError)
    - financial fields of a paid or cancelled invoice are frozen (ConflictError)
    - subtotal is derived once the invoice has items (ValidationError)
    - totalAmount only while the invoice is (or stays) a draft; leaving draft recomputes
    - taxAmount makes tax manual; taxRate without taxAmount makes it computed again
    """
    patch = validate_payload(payload=payload, policy=INVOICE_UPDATE_POLICY, partial=True)

    new_status = patch.get("status")
    if new_status == INVOICE_STATUS_PAID:
        raise ValidationError(
            "Invoices are marked paid through a payment endpoint",
            [{"field": "status", "message": "cannot be set to paid directly"}],
        )

    def _op() -> Invoice:
        invoice = require_invoice(invoice_id, company_id, for_update=True)

        if invoice.status in TERMINAL_STATUSES and new_status is not None and new_status != invoice.status:
            raise ConflictError(f"Cannot change the status of a {invoice.status} invoice")

        financial = FINANCIAL_FIELDS & patch.keys()
        if financial and invoice.status in TERMINAL_STATUSES:
            raise ConflictError(f"Cannot change amounts on a {invoice.status} invoice")

        items = get_invoice_items(invoice.id)
        if "subtotal_cents" in patch and items:
            raise ValidationError(
                "subtotal is calculated from line items",
                [{"field": "subtotal", "message": "cannot be set when the invoice has line items"}],
            )

        target_status = new_status or invoice.status
        total_override = patch.get("total_amount_cents")
        if total_override is not None:
            _reject_total_override(target_status)

        if patch.get("customer_id") is not None:
            tenant_service.require_customer_in_company(patch["customer_id"], company_id)

        for attr in ("customer_id", "ticket_id", "issue_date", "due_date", "notes",
                     "subtotal_cents", "discount_amount_cents"):
            if attr in patch:
                setattr(invoice, attr, patch[attr])

        if "tax_rate_bps" in patch:
            invoice.tax_rate_bps = patch["tax_rate_bps"]
        if "tax_amount_cents" in patch:
            invoice.tax_amount_cents = patch["tax_amount_cents"]
            invoice.tax_amount_is_manual = True
        elif "tax_rate_bps" in patch:
            invoice.tax_amount_is_manual = False

        leaving_draft = invoice.status == INVOICE_STATUS_DRAFT and target_status != INVOICE_STATUS_DRAFT

        if new_status is not None and new_status != invoice.status:
            invoice.status = new_status
            if new_status == INVOICE_STATUS_ISSUED and invoice.issue_date is None:
                invoice.issue_date = utcnow()

        if financial or leaving_draft:
            recompute_totals(invoice, items or None)
            if total_override is not None:
                invoice.total_amount_cents = total_override

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def delete_invoice(invoice_id: int, company_id: int) -> bool:
    """Soft delete. False when missing, foreign or already deleted."""
    def _op() -> bool:
        invoice = get_invoice_for_update(invoice_id, company_id)
        if not invoice:
            return False
        invoice.deleted_at = utcnow()
        db.session.commit()
        current_app.logger.info("Soft-deleted invoice %s (status=%s)", invoice.invoice_number, invoice.status)
        return True

    return run_with_retry(_op)
