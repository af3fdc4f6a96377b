from __future__ import annotations

from ..extensions import db
from ..money import from_bps, from_cents
from ..time_utils import to_utc_z


INVOICE_STATUS_DRAFT = "draft"
INVOICE_STATUS_ISSUED = "issued"
INVOICE_STATUS_PAID = "paid"
INVOICE_STATUS_OVERDUE = "overdue"
INVOICE_STATUS_CANCELLED = "cancelled"

INVOICE_STATUSES = (
    INVOICE_STATUS_DRAFT,
    INVOICE_STATUS_ISSUED,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_OVERDUE,
    INVOICE_STATUS_CANCELLED,
)

ITEM_TYPES = ("part", "service", "labor", "other")


class Invoice(db.Model):
    """
    Customer invoice (draft -> issued -> paid, or cancelled).

    MONEY: all amounts are integer cents, tax_rate is basis points.
    tax_amount_is_manual records that tax_amount_cents was supplied by the
    client and must survive total recomputation.

    CONCURRENCY: version_id is an optimistic lock. Line-item mutations also
    take a row lock on the invoice so totals are recomputed serially.

    SOFT DELETE: rows with deleted_at set are invisible to every read.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.Index("ix_invoices_company_status", "company_id", "status"),
        db.Index("ix_invoices_company_customer", "company_id", "customer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)

    # Human-readable number (e.g., "INV-202610-48213907")
    invoice_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    ticket_id = db.Column(db.Integer, nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_DRAFT)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_date = db.Column(db.DateTime(timezone=True), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_amount_is_manual = db.Column(db.Boolean, nullable=False, default=False)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    # Payment metadata (set once paid)
    payment_method = db.Column(db.String(50), nullable=True)
    payment_reference = db.Column(db.String(100), nullable=True)
    payment_notes = db.Column(db.Text, nullable=True)
    cash_drawer_session_id = db.Column(db.Integer, db.ForeignKey("cash_drawer_sessions.id"), nullable=True, index=True)

    # Refunds (cumulative)
    refund_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    refund_date = db.Column(db.DateTime(timezone=True), nullable=True)
    refund_reason = db.Column(db.Text, nullable=True)
    refund_method = db.Column(db.String(50), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    cash_drawer_session = db.relationship("CashDrawerSession", backref=db.backref("invoices", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, items: list["InvoiceItem"] | None = None) -> dict:
        data = {
            "id": self.id,
            "invoiceNumber": self.invoice_number,
            "companyId": self.company_id,
            "locationId": self.location_id,
            "customerId": self.customer_id,
            "ticketId": self.ticket_id,
            "status": self.status,
            "issueDate": to_utc_z(self.issue_date),
            "dueDate": to_utc_z(self.due_date),
            "paidDate": to_utc_z(self.paid_date),
            "subtotal": from_cents(self.subtotal_cents),
            "taxRate": from_bps(self.tax_rate_bps),
            "taxAmount": from_cents(self.tax_amount_cents),
            "discountAmount": from_cents(self.discount_amount_cents),
            "totalAmount": from_cents(self.total_amount_cents),
            "notes": self.notes,
            "paymentMethod": self.payment_method,
            "paymentReference": self.payment_reference,
            "paymentNotes": self.payment_notes,
            "cashDrawerSessionId": self.cash_drawer_session_id,
            "refundAmount": from_cents(self.refund_amount_cents),
            "refundDate": to_utc_z(self.refund_date),
            "refundReason": self.refund_reason,
            "refundMethod": self.refund_method,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if items is not None:
            data["items"] = [item.to_dict() for item in items]
        return data


class InvoiceItem(db.Model):
    """
    Line item on an invoice.

    discount_amount_cents and subtotal_cents are derived from quantity,
    unit price and discount percent; they are never written directly.
    inventory_item_id is a back-reference to the stock catalogue, not ownership.
    """
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    description = db.Column(db.String(500), nullable=False)
    item_type = db.Column(db.String(16), nullable=False, default="other")
    inventory_item_id = db.Column(db.Integer, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_percent_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoiceId": self.invoice_id,
            "description": self.description,
            "type": self.item_type,
            "inventoryItemId": self.inventory_item_id,
            "quantity": self.quantity,
            "unitPrice": from_cents(self.unit_price_cents),
            "discountPercent": from_bps(self.discount_percent_bps),
            "discountAmount": from_cents(self.discount_amount_cents),
            "subtotal": from_cents(self.subtotal_cents),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
