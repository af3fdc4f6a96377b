from __future__ import annotations

from ..extensions import db
from ..money import from_cents
from ..time_utils import to_utc_z


DRAWER_STATUS_OPEN = "open"
DRAWER_STATUS_CLOSED = "closed"

EVENT_OPEN = "open"
EVENT_CASH_SALE = "cash_sale"
EVENT_CASH_REFUND = "cash_refund"
EVENT_CLOSE = "close"


def drawer_slot(company_id: int, location_id: int | None) -> str:
    """Slot key for the one-open-session-per-location rule ("-" = no location)."""
    return f"{company_id}:{location_id if location_id is not None else '-'}"


class CashDrawerSession(db.Model):
    """
    Cash drawer shift for one location (or the company-wide drawer).

    LIFECYCLE:
    - open: cash captures and refunds move cash_sales_cents / cash_refunds_cents
    - closed: counted, expected and variance recorded; immutable afterwards

    ONE OPEN PER SLOT: open_slot holds "<company_id>:<location_id or ->" while
    the session is open and NULL once closed. The unique index on it lets the
    database reject a second open session for the same slot, including the
    NULL-location slot that a composite unique key could not cover.

    Running totals are only ever changed with single UPDATE statements
    (see cash_drawer_service.credit_cash / debit_cash), never read-modify-write.
    """
    __tablename__ = "cash_drawer_sessions"
    __table_args__ = (
        db.UniqueConstraint("open_slot", name="uq_cash_drawer_sessions_open_slot"),
        db.Index("ix_cash_drawer_sessions_company_opened", "company_id", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True, index=True)

    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=DRAWER_STATUS_OPEN, index=True)
    open_slot = db.Column(db.String(64), nullable=True)

    # Cash tracking (all amounts in cents)
    opening_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    cash_refunds_cents = db.Column(db.Integer, nullable=False, default=0)

    # Set when closing
    closing_amount_cents = db.Column(db.Integer, nullable=True)
    expected_amount_cents = db.Column(db.Integer, nullable=True)
    variance_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    # Informational only, never part of the variance
    counted_checks_cents = db.Column(db.Integer, nullable=True)
    counted_cards_cents = db.Column(db.Integer, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])

    def running_expected_cents(self) -> int:
        return (
            int(self.opening_amount_cents or 0)
            + int(self.cash_sales_cents or 0)
            - int(self.cash_refunds_cents or 0)
        )

    def to_dict(self, events: list["CashDrawerEvent"] | None = None) -> dict:
        expected = self.expected_amount_cents
        if self.status == DRAWER_STATUS_OPEN:
            expected = self.running_expected_cents()
        data = {
            "id": self.id,
            "companyId": self.company_id,
            "locationId": self.location_id,
            "status": self.status,
            "openedBy": self.opened_by_user_id,
            "openedByName": self.opened_by.username if self.opened_by else None,
            "closedBy": self.closed_by_user_id,
            "closedByName": self.closed_by.username if self.closed_by else None,
            "openingAmount": from_cents(self.opening_amount_cents),
            "cashSales": from_cents(self.cash_sales_cents),
            "cashRefunds": from_cents(self.cash_refunds_cents),
            "closingAmount": from_cents(self.closing_amount_cents),
            "expectedAmount": from_cents(expected),
            "variance": from_cents(self.variance_cents),
            "countedChecks": from_cents(self.counted_checks_cents),
            "countedCards": from_cents(self.counted_cards_cents),
            "openedAt": to_utc_z(self.opened_at),
            "closedAt": to_utc_z(self.closed_at),
            "notes": self.notes,
        }
        if events is not None:
            data["events"] = [event.to_dict() for event in events]
        return data


class CashDrawerEvent(db.Model):
    """
    Drawer audit trail: one row per open, cash sale, cash refund and close.

    Written in the same transaction as the change it records.
    """
    __tablename__ = "cash_drawer_events"
    __table_args__ = (
        db.Index("ix_cash_drawer_events_session_occurred", "session_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_drawer_sessions.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    event_type = db.Column(db.String(32), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    session = db.relationship("CashDrawerSession", backref=db.backref("events", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "eventType": self.event_type,
            "amount": from_cents(self.amount_cents),
            "invoiceId": self.invoice_id,
            "note": self.note,
            "occurredAt": to_utc_z(self.occurred_at),
        }
