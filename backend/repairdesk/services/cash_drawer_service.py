# Overview: Service-layer operations for cash drawer sessions; encapsulates business logic and database work.

"""
Cash drawer sessions (one shift of one drawer).

LIFECYCLE: open -> closed. Closed sessions are immutable.

ONE OPEN SESSION PER SLOT: a slot is (company, location) and the NULL location
is its own slot. open_drawer pre-checks, and the unique open_slot column makes
the database reject the loser of a race.

RUNNING TOTALS: cash captures and cash refunds change cash_sales_cents and
cash_refunds_cents only through single UPDATE ... SET col = col + :amount
WHERE status = 'open' statements, inside the caller's transaction.

RECONCILIATION at close:
    expected = opening + cash_sales - cash_refunds
    variance = closing - expected   (positive = over, negative = short)
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import CashDrawerEvent, CashDrawerSession
from ..models.cash_drawer import (
    DRAWER_STATUS_CLOSED,
    DRAWER_STATUS_OPEN,
    EVENT_CLOSE,
    EVENT_OPEN,
    drawer_slot,
)
from ..money import from_cents
from ..time_utils import utcnow
from ..validation import DRAWER_CLOSE_POLICY, DRAWER_OPEN_POLICY, validate_payload
from . import tenant_service
from .concurrency import lock_for_update, run_with_retry


def _session_query(company_id: int):
    return db.session.query(CashDrawerSession).filter(CashDrawerSession.company_id == company_id)


def _location_filter(query, location_id: int | None):
    if location_id is None:
        return query.filter(CashDrawerSession.location_id.is_(None))
    return query.filter(CashDrawerSession.location_id == location_id)


def get_session(session_id: int, company_id: int) -> CashDrawerSession | None:
    return _session_query(company_id).filter(CashDrawerSession.id == session_id).first()


def get_current_session(company_id: int, location_id: int | None = None) -> CashDrawerSession | None:
    """The open session for the (company, location) slot, if any."""
    query = _session_query(company_id).filter(CashDrawerSession.status == DRAWER_STATUS_OPEN)
    return _location_filter(query, location_id).first()


def get_session_events(session_id: int) -> list[CashDrawerEvent]:
    return (
        db.session.query(CashDrawerEvent)
        .filter(CashDrawerEvent.session_id == session_id)
        .order_by(CashDrawerEvent.occurred_at.asc(), CashDrawerEvent.id.asc())
        .all()
    )


def get_session_history(
    company_id: int,
    *,
    location_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[CashDrawerSession]:
    """
    Sessions ordered by opened_at, newest first.

    location_id=None means every location of the company. start/end bound
    opened_at (inclusive). limit defaults to DRAWER_HISTORY_DEFAULT_LIMIT and
    may not exceed DRAWER_HISTORY_MAX_LIMIT.
    """
    max_limit = int(current_app.config.get("DRAWER_HISTORY_MAX_LIMIT", 200))
    if limit is None:
        limit = int(current_app.config.get("DRAWER_HISTORY_DEFAULT_LIMIT", 50))

    errors = []
    if limit < 1 or limit > max_limit:
        errors.append({"field": "limit", "message": f"must be between 1 and {max_limit}"})
    if offset < 0:
        errors.append({"field": "offset", "message": "cannot be negative"})
    if start is not None and end is not None and start > end:
        errors.append({"field": "startDate", "message": "must not be after endDate"})
    if errors:
        raise ValidationError("Invalid history query", errors)

    query = _session_query(company_id)
    if location_id is not None:
        query = query.filter(CashDrawerSession.location_id == location_id)
    if start is not None:
        query = query.filter(CashDrawerSession.opened_at >= start)
    if end is not None:
        query = query.filter(CashDrawerSession.opened_at <= end)

    return (
        query.order_by(CashDrawerSession.opened_at.desc(), CashDrawerSession.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def log_drawer_event(
    drawer_session: CashDrawerSession,
    user_id: int | None,
    event_type: str,
    amount_cents: int | None = None,
    invoice_id: int | None = None,
    note: str | None = None,
) -> CashDrawerEvent:
    """Record an audit row in the caller's transaction (flushed, not committed)."""
    event = CashDrawerEvent(
        session_id=drawer_session.id,
        company_id=drawer_session.company_id,
        user_id=user_id,
        event_type=event_type,
        amount_cents=amount_cents,
        invoice_id=invoice_id,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.flush()
    return event


def _increment(session_id: int, column, amount_cents: int) -> None:
    if amount_cents < 0:
        raise ValidationError("Amount cannot be negative", [{"field": "amount", "message": "cannot be negative"}])

    stmt = (
        update(CashDrawerSession)
        .where(
            CashDrawerSession.id == session_id,
            CashDrawerSession.status == DRAWER_STATUS_OPEN,
        )
        .values({column: column + amount_cents, CashDrawerSession.updated_at: utcnow()})
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise ConflictError("Cash drawer session is not open")


def credit_cash(session_id: int, amount_cents: int) -> None:
    """Add a cash sale to an open session. ConflictError if it is not open."""
    _increment(session_id, CashDrawerSession.cash_sales_cents, amount_cents)


def debit_cash(session_id: int, amount_cents: int) -> None:
    """Record cash paid out of an open session. ConflictError if it is not open."""
    _increment(session_id, CashDrawerSession.cash_refunds_cents, amount_cents)


def resolve_open_session(
    company_id: int,
    *,
    session_id: int | None = None,
    location_id: int | None = None,
) -> CashDrawerSession:
    """
    The session a cash movement should hit.

    An explicit session_id must belong to the company (and to location_id when
    one is given) and be open. Without one, the current open session of the
    location slot is used.
    """
    if session_id is not None:
        drawer_session = get_session(session_id, company_id)
        if drawer_session is None or (
            location_id is not None and drawer_session.location_id != location_id
        ):
            raise NotFoundError("Cash drawer session not found")
        if drawer_session.status != DRAWER_STATUS_OPEN:
            raise ConflictError("Cash drawer session is closed")
        return drawer_session

    drawer_session = get_current_session(company_id, location_id)
    if drawer_session is None:
        raise ValidationError(
            "No open cash drawer session",
            [{"field": "sessionId", "message": "open a cash drawer session first"}],
        )
    return drawer_session


def open_drawer(
    company_id: int,
    user_id: int,
    payload: dict | None,
    *,
    location_id: int | None = None,
) -> CashDrawerSession:
    """
    Open a session for the location slot with the counted opening float.

    Raises:
        ValidationError: bad openingAmount
        NotFoundError: location not in the company
        ConflictError: a session is already open for the slot
    """
    fields = validate_payload(payload=payload, policy=DRAWER_OPEN_POLICY, partial=False)
    if "location_id" in fields:
        location_id = fields.pop("location_id")

    def _op() -> CashDrawerSession:
        if location_id is not None:
            tenant_service.require_location_in_company(location_id, company_id)

        existing = get_current_session(company_id, location_id)
        if existing:
            raise ConflictError(f"A cash drawer session is already open (session {existing.id})")

        drawer_session = CashDrawerSession(
            company_id=company_id,
            location_id=location_id,
            opened_by_user_id=user_id,
            status=DRAWER_STATUS_OPEN,
            open_slot=drawer_slot(company_id, location_id),
            opening_amount_cents=fields["opening_amount_cents"],
            cash_sales_cents=0,
            cash_refunds_cents=0,
            opened_at=utcnow(),
            notes=fields.get("notes"),
        )
        db.session.add(drawer_session)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("A cash drawer session is already open for this location")

        log_drawer_event(
            drawer_session,
            user_id,
            EVENT_OPEN,
            amount_cents=drawer_session.opening_amount_cents,
            note="Drawer opened",
        )
        db.session.commit()

        current_app.logger.info(
            "Cash drawer session %s opened (company=%s location=%s opening=%s)",
            drawer_session.id, company_id, location_id, drawer_session.opening_amount_cents,
        )
        return drawer_session

    return run_with_retry(_op)


def close_drawer(
    session_id: int,
    company_id: int,
    user_id: int,
    payload: dict | None,
    *,
    location_id: int | None = None,
) -> CashDrawerSession:
    """
    Close a session and calculate the variance.

    location_id, when given, is the caller's location: sessions of other
    locations are reported as not found. countedChecks and countedCards are
    recorded for reference and do not affect the variance.

    IMMUTABLE: Once closed, session cannot be reopened or modified.
    """
    fields = validate_payload(payload=payload, policy=DRAWER_CLOSE_POLICY, partial=False)
    if "location_id" in fields:
        location_id = fields.pop("location_id")

    def _op() -> CashDrawerSession:
        drawer_session = (
            lock_for_update(_session_query(company_id).filter(CashDrawerSession.id == session_id))
            .populate_existing()
            .first()
        )
        if not drawer_session:
            raise NotFoundError("Cash drawer session not found")
        if location_id is not None and drawer_session.location_id != location_id:
            raise NotFoundError("Cash drawer session not found")
        if drawer_session.status != DRAWER_STATUS_OPEN:
            raise ConflictError("Cash drawer session is already closed")

        closing = fields["closing_amount_cents"]
        expected = drawer_session.running_expected_cents()
        variance = closing - expected

        drawer_session.status = DRAWER_STATUS_CLOSED
        drawer_session.open_slot = None
        drawer_session.closed_by_user_id = user_id
        drawer_session.closed_at = utcnow()
        drawer_session.closing_amount_cents = closing
        drawer_session.expected_amount_cents = expected
        drawer_session.variance_cents = variance
        drawer_session.counted_checks_cents = fields.get("counted_checks_cents")
        drawer_session.counted_cards_cents = fields.get("counted_cards_cents")
        if fields.get("notes") is not None:
            drawer_session.notes = fields["notes"]

        log_drawer_event(
            drawer_session,
            user_id,
            EVENT_CLOSE,
            amount_cents=closing,
            note=f"Drawer closed. Variance: {from_cents(variance):.2f}",
        )
        db.session.commit()

        log = current_app.logger.warning if variance else current_app.logger.info
        log(
            "Cash drawer session %s closed: expected=%s counted=%s variance=%s",
            drawer_session.id, expected, closing, variance,
        )
        return drawer_session

    return run_with_retry(_op)
