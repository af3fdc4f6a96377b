# Overview: Pytest coverage for cash drawer sessions (open, close, variance, history).

from datetime import timedelta

import pytest

from repairdesk.errors import ConflictError, NotFoundError, ValidationError
from repairdesk.extensions import db
from repairdesk.models import CashDrawerSession
from repairdesk.services import cash_drawer_service, invoice_service, payment_service
from repairdesk.time_utils import utcnow


def _open(company, user, location, amount=100.00):
    return cash_drawer_service.open_drawer(
        company.id, user.id, {"openingAmount": amount}, location_id=location.id if location else None
    )


def _sell_cash(company, location, amount):
    invoice = invoice_service.create_invoice(company.id, {"subtotal": amount, "status": "issued"})
    return payment_service.capture_cash(
        invoice.id, company.id, invoice.total_amount_cents, location_id=location.id
    )


class TestOpenDrawer:

    def test_open_records_event(self, db_session, company_a, location_a, frontdesk_a):
        drawer = _open(company_a, frontdesk_a, location_a)

        assert drawer.status == "open"
        assert drawer.opening_amount_cents == 10000
        assert drawer.opened_by_user_id == frontdesk_a.id
        assert drawer.open_slot == f"{company_a.id}:{location_a.id}"
        assert cash_drawer_service.get_current_session(company_a.id, location_a.id).id == drawer.id

        events = cash_drawer_service.get_session_events(drawer.id)
        assert [e.event_type for e in events] == ["open"]

    def test_second_open_conflicts(self, db_session, company_a, location_a, frontdesk_a):
        _open(company_a, frontdesk_a, location_a)
        with pytest.raises(ConflictError):
            _open(company_a, frontdesk_a, location_a)

    def test_unique_slot_rejects_race_loser(self, db_session, company_a, location_a, frontdesk_a, monkeypatch):
        _open(company_a, frontdesk_a, location_a)
        # Simulate a concurrent opener that passed the pre-check
        monkeypatch.setattr(cash_drawer_service, "get_current_session", lambda *args, **kwargs: None)
        with pytest.raises(ConflictError):
            _open(company_a, frontdesk_a, location_a)
        assert db.session.query(CashDrawerSession).count() == 1

    def test_null_location_is_its_own_slot(self, db_session, company_a, location_a, frontdesk_a):
        _open(company_a, frontdesk_a, location_a)
        company_wide = _open(company_a, frontdesk_a, None)

        assert company_wide.location_id is None
        with pytest.raises(ConflictError):
            _open(company_a, frontdesk_a, None)

    def test_locations_are_independent(self, db_session, company_a, location_a, taxed_location_a, frontdesk_a):
        _open(company_a, frontdesk_a, location_a)
        other = _open(company_a, frontdesk_a, taxed_location_a)
        assert other.location_id == taxed_location_a.id

    def test_tenants_are_independent(self, db_session, company_a, location_a, frontdesk_a, company_b, location_b, admin_b):
        _open(company_a, frontdesk_a, location_a)
        assert _open(company_b, admin_b, location_b).company_id == company_b.id

    def test_foreign_location_not_found(self, db_session, company_a, frontdesk_a, location_b):
        with pytest.raises(NotFoundError):
            _open(company_a, frontdesk_a, location_b)

    def test_opening_amount_required(self, db_session, company_a, location_a, frontdesk_a):
        with pytest.raises(ValidationError):
            cash_drawer_service.open_drawer(company_a.id, frontdesk_a.id, {}, location_id=location_a.id)
        with pytest.raises(ValidationError):
            _open(company_a, frontdesk_a, location_a, amount=-10)


class TestCloseDrawer:

    @pytest.mark.parametrize("counted,variance", [(175.00, 0), (170.00, -500), (180.25, 525)])
    def test_variance(self, db_session, company_a, location_a, frontdesk_a, manager_a, counted, variance):
        drawer = _open(company_a, frontdesk_a, location_a)
        _sell_cash(company_a, location_a, 45.00)
        _sell_cash(company_a, location_a, 30.00)

        closed = cash_drawer_service.close_drawer(
            drawer.id, company_a.id, manager_a.id, {"closingAmount": counted, "countedCards": 12.50}
        )

        assert closed.status == "closed"
        assert closed.expected_amount_cents == 17500
        assert closed.variance_cents == variance
        assert closed.closed_by_user_id == manager_a.id
        assert closed.counted_cards_cents == 1250
        assert closed.open_slot is None

        data = closed.to_dict()
        assert data["expectedAmount"] == 175.00
        assert data["variance"] == variance / 100

    def test_double_close_conflicts(self, db_session, company_a, location_a, frontdesk_a):
        drawer = _open(company_a, frontdesk_a, location_a)
        cash_drawer_service.close_drawer(drawer.id, company_a.id, frontdesk_a.id, {"closingAmount": 100})

        with pytest.raises(ConflictError):
            cash_drawer_service.close_drawer(drawer.id, company_a.id, frontdesk_a.id, {"closingAmount": 100})

    def test_slot_reopens_after_close(self, db_session, company_a, location_a, frontdesk_a):
        drawer = _open(company_a, frontdesk_a, location_a)
        cash_drawer_service.close_drawer(drawer.id, company_a.id, frontdesk_a.id, {"closingAmount": 100})

        again = _open(company_a, frontdesk_a, location_a, amount=150.00)
        assert again.id != drawer.id
        assert cash_drawer_service.get_current_session(company_a.id, location_a.id).id == again.id

    def test_foreign_session_not_found(self, db_session, company_a, location_a, frontdesk_a, company_b, admin_b):
        drawer = _open(company_a, frontdesk_a, location_a)
        with pytest.raises(NotFoundError):
            cash_drawer_service.close_drawer(drawer.id, company_b.id, admin_b.id, {"closingAmount": 100})

    def test_other_location_not_found(self, db_session, company_a, location_a, taxed_location_a, frontdesk_a):
        drawer = _open(company_a, frontdesk_a, location_a)
        with pytest.raises(NotFoundError):
            cash_drawer_service.close_drawer(
                drawer.id, company_a.id, frontdesk_a.id, {"closingAmount": 100}, location_id=taxed_location_a.id
            )

    def test_cash_after_close_conflicts(self, db_session, company_a, location_a, frontdesk_a):
        drawer = _open(company_a, frontdesk_a, location_a)
        cash_drawer_service.close_drawer(drawer.id, company_a.id, frontdesk_a.id, {"closingAmount": 100})

        with pytest.raises(ConflictError):
            cash_drawer_service.credit_cash(drawer.id, 500)


class TestHistory:

    def _closed_sessions(self, company, user, location, count):
        sessions = []
        for _ in range(count):
            drawer = _open(company, user, location)
            cash_drawer_service.close_drawer(drawer.id, company.id, user.id, {"closingAmount": 100})
            sessions.append(drawer.id)
        return sessions

    def test_newest_first_with_paging(self, db_session, company_a, location_a, frontdesk_a):
        ids = self._closed_sessions(company_a, frontdesk_a, location_a, 3)

        page = cash_drawer_service.get_session_history(company_a.id, limit=2)
        assert [s.id for s in page] == [ids[2], ids[1]]

        rest = cash_drawer_service.get_session_history(company_a.id, limit=2, offset=2)
        assert [s.id for s in rest] == [ids[0]]

    def test_location_and_date_filters(self, db_session, company_a, location_a, taxed_location_a, frontdesk_a):
        self._closed_sessions(company_a, frontdesk_a, location_a, 1)
        kiosk = self._closed_sessions(company_a, frontdesk_a, taxed_location_a, 1)

        assert [s.id for s in cash_drawer_service.get_session_history(
            company_a.id, location_id=taxed_location_a.id)] == kiosk

        tomorrow = utcnow() + timedelta(days=1)
        assert cash_drawer_service.get_session_history(company_a.id, start=tomorrow) == []

    def test_excludes_other_tenants(self, db_session, company_a, location_a, frontdesk_a, company_b, location_b, admin_b):
        self._closed_sessions(company_b, admin_b, location_b, 2)
        assert cash_drawer_service.get_session_history(company_a.id) == []

    @pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": 201}, {"offset": -1}])
    def test_invalid_paging(self, db_session, company_a, kwargs):
        with pytest.raises(ValidationError):
            cash_drawer_service.get_session_history(company_a.id, **kwargs)

    def test_start_after_end(self, db_session, company_a):
        now = utcnow()
        with pytest.raises(ValidationError):
            cash_drawer_service.get_session_history(company_a.id, start=now, end=now - timedelta(days=1))
