# Overview: Pytest coverage for invoice line items and their effect on totals.

import pytest

from repairdesk.errors import ConflictError, NotFoundError, ValidationError
from repairdesk.extensions import db
from repairdesk.services import invoice_item_service, invoice_service


@pytest.fixture
def draft(db_session, company_a):
    return invoice_service.create_invoice(company_a.id, {"taxRate": 8.5})


def _reload(invoice_id, company_id):
    db.session.expire_all()
    return invoice_service.get_invoice(invoice_id, company_id)


class TestAddItem:

    def test_discounted_service_item_end_to_end(self, db_session, company_a, draft):
        item = invoice_item_service.add_item(draft.id, company_a.id, {
            "description": "Battery replacement labour",
            "quantity": 1,
            "unitPrice": 100.00,
            "discountPercent": 10,
            "type": "service",
        })

        assert item.discount_amount_cents == 1000
        assert item.subtotal_cents == 9000
        assert item.item_type == "service"

        invoice = _reload(draft.id, company_a.id)
        assert invoice.subtotal_cents == 9000
        assert invoice.tax_amount_cents == 765
        assert invoice.total_amount_cents == 9765
        assert invoice.to_dict()["totalAmount"] == 97.65

    def test_type_defaults_to_other(self, db_session, company_a, draft):
        item = invoice_item_service.add_item(draft.id, company_a.id, {
            "description": "Screen protector",
            "quantity": 2,
            "unitPrice": 4.99,
        })
        assert item.item_type == "other"
        assert item.subtotal_cents == 998

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"description": "x", "quantity": 0, "unitPrice": 1}, "quantity"),
            ({"description": "x", "quantity": -2, "unitPrice": 1}, "quantity"),
            ({"description": "x", "quantity": 1.5, "unitPrice": 1}, "quantity"),
            ({"description": "x", "quantity": 1, "unitPrice": -1}, "unitPrice"),
            ({"description": "x", "quantity": 1, "unitPrice": 1, "discountPercent": 101}, "discountPercent"),
            ({"description": "x", "quantity": 1, "unitPrice": 1, "type": "gizmo"}, "type"),
            ({"quantity": 1, "unitPrice": 1}, "description"),
        ],
    )
    def test_rejects_invalid_input(self, db_session, company_a, draft, payload, field):
        with pytest.raises(ValidationError) as exc:
            invoice_item_service.add_item(draft.id, company_a.id, payload)
        assert field in {error["field"] for error in exc.value.errors}

        assert invoice_service.get_invoice_items(draft.id) == []

    def test_missing_invoice(self, db_session, company_a):
        with pytest.raises(NotFoundError):
            invoice_item_service.add_item(9999, company_a.id, {"description": "x", "quantity": 1, "unitPrice": 1})

    def test_foreign_invoice(self, db_session, company_b, draft):
        with pytest.raises(NotFoundError):
            invoice_item_service.add_item(draft.id, company_b.id, {"description": "x", "quantity": 1, "unitPrice": 1})


class TestTotalsInvariant:

    def test_subtotal_tracks_items_through_mutations(self, db_session, company_a, draft):
        first = invoice_item_service.add_item(draft.id, company_a.id, {
            "description": "Charging port", "quantity": 1, "unitPrice": 35.00, "type": "part",
        })
        second = invoice_item_service.add_item(draft.id, company_a.id, {
            "description": "Labour", "quantity": 2, "unitPrice": 25.00, "discountPercent": 5, "type": "labor",
        })
        invoice_item_service.update_item(draft.id, first.id, company_a.id, {"quantity": 3})
        invoice_item_service.update_item(draft.id, second.id, company_a.id, {"discountPercent": 0})

        invoice = _reload(draft.id, company_a.id)
        items = invoice_service.get_invoice_items(draft.id)
        assert invoice.subtotal_cents == sum(item.subtotal_cents for item in items) == 15500
        assert invoice.total_amount_cents == (
            invoice.subtotal_cents + invoice.tax_amount_cents - invoice.discount_amount_cents
        )

    def test_version_bumps_on_item_change(self, db_session, company_a, draft):
        before = _reload(draft.id, company_a.id).version_id
        invoice_item_service.add_item(draft.id, company_a.id, {"description": "x", "quantity": 1, "unitPrice": 1})
        after = _reload(draft.id, company_a.id).version_id
        assert after > before

    def test_removing_last_item_zeroes_totals(self, db_session, company_a):
        invoice = invoice_service.create_invoice(company_a.id, {"taxRate": 8.5, "discountAmount": 5.00})
        item = invoice_item_service.add_item(invoice.id, company_a.id, {
            "description": "Diagnostics", "quantity": 1, "unitPrice": 40.00,
        })

        assert invoice_item_service.remove_item(invoice.id, item.id, company_a.id) is True

        invoice = _reload(invoice.id, company_a.id)
        assert invoice.subtotal_cents == 0
        assert invoice.tax_amount_cents == 0
        assert invoice.total_amount_cents == 0

    def test_update_and_remove_missing_item(self, db_session, company_a, draft):
        assert invoice_item_service.update_item(draft.id, 9999, company_a.id, {"quantity": 2}) is None
        assert invoice_item_service.remove_item(draft.id, 9999, company_a.id) is False

    def test_explicit_subtotal_rejected_once_items_exist(self, db_session, company_a, draft):
        invoice_item_service.add_item(draft.id, company_a.id, {"description": "x", "quantity": 1, "unitPrice": 1})
        with pytest.raises(ValidationError):
            invoice_service.update_invoice(draft.id, company_a.id, {"subtotal": 50.00})

    def test_discount_update_keeps_item_subtotal(self, db_session, company_a, draft):
        invoice_item_service.add_item(draft.id, company_a.id, {"description": "x", "quantity": 1, "unitPrice": 50})

        updated = invoice_service.update_invoice(draft.id, company_a.id, {"discountAmount": 10.00})

        assert updated.subtotal_cents == 5000
        assert updated.total_amount_cents == 5000 + 425 - 1000


class TestFrozenItems:

    @pytest.mark.parametrize("status", ["paid", "cancelled"])
    def test_item_mutations_conflict(self, db_session, company_a, draft, status):
        item = invoice_item_service.add_item(draft.id, company_a.id, {"description": "x", "quantity": 1, "unitPrice": 10})
        invoice = _reload(draft.id, company_a.id)
        invoice.status = status
        db.session.commit()
        total_before = invoice.total_amount_cents

        with pytest.raises(ConflictError):
            invoice_item_service.add_item(draft.id, company_a.id, {"description": "y", "quantity": 1, "unitPrice": 1})
        with pytest.raises(ConflictError):
            invoice_item_service.update_item(draft.id, item.id, company_a.id, {"quantity": 5})
        with pytest.raises(ConflictError):
            invoice_item_service.remove_item(draft.id, item.id, company_a.id)

        assert _reload(draft.id, company_a.id).total_amount_cents == total_before
        assert len(invoice_service.get_invoice_items(draft.id)) == 1
