# Overview: Pytest coverage for invoice number format and collision retry.

import re
from datetime import datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from repairdesk.services import invoice_service, numbering_service


NUMBER_PATTERN = re.compile(r"^INV-\d{6}-\d{8}$")


class TestInvoiceNumberFormat:

    def test_format(self, app):
        number = numbering_service.generate_invoice_number(now=datetime(2026, 3, 9, 12, 0))
        assert NUMBER_PATTERN.match(number)
        assert number.startswith("INV-202603-")

    def test_configurable_prefix(self, app):
        app.config["INVOICE_NUMBER_PREFIX"] = "RD"
        assert numbering_service.generate_invoice_number().startswith("RD-")

    def test_many_invoices_get_distinct_numbers(self, db_session, company_a):
        numbers = {invoice_service.create_invoice(company_a.id, {}).invoice_number for _ in range(25)}
        assert len(numbers) == 25
        assert all(NUMBER_PATTERN.match(number) for number in numbers)


class TestCollisionRetry:

    def test_collision_draws_a_new_number(self, db_session, company_a):
        with patch.object(
            numbering_service,
            "generate_invoice_number",
            side_effect=["INV-202610-00000001", "INV-202610-00000001", "INV-202610-00000001", "INV-202610-00000002"],
        ) as generator:
            first = invoice_service.create_invoice(company_a.id, {})
            second = invoice_service.create_invoice(company_a.id, {"subtotal": 12.00})

        assert first.invoice_number == "INV-202610-00000001"
        assert second.invoice_number == "INV-202610-00000002"
        assert second.subtotal_cents == 1200
        assert generator.call_count == 4
        assert len(invoice_service.list_invoices(company_a.id)) == 2

    def test_soft_deleted_number_still_collides(self, db_session, company_a):
        with patch.object(
            numbering_service,
            "generate_invoice_number",
            side_effect=["INV-202610-00000007", "INV-202610-00000007", "INV-202610-00000008"],
        ):
            first = invoice_service.create_invoice(company_a.id, {})
            invoice_service.delete_invoice(first.id, company_a.id)
            second = invoice_service.create_invoice(company_a.id, {})

        assert second.invoice_number == "INV-202610-00000008"

    def test_other_integrity_errors_propagate(self, db_session, company_a):
        with patch.object(numbering_service, "invoice_number_exists", return_value=False), \
                patch.object(invoice_service.db.session, "commit", side_effect=IntegrityError("INSERT", {}, Exception("NOT NULL"))):
            with pytest.raises(IntegrityError):
                invoice_service.create_invoice(company_a.id, {})
