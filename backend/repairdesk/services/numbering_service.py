# Overview: Invoice number allocation (INV-YYYYMM-<random digits>).

"""
Invoice numbers are not sequential: each candidate is the current UTC
year/month plus an 8-digit random suffix. The unique constraint on
invoices.invoice_number is the arbiter; creation inserts the candidate and
draws a new one when the insert collides (see invoice_service.create_invoice).
"""

from __future__ import annotations

import secrets
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Invoice
from ..time_utils import billing_period


SUFFIX_DIGITS = 8


def generate_invoice_number(now: datetime | None = None, prefix: str | None = None) -> str:
    if prefix is None:
        prefix = current_app.config.get("INVOICE_NUMBER_PREFIX", "INV")
    suffix = secrets.randbelow(10 ** SUFFIX_DIGITS)
    return f"{prefix}-{billing_period(now)}-{suffix:0{SUFFIX_DIGITS}d}"


def invoice_number_exists(invoice_number: str) -> bool:
    """True when any invoice (including soft-deleted ones) holds the number."""
    return db.session.query(
        db.session.query(Invoice.id).filter(Invoice.invoice_number == invoice_number).exists()
    ).scalar()
