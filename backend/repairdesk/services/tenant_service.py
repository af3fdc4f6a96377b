"""
Tenant validation and scoping helpers.

SECURITY INVARIANTS:
1. Every authenticated request has g.company_id set
2. Location IDs from client input are validated against the caller's company
3. Rows owned by another company are reported exactly like missing rows

USAGE:
    from repairdesk.services.tenant_service import require_location_in_company

    location = require_location_in_company(location_id, g.company_id)
"""

from flask import current_app, g, has_request_context, request

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Location


def get_current_location_id() -> int | None:
    """None for company-level users without a home location."""
    return getattr(g, 'location_id', None)


def get_request_location_id() -> int | None:
    """
    Location context of the current request.

    An X-Location-Id header or locationId query argument overrides the
    session's location. Services validate it against the company.
    """
    raw = request.headers.get("X-Location-Id") or request.args.get("locationId")
    if raw is None or str(raw).strip() == "":
        return get_current_location_id()
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(
            "locationId must be an integer",
            [{"field": "locationId", "message": "must be an integer"}],
        )


def require_location_in_company(location_id: int, company_id: int) -> Location:
    """
    Validate that a location belongs to the company.

    Raises NotFoundError when the location is missing or belongs to another
    company; the message never reveals which.
    """
    location = db.session.query(Location).filter_by(id=location_id).first()

    if not location:
        _log_cross_tenant_attempt(f"Location {location_id} not found", company_id=company_id)
        raise NotFoundError("Location not found")

    if location.company_id != company_id:
        _log_cross_tenant_attempt(
            f"Location {location_id} belongs to company {location.company_id}, not {company_id}",
            company_id=company_id,
        )
        raise NotFoundError("Location not found")

    return location


def require_customer_in_company(customer_id: int, company_id: int) -> Customer:
    customer = db.session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.company_id == company_id,
        Customer.deleted_at.is_(None),
    ).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _log_cross_tenant_attempt(reason: str, company_id: int | None = None) -> None:
    user = getattr(g, 'current_user', None)
    current_app.logger.warning(
        "Cross-tenant access denied: user=%s company=%s path=%s reason=%s",
        user.id if user is not None else None,
        company_id,
        request.path if has_request_context() else None,
        reason,
    )
