# Overview: Flask API routes for invoices, line items and payments; parses input and returns JSON responses.

"""Invoice API routes with permission enforcement"""

from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission, service_errors
from ..errors import NotFoundError, ValidationError
from ..responses import success
from ..services import invoice_item_service, invoice_service, payment_service
from ..services.payment_service import ProcessorResult
from ..services.tenant_service import get_request_location_id
from ..validation import CARD_PAYMENT_POLICY, CASH_PAYMENT_POLICY, REFUND_POLICY, validate_payload


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", [{"field": name, "message": "must be an integer"}])


def _invoice_with_items(invoice) -> dict:
    return invoice.to_dict(items=invoice_service.get_invoice_items(invoice.id))


# =============================================================================
# INVOICES
# =============================================================================

@invoices_bp.get("")
@require_auth
@require_permission("VIEW_INVOICES")
@service_errors("list invoices")
def list_invoices_route():
    """
    List invoices, newest first. Optional filters: customerId, status.

    Requires: VIEW_INVOICES permission
    """
    invoices = invoice_service.list_invoices(
        g.company_id,
        customer_id=_int_arg("customerId"),
        status=request.args.get("status") or None,
    )
    return success([invoice.to_dict() for invoice in invoices])


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_permission("VIEW_INVOICES")
@service_errors("get invoice")
def get_invoice_route(invoice_id: int):
    invoice = invoice_service.require_invoice(invoice_id, g.company_id)
    return success(_invoice_with_items(invoice))


@invoices_bp.post("")
@require_auth
@require_permission("MANAGE_INVOICES")
@service_errors("create invoice")
def create_invoice_route():
    """
    Create a draft invoice.

    Requires: MANAGE_INVOICES permission
    Available to: admin, manager, frontdesk
    """
    invoice = invoice_service.create_invoice(
        g.company_id,
        request.get_json(silent=True),
        user_id=g.current_user.id,
        location_id=get_request_location_id(),
    )
    return success(_invoice_with_items(invoice), 201)


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_permission("MANAGE_INVOICES")
@service_errors("update invoice")
def update_invoice_route(invoice_id: int):
    invoice = invoice_service.update_invoice(invoice_id, g.company_id, request.get_json(silent=True))
    return success(_invoice_with_items(invoice))


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
@require_permission("MANAGE_INVOICES")
@service_errors("delete invoice")
def delete_invoice_route(invoice_id: int):
    if not invoice_service.delete_invoice(invoice_id, g.company_id):
        raise NotFoundError("Invoice not found")
    return success({"id": invoice_id, "deleted": True})


# =============================================================================
# LINE ITEMS
# =============================================================================

@invoices_bp.get("/<int:invoice_id>/items")
@require_auth
@require_permission("VIEW_INVOICES")
@service_errors("list invoice items")
def list_items_route(invoice_id: int):
    items = invoice_item_service.list_items(invoice_id, g.company_id)
    return success([item.to_dict() for item in items])


@invoices_bp.post("/<int:invoice_id>/items")
@require_auth
@require_permission("MANAGE_INVOICES")
@service_errors("add invoice item")
def add_item_route(invoice_id: int):
    item = invoice_item_service.add_item(invoice_id, g.company_id, request.get_json(silent=True))
    return success(item.to_dict(), 201)


@invoices_bp.put("/<int:invoice_id>/items/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVOICES")
@service_errors("update invoice item")
def update_item_route(invoice_id: int, item_id: int):
    item = invoice_item_service.update_item(invoice_id, item_id, g.company_id, request.get_json(silent=True))
    if item is None:
        raise NotFoundError("Invoice item not found")
    return success(item.to_dict())


@invoices_bp.delete("/<int:invoice_id>/items/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVOICES")
@service_errors("remove invoice item")
def remove_item_route(invoice_id: int, item_id: int):
    if not invoice_item_service.remove_item(invoice_id, item_id, g.company_id):
        raise NotFoundError("Invoice item not found")
    return success({"id": item_id, "deleted": True})


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.post("/<int:invoice_id>/paid")
@require_auth
@require_permission("TAKE_PAYMENT")
@service_errors("mark invoice as paid")
def mark_paid_route(invoice_id: int):
    """
    Manual settlement (check, bank transfer, retroactive entry).

    Requires: TAKE_PAYMENT permission
    """
    invoice = payment_service.mark_invoice_as_paid(invoice_id, g.company_id, request.get_json(silent=True))
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return success(invoice.to_dict())


@invoices_bp.post("/<int:invoice_id>/payments/cash")
@require_auth
@require_permission("TAKE_PAYMENT")
@service_errors("capture cash payment")
def capture_cash_route(invoice_id: int):
    """
    Cash payment for the full total into the open drawer session.

    Body: {"amount": 97.65, "sessionId"?: 3, "locationId"?: 1}
    """
    fields = validate_payload(payload=request.get_json(silent=True), policy=CASH_PAYMENT_POLICY, partial=False)
    location_id = fields["location_id"] if "location_id" in fields else get_request_location_id()

    invoice = payment_service.capture_cash(
        invoice_id,
        g.company_id,
        fields["amount_cents"],
        user_id=g.current_user.id,
        session_id=fields.get("session_id"),
        location_id=location_id,
    )
    return success(invoice.to_dict())


@invoices_bp.post("/<int:invoice_id>/payments/card")
@require_auth
@require_permission("TAKE_PAYMENT")
@service_errors("capture card payment")
def capture_card_route(invoice_id: int):
    """Body: {"reference": "ch_123", "amount": 97.65, "succeeded": true}"""
    fields = validate_payload(payload=request.get_json(silent=True), policy=CARD_PAYMENT_POLICY, partial=False)
    result = ProcessorResult(
        reference=fields["reference"],
        amount_cents=fields["amount_cents"],
        succeeded=fields["succeeded"],
    )
    invoice = payment_service.capture_card(invoice_id, g.company_id, result)
    return success(invoice.to_dict())


@invoices_bp.post("/<int:invoice_id>/refund")
@require_auth
@require_permission("REFUND_PAYMENT")
@service_errors("refund invoice")
def refund_route(invoice_id: int):
    """
    Refund a paid invoice. Cash refunds come out of the open drawer session.

    Requires: REFUND_PAYMENT permission
    Available to: admin, manager
    """
    fields = validate_payload(payload=request.get_json(silent=True), policy=REFUND_POLICY, partial=False)
    location_id = fields["location_id"] if "location_id" in fields else get_request_location_id()

    invoice = payment_service.refund_invoice(
        invoice_id,
        g.company_id,
        fields["amount_cents"],
        fields["method"],
        reason=fields.get("reason"),
        user_id=g.current_user.id,
        session_id=fields.get("session_id"),
        location_id=location_id,
    )
    return success(invoice.to_dict())
