# Overview: Flask API routes for cash drawer sessions; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..decorators import require_auth, require_permission, service_errors
from ..errors import NotFoundError, ValidationError
from ..responses import success
from ..services import cash_drawer_service
from ..services.tenant_service import get_request_location_id
from ..time_utils import parse_range_bound


cash_drawer_bp = Blueprint("cash_drawer", __name__, url_prefix="/api/cash-drawer")


def _query_int(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", [{"field": name, "message": "must be an integer"}])


def _query_datetime(name: str, *, end: bool = False):
    raw = request.args.get(name)
    try:
        return parse_range_bound(raw, end=end)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date", [{"field": name, "message": "must be an ISO-8601 date"}])


@cash_drawer_bp.post("/open")
@require_auth
@require_permission("MANAGE_CASH_DRAWER")
@service_errors("open cash drawer")
def open_drawer_route():
    """
    Open a drawer session for the caller's location (or body locationId).

    Body: {"openingAmount": 100.00, "locationId"?: 1, "notes"?: "..."}
    Requires: MANAGE_CASH_DRAWER permission
    """
    drawer_session = cash_drawer_service.open_drawer(
        g.company_id,
        g.current_user.id,
        request.get_json(silent=True),
        location_id=get_request_location_id(),
    )
    return success(drawer_session.to_dict(), 201)


@cash_drawer_bp.post("/<int:session_id>/close")
@require_auth
@require_permission("MANAGE_CASH_DRAWER")
@service_errors("close cash drawer")
def close_drawer_route(session_id: int):
    """
    Close a drawer session with the counted cash.

    Body: {"closingAmount": 175.00, "countedChecks"?: 0, "countedCards"?: 0, "notes"?: "..."}
    """
    drawer_session = cash_drawer_service.close_drawer(
        session_id,
        g.company_id,
        g.current_user.id,
        request.get_json(silent=True),
        location_id=get_request_location_id(),
    )
    return success(drawer_session.to_dict())


@cash_drawer_bp.get("/current")
@require_auth
@require_permission("VIEW_CASH_DRAWER")
@service_errors("get current cash drawer")
def current_drawer_route():
    """The open session for the caller's location, or null."""
    drawer_session = cash_drawer_service.get_current_session(g.company_id, get_request_location_id())
    return success(drawer_session.to_dict() if drawer_session else None)


@cash_drawer_bp.get("/history")
@require_auth
@require_permission("VIEW_CASH_DRAWER")
@service_errors("get cash drawer history")
def drawer_history_route():
    """
    Query: locationId, startDate, endDate, limit, offset.
    """
    sessions = cash_drawer_service.get_session_history(
        g.company_id,
        location_id=get_request_location_id(),
        start=_query_datetime("startDate"),
        end=_query_datetime("endDate", end=True),
        limit=_query_int("limit"),
        offset=_query_int("offset", 0),
    )
    return success([drawer_session.to_dict() for drawer_session in sessions])


@cash_drawer_bp.get("/<int:session_id>")
@require_auth
@require_permission("VIEW_CASH_DRAWER")
@service_errors("get cash drawer session")
def get_drawer_route(session_id: int):
    drawer_session = cash_drawer_service.get_session(session_id, g.company_id)
    if drawer_session is None:
        raise NotFoundError("Cash drawer session not found")
    events = cash_drawer_service.get_session_events(drawer_session.id)
    return success(drawer_session.to_dict(events=events))
