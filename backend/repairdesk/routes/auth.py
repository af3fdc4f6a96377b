# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Session-token authentication.

Tokens are issued by POST /login and sent as "Authorization: Bearer <token>".
Users are created by administrators through the CLI (flask users create).
"""

from flask import Blueprint, request, g

from ..decorators import bearer_token, require_auth, service_errors
from ..extensions import db
from ..models import Company
from ..responses import failure, success
from ..services import auth_service, permission_service, session_service
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
@service_errors("login user")
def login_route():
    """
    Authenticate and create a session token.

    Body: {"username": "...", "password": "...", "companyCode"?: "..."}
    username may also be the account email. companyCode scopes the lookup
    when the same username exists in several companies.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not username or not password:
        return failure("username and password required", 400, [
            {"field": name, "message": "is required"}
            for name, value in (("username", username), ("password", password)) if not value
        ])

    company_id = None
    if data.get("companyCode"):
        company = db.session.query(Company).filter_by(code=data["companyCode"]).first()
        if not company:
            return failure("Invalid credentials", 401)
        company_id = company.id

    user = auth_service.authenticate(username, password, company_id=company_id)
    if not user:
        return failure("Invalid credentials", 401)

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )

    return success({
        "token": token,
        "expiresAt": to_utc_z(session.expires_at),
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "companyId": session.company_id,
        "locationId": session.location_id,
    })


@auth_bp.post("/logout")
@service_errors("logout user")
def logout_route():
    """Revoke the bearer token."""
    token = bearer_token()
    if not token:
        return failure("Authorization header required", 401)

    if not session_service.revoke_session(token, reason="User logout"):
        return failure("Invalid or expired token", 401)

    return success({"message": "Logout successful"})


@auth_bp.get("/me")
@require_auth
@service_errors("load current user")
def me_route():
    """Current user with permissions and tenant context, for UI filtering."""
    return success({
        "user": g.current_user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(g.current_user.id)),
        "companyId": g.company_id,
        "locationId": g.location_id,
    })
