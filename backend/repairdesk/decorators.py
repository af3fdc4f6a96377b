# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import current_app, g, request

from .errors import ServiceError
from .responses import failure
from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'company_id')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets on Flask g:
    - g.current_user: the authenticated User
    - g.company_id: tenant scope for every query
    - g.location_id: the session's location (None for company-level users)
    - g.session_context: the full SessionContext

    Returns 401 for a missing, invalid, expired or revoked token, or when the
    user or company has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return failure("Authentication required", 401)

        context = session_service.validate_session(token)
        if not context:
            return failure("Invalid or expired token", 401)

        g.current_user = context.user
        g.company_id = context.company_id
        g.location_id = context.location_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a specific permission; 403 when the user's roles lack it."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return failure("Authentication required", 401)

            try:
                permission_service.require_permission(
                    user_id=g.current_user.id,
                    permission_code=permission_code,
                    resource=request.path,
                    company_id=g.company_id,
                )
            except PermissionDeniedError as e:
                return failure("Permission denied", 403, [{"field": "permission", "message": str(e)}])

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def service_errors(action: str):
    """
    Translate service exceptions into the response envelope.

    ServiceError subclasses carry their own status code and field errors.
    Anything else is logged with a traceback and reported as a 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except ServiceError as e:
                if e.status_code >= 500:
                    current_app.logger.error("Failed to %s: %s", action, e.message)
                return failure(e.message, e.status_code, e.errors)
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return failure("Internal server error", 500)

        return decorated_function
    return decorator
