# backend/repairdesk/routes/system.py
"""
System health endpoint.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..responses import failure, success
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """Round-trip a trivial query and report latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latencyMs": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }
    return {
        "status": "healthy",
        "latencyMs": round((time.time() - start_time) * 1000, 2),
    }


@system_bp.get("/health")
def health_route():
    database = check_database_health()
    body = {
        "status": database["status"],
        "checkedAt": to_utc_z(utcnow()),
        "database": database,
    }
    if database["status"] != "healthy":
        return failure("Service unhealthy", 500, [{"field": "database", "message": database["error"]}])
    return success(body)
