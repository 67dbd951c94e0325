# backend/retail_assist/routes/system.py
"""
System health endpoint.

Unauthenticated so load balancers and uptime checks can reach it.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a trivial round trip.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "connected", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "disconnected",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: {"status": "OK", ...} when the database answers
    - 503: {"status": "ERROR", ...} otherwise
    """
    database = check_database_health()
    ok = database["status"] == "connected"

    response = {
        "status": "OK" if ok else "ERROR",
        "timestamp": to_utc_z(utcnow()),
        "database": database,
    }
    return response, 200 if ok else 503
