# backend/backoffice/routes/system.py
"""
System health endpoint.

Unauthenticated; used by load balancers and the deployment smoke test.
"""

import time
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from backoffice.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """Round-trip a trivial query; returns status and latency."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "database": "connected", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "database": "disconnected",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    result = check_database_health()
    result["timestamp"] = to_utc_z(utcnow())
    status = 200 if result["status"] == "healthy" else 503
    return jsonify(result), status
