# backend/ledgerbook/routes/system.py
"""
System health endpoint.

Checks the database and reports operations that never finished, which
are documents a crashed process may have left partially applied.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Business, Document, Operation
from ..services.operation_log_service import OPERATION_IN_PROGRESS, OPERATION_FAILED
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        business_count = db.session.query(Business).count()
        document_count = db.session.query(Document).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "businesses": business_count,
                "documents": document_count,
            }
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_operation_log_health() -> dict:
    """
    Degraded when operations are left unfinished or failed part-way.
    """
    start_time = time.time()
    try:
        in_progress = db.session.query(Operation).filter_by(status=OPERATION_IN_PROGRESS).count()
        failed = db.session.query(Operation).filter_by(status=OPERATION_FAILED).count()
        elapsed_ms = (time.time() - start_time) * 1000
        result = {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "in_progress": in_progress,
                "failed": failed,
            }
        }
        if failed:
            result["status"] = "degraded"
            result["warning"] = f"{failed} operation(s) failed part-way; see /api/operations/"
        return result
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Operation log health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Operation log error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    operations_health = check_operation_log_health()

    all_checks = [database_health, operations_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "operation_log": operations_health,
        }
    }

    return response, http_status
