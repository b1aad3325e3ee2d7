"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — service status with store statistics
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check: the request store answers and reports its counts."""
    checks = {}
    overall = True

    service = current_app.extensions.get("robbing")
    if service is None:
        checks["store"] = {"status": "error", "detail": "robbing service not initialised"}
        overall = False
    else:
        t0 = time.perf_counter()
        counts = service.get_status_counts()
        store_ms = (time.perf_counter() - t0) * 1000
        checks["store"] = {
            "status": "ok",
            "latency_ms": round(store_ms, 1),
            "requests": sum(counts.values()),
        }

    checks["app"] = {
        "name": "Component Robbing Tracker",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
