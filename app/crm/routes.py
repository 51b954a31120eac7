import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify

bp = Blueprint("routes", __name__)

_STARTED = time.monotonic()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@bp.get("/")
def index():
    return jsonify({"message": "Real-estate CRM API", "status": "running", "timestamp": _now_iso()})


@bp.get("/health")
def health():
    """Liveness with process uptime in seconds. No DB access."""
    return {"status": "healthy", "uptime": round(time.monotonic() - _STARTED, 3), "timestamp": _now_iso()}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s/DO probes. No DB access, minimal overhead.
    """
    return "ok", 200
