from __future__ import annotations

from typing import Any

from flask import Blueprint, request

from .errors import ValidationError
from .logging_setup import recent_logs

bp = Blueprint("health_api", __name__)


@bp.get("/healthz")
def healthz() -> tuple[dict[str, Any], int]:
    # Minimal health endpoint for container orchestrators
    return {"status": "ok"}, 200


@bp.get("/api/support/logs")
def support_logs() -> tuple[dict[str, Any], int]:
    try:
        limit = int(request.args.get("limit", "100"))
    except ValueError:
        raise ValidationError([{"field": "limit", "msg": "must_be_int"}], detail="limit must be an integer") from None
    return {"logs": recent_logs(min(max(limit, 0), 500))}, 200
