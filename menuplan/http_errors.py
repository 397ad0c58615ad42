"""RFC7807 problem+json responses for the menu planner API.

Every error body carries ``type``, ``title``, ``status``, ``detail`` and
``instance`` (the request path), plus the request id when one is bound.
"""
from __future__ import annotations

import uuid

from flask import g, has_request_context, jsonify, request
from werkzeug.wrappers.response import Response

PROBLEM_BASE = "https://menuplan.local/errors/"

# slug -> (status, title)
PROBLEMS: dict[str, tuple[int, str]] = {
    "bad_request": (400, "Bad Request"),
    "not_found": (404, "Not Found"),
    "conflict": (409, "Conflict"),
    "duplicate_range": (409, "Combined Menu Exists"),
    "validation_error": (422, "Unprocessable Entity"),
    "internal_error": (500, "Internal Server Error"),
    "persistence_failure": (503, "Storage Unavailable"),
}


def problem(slug: str, detail: str | None = None, **extra: object) -> Response:
    status, title = PROBLEMS[slug]
    payload: dict[str, object] = {
        "type": PROBLEM_BASE + slug,
        "title": title,
        "status": status,
        "detail": detail or slug,
    }
    if has_request_context():
        payload["instance"] = request.path
    rid = getattr(g, "request_id", None) if has_request_context() else None
    if rid:
        payload["request_id"] = rid
    payload.update((k, v) for k, v in extra.items() if v is not None)
    resp = jsonify(payload)
    resp.status_code = status
    resp.mimetype = "application/problem+json"
    if rid:
        resp.headers.setdefault("X-Request-Id", rid)
    return resp


def bad_request(detail: str | None = None, **extra: object) -> Response:
    return problem("bad_request", detail, **extra)


def not_found(detail: str | None = None, **extra: object) -> Response:
    return problem("not_found", detail, **extra)


def conflict(detail: str | None = None, **extra: object) -> Response:
    return problem("conflict", detail, **extra)


def duplicate_range(detail: str | None = None, existing_id: str | None = None, **extra: object) -> Response:
    """409 for a date range that already has a saved combined menu; clients offer to open ``existing_id``."""
    return problem("duplicate_range", detail, existing_id=existing_id, **extra)


def unprocessable_entity(errors: object, detail: str | None = None, **extra: object) -> Response:
    return problem("validation_error", detail, errors=errors, **extra)


def service_unavailable(detail: str | None = None, **extra: object) -> Response:
    return problem("persistence_failure", detail, **extra)


def internal_server_error(detail: str | None = None, incident_id: str | None = None, **extra: object) -> Response:
    return problem("internal_error", detail, incident_id=incident_id or str(uuid.uuid4()), **extra)


__all__ = [
    "PROBLEMS",
    "problem",
    "bad_request",
    "not_found",
    "conflict",
    "duplicate_range",
    "unprocessable_entity",
    "service_unavailable",
    "internal_server_error",
]
