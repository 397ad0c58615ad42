"""Domain error system + RFC7807 handler registration.

Boundary workflows (load, save, duplicate check) raise ``DomainError``
subclasses; detection code returns empty results instead of raising.
"""
from __future__ import annotations

import logging
import traceback
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from flask import request
from werkzeug.wrappers.response import Response

from .http_errors import (
    bad_request,
    conflict,
    duplicate_range,
    internal_server_error,
    not_found,
    service_unavailable,
    unprocessable_entity,
)

if TYPE_CHECKING:  # pragma: no cover
    from .grid.models import CellCoordinate

logger = logging.getLogger(__name__)


class DomainError(Exception):
    def __init__(self, status: int, code: str, detail: str | None = None, **extra: Any):
        self.status = status
        self.code = code
        self.detail = detail or code
        self.extra = extra
        super().__init__(self.detail)

class ValidationError(DomainError):
    def __init__(self, errors: Any, detail: str = "validation_error", **extra: Any):
        super().__init__(422, "validation_error", detail, errors=errors, **extra)
        self.errors = errors

class DuplicateRangeError(DomainError):
    def __init__(self, existing_id: str, start_date: str | None = None, end_date: str | None = None):
        super().__init__(
            409,
            "duplicate_range",
            "a combined menu already exists for this date range",
            existing_id=existing_id,
            start_date=start_date,
            end_date=end_date,
        )
        self.existing_id = existing_id

class PersistenceFailure(DomainError):
    def __init__(self, operation: str, detail: str | None = None):
        super().__init__(503, "persistence_failure", detail or f"storage failure during {operation}", operation=operation)
        self.operation = operation

class SessionNotFound(DomainError):
    def __init__(self, session_id: str):
        super().__init__(404, "session_not_found", "editing session not found", session_id=session_id)
        self.session_id = session_id


@dataclass(frozen=True)
class StaleReferenceWarning:
    """A loaded repetition log entry whose item left its attempted cell. Never raised."""

    entry_id: str
    item_id: str
    coordinate: CellCoordinate

    def to_dict(self) -> dict[str, Any]:
        return {"entryId": self.entry_id, "itemId": self.item_id, **self.coordinate.to_dict()}


_STATUS_HELPERS: dict[int, Callable[..., Response]] = {
    400: bad_request,
    404: not_found,
    409: conflict,
    503: service_unavailable,
}

def register_error_handlers(app: Any) -> None:  # pragma: no cover - integration path
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(DomainError)
    def _h_domain(err: DomainError) -> Response:
        if err.status == 422:
            extra = {k: v for k, v in err.extra.items() if k != "errors"}
            return unprocessable_entity(err.extra.get("errors") or getattr(err, "errors", []), detail=err.detail, **extra)
        if isinstance(err, DuplicateRangeError):
            return duplicate_range(detail=err.detail, **err.extra)
        helper = _STATUS_HELPERS.get(err.status)
        if helper:
            if err.status >= 500:
                logger.warning("Domain failure code=%s detail=%s path=%s", err.code, err.detail, request.path)
            return helper(detail=err.detail, code=err.code, **err.extra)
        return bad_request(detail=err.detail, code=err.code, **err.extra)

    @app.errorhandler(HTTPException)
    def _h_http(ex: HTTPException) -> Response:
        status = ex.code or 500
        helper = _STATUS_HELPERS.get(status)
        if helper:
            return helper(detail=ex.description)
        if status >= 500:
            return internal_server_error()
        return bad_request(detail=str(ex.description))

    @app.errorhandler(Exception)
    def _h_exception(ex: Exception) -> Response:
        incident_id = str(uuid.uuid4())
        app.logger.error("Unhandled exception incident_id=%s path=%s\n%s", incident_id, request.path, traceback.format_exc())
        return internal_server_error(incident_id=incident_id)

__all__ = [
    "DomainError","ValidationError","DuplicateRangeError","PersistenceFailure","SessionNotFound","StaleReferenceWarning","register_error_handlers"
]
