"""Flask application factory.

Responsibilities:
 - App factory with configuration override
 - DB engine initialization
 - Logging (package logger, request timing line, support log buffer)
 - Metrics backend selection
 - Blueprint + RFC7807 error handler registration
"""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from dotenv import load_dotenv
from flask import Flask, g, request, session
from werkzeug.wrappers.response import Response

from .combined_menu_api import bp as combined_menu_bp
from .config import Config
from .db import init_engine, remove_session
from .errors import register_error_handlers
from .health_api import bp as health_bp
from .logging_setup import configure_logging, install_support_log_handler
from .metrics import configure_metrics


def create_app(config_override: dict[str, Any] | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)

    # --- Configuration ---
    cfg = Config.from_env()
    if config_override:
        known = {k: v for k, v in config_override.items() if hasattr(cfg, k)}
        if known:
            cfg.override(known)
    app.config.update(cfg.to_flask_dict())
    if config_override:
        for k, v in config_override.items():  # also allow direct Flask config keys
            if k.isupper():
                app.config[k] = v

    # --- DB setup ---
    init_engine(cfg.database_url, force=bool(app.config.get("FORCE_DB_REINIT")))

    # --- Logging / metrics ---
    log = configure_logging(cfg.log_level)
    configure_metrics(cfg.metrics_backend)
    log.info("menuplan starting db=%s metrics=%s", cfg.database_url.split(":", 1)[0], cfg.metrics_backend)

    @app.before_request
    def _before_req() -> None:
        if app.config.get("TESTING"):
            cid = request.headers.get("X-Company-Id")
            if cid:
                session["company_id"] = cid
        g.company_id = session.get("company_id")
        g._t0 = time.perf_counter()
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())

    @app.after_request
    def _after_req(resp: Response) -> Response:
        dur_ms = int((time.perf_counter() - getattr(g, "_t0", time.perf_counter())) * 1000)
        rid = getattr(g, "request_id", str(uuid.uuid4()))
        resp.headers["X-Request-Id"] = rid
        resp.headers["X-Request-Duration-ms"] = str(dur_ms)
        if "Cache-Control" not in resp.headers:
            resp.headers["Cache-Control"] = "no-store"
        log.debug(
            "request_id=%s company_id=%s method=%s path=%s status=%s duration_ms=%s",
            rid,
            getattr(g, "company_id", None),
            request.method,
            request.path,
            resp.status_code,
            dur_ms,
        )
        return resp

    @app.teardown_appcontext
    def _teardown(exc: BaseException | None) -> None:
        remove_session()

    # --- Blueprints ---
    app.register_blueprint(health_bp)
    app.register_blueprint(combined_menu_bp)

    # --- Error handling ---
    register_error_handlers(app)
    # Install support log handler late (after logging config / blueprints)
    install_support_log_handler()
    return app


__all__ = ["create_app"]
