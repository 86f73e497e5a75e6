from __future__ import annotations

import atexit
import contextlib
import logging
import signal
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.control import control_api
from app.config import load_config, setup_logging
from app.extensions import init_extensions, socketio

__all__ = ["create_app", "socketio"]

# Command bodies are tiny; anything bigger is a mistake or an attack
MAX_CONTENT_LENGTH = 1 * 1024 * 1024


def create_app(config_overrides: dict[str, Any] | None = None, *, bootstrap_runtime: bool = False) -> Flask:
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key if hasattr(config, key) else key.lower(), value)

    setup_logging(debug=config.DEBUG, level=config.log_level)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.config["SESSION_COOKIE_HTTPONLY"] = True
    flask_app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    flask_app.config["SESSION_COOKIE_SECURE"] = config.environment == "production"
    flask_app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH

    # Initialize Socket.IO BEFORE building ServiceContainer (EmitterService needs it)
    init_extensions(flask_app, config)

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config, socketio=socketio, start_monitor=bootstrap_runtime)
    flask_app.config["CONTAINER"] = container

    if bootstrap_runtime:
        _install_shutdown_hooks(container)

    from app.socketio import register_handlers

    register_handlers()

    # Global JSON error handler for /api/ routes; domain exceptions carry
    # their own ``http_status``.
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        if not request.path.startswith("/api/"):
            raise exc
        from app.domain.exceptions import GreenhouseError
        from app.utils.http import domain_error_response, error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, GreenhouseError):
            return domain_error_response(exc)

        return safe_error(exc, 500, context="unhandled")

    @flask_app.errorhandler(413)
    def _handle_too_large(_exc):
        from app.utils.http import error_response

        return error_response("Request payload too large", 413)

    V1 = "/api/v1"
    flask_app.register_blueprint(control_api, url_prefix=f"{V1}/control")

    logging.info("Greenhouse control API ready (environment=%s)", config.environment)
    return flask_app


def _install_shutdown_hooks(container) -> None:
    """Stop background threads once, on SIGINT/SIGTERM or interpreter exit."""
    shutdown_lock = threading.Lock()
    shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal shutdown_done
        with shutdown_lock:
            if shutdown_done:
                return
            shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    def _signal_handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logging.info("Received %s, shutting down", sig_name)
        _graceful_shutdown(sig_name)
        raise SystemExit(0)

    atexit.register(_graceful_shutdown, "atexit")
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(OSError, ValueError):
            signal.signal(sig, _signal_handler)
