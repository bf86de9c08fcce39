from __future__ import annotations

import atexit
import contextlib
import logging
import signal
import threading
from typing import TYPE_CHECKING, Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from gardooner.blueprints.api.chat import chat_api
from gardooner.blueprints.api.tasks import tasks_api
from gardooner.config import load_config, setup_logging

if TYPE_CHECKING:
    from gardooner.services.container import ServiceContainer


def create_app(
    config_overrides: dict[str, Any] | None = None,
    *,
    container: "ServiceContainer | None" = None,
    bootstrap_runtime: bool = False,
) -> Flask:
    """
    Build the Flask application.

    ``container`` lets callers (tests, the scheduler CLI) supply a prebuilt
    ServiceContainer; ``bootstrap_runtime`` starts the daily analysis thread
    and installs signal handlers for a long-running server.
    """
    config = container.config if container is not None else load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key if hasattr(config, key) else key.lower(), value)

    setup_logging(debug=config.DEBUG, log_dir=config.log_dir)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.config["SESSION_COOKIE_HTTPONLY"] = True
    flask_app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    flask_app.config["SESSION_COOKIE_SECURE"] = config.environment == "production"
    # Chat messages may carry a base64 photo
    flask_app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024

    if container is None:
        from gardooner.services.container import ServiceContainer

        container = ServiceContainer.build(config, start_scheduler=bootstrap_runtime)
    flask_app.config["CONTAINER"] = container
    container.database.init_app(flask_app)

    if bootstrap_runtime:
        _install_shutdown_handlers(container)

    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        if not request.path.startswith("/api/"):
            raise exc
        from gardooner.domain.exceptions import GardoonerError
        from gardooner.utils.http import error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)
        if isinstance(exc, GardoonerError):
            status = exc.http_status
            if status >= 500:
                return safe_error(exc, status, context=type(exc).__name__)
            return error_response(str(exc) or "Request failed", status)
        return safe_error(exc, 500, context="unhandled")

    flask_app.register_blueprint(chat_api, url_prefix="/api/chat")
    flask_app.register_blueprint(tasks_api, url_prefix="/api/tasks")

    for bp_name in flask_app.blueprints:
        logging.info("Registered blueprint: %s", bp_name)

    return flask_app


def _install_shutdown_handlers(container: "ServiceContainer") -> None:
    shutdown_lock = threading.Lock()
    shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal shutdown_done
        with shutdown_lock:
            if shutdown_done:
                return
            shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        container.shutdown()

    def _signal_handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logging.info("Received %s, shutting down", sig_name)
        _graceful_shutdown(sig_name)
        raise SystemExit(0)

    atexit.register(_graceful_shutdown, "atexit")
    # signal.signal only works from the main thread
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(OSError, ValueError):
            signal.signal(sig, _signal_handler)
