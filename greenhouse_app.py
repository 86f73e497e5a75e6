"""WSGI entry point for the greenhouse control backend.

Reads host/port/debug from the environment and serves the Flask app through
Socket.IO so notification and device-status broadcasts work.
"""
from __future__ import annotations

import logging
import os

from app import create_app, socketio


def _env_flag_true(name: str) -> bool:
    v = os.getenv(name)
    return bool(v and v.lower() in ("1", "true", "yes", "on"))


def main() -> int:
    app = create_app(bootstrap_runtime=True)

    host = os.getenv("GREENHOUSE_HOST", "0.0.0.0")
    port = int(os.getenv("GREENHOUSE_PORT", "8000"))
    debug = _env_flag_true("GREENHOUSE_DEBUG")

    logging.info("Starting server on %s:%s", host, port)
    logging.info("SocketIO async_mode: %s", socketio.async_mode)

    try:
        socketio.run(
            app,
            host=host,
            port=port,
            debug=debug,
            use_reloader=False,
            allow_unsafe_werkzeug=True,
        )
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except Exception as exc:  # pragma: no cover - top-level runtime errors
        logging.exception("ERROR: Failed to start server: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
