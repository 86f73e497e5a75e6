"""Flask Extension Instances and Initialisation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import Flask
from flask_compress import Compress
from flask_socketio import SocketIO

if TYPE_CHECKING:
    from app.config import AppConfig

logger = logging.getLogger(__name__)

compress = Compress()

# Transports and CORS are applied per app in init_extensions()
socketio = SocketIO(
    async_mode="threading",
    ping_timeout=60,
    ping_interval=25,
)


def init_extensions(app: Flask, config: AppConfig) -> None:
    """Bind response compression and Socket.IO to *app*.

    Must run before the service container is built: the notification emitter
    holds the initialised ``socketio`` server.
    """
    # History pages are the only sizeable payloads
    app.config.setdefault("COMPRESS_MIMETYPES", ["application/json"])
    app.config.setdefault("COMPRESS_MIN_SIZE", config.compress_min_size)
    compress.init_app(app)

    origins = config.socketio_cors_origins or "*"
    logging.getLogger("engineio").setLevel(logging.WARNING)
    try:
        socketio.init_app(
            app,
            cors_allowed_origins=origins,
            transports=config.socketio_transports,
            logger=logging.getLogger("socketio"),
            engineio_logger=False,
        )
    except Exception as e:
        logger.error("Failed to initialize Socket.IO: %s", e, exc_info=True)
        raise
    logger.info("Socket.IO initialized (origins=%s, transports=%s)", origins, ",".join(config.socketio_transports))
