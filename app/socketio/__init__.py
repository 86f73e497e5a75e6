"""
Socket.IO Event Handlers
========================

Namespaces:
- /notifications - control-action and device-status notifications
- /devices - raw device online/offline transitions

Usage:
    Import this module after socketio.init_app() to register all handlers.

    from app.socketio import register_handlers
    register_handlers()
"""

import logging

logger = logging.getLogger(__name__)


def register_handlers():
    """
    Register all Socket.IO event handlers.

    This function must be called AFTER socketio.init_app().
    """
    # Import handlers to trigger @socketio.on() decorator registration
    from . import project_handlers  # noqa: F401

    logger.info("Socket.IO handlers registered (notifications, devices)")
