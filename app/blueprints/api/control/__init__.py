"""
Greenhouse Control API Blueprint
================================

Endpoints:
- POST /api/v1/control/rpc - Dispatch one actuator command
- GET /api/v1/control/device-status - Online/offline state of a greenhouse controller
- GET /api/v1/control/attributes - Current device attributes (ground truth)
- POST /api/v1/control/test-connection - Verify a project's platform credentials (admin)
- GET /api/v1/control/history - Paginated control history
- GET /api/v1/control/history/stats - Aggregated control history
- GET /api/v1/control/history/recent/<greenhouse_id> - Latest actions for one greenhouse
"""

from flask import Blueprint

control_api = Blueprint("control_api", __name__)

# Import route modules to register their handlers on the blueprint
from app.blueprints.api.control import history, rpc  # noqa: E402,F401

__all__ = ["control_api"]
