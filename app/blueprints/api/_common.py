"""
Blueprint Common Utilities
==========================

Shared helper functions for the API blueprints.

Usage:
    from app.blueprints.api._common import get_container, get_json, query_keys
"""
from __future__ import annotations

import logging
from typing import Any

from flask import current_app, request

from app.domain.exceptions import ValidationError

logger = logging.getLogger("api._common")


def get_container():
    """Get the service container from Flask app config."""
    return current_app.config["CONTAINER"]


def get_json() -> dict[str, Any]:
    """Parse the request body; a missing or non-object body is a 400."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def require_args(*names: str) -> tuple[str, ...]:
    """Return the named query-string arguments, raising when any is missing."""
    values = tuple((request.args.get(name) or "").strip() for name in names)
    missing = [name for name, value in zip(names, values) if not value]
    if missing:
        raise ValidationError(f"Missing query parameter(s): {', '.join(missing)}")
    return values


def query_keys(raw: str | None) -> list[str]:
    """Split a comma-separated ``keys`` argument, dropping blanks."""
    if not raw:
        return []
    return [key.strip() for key in raw.split(",") if key.strip()]
