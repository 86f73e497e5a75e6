"""Clients for the third-party IoT platform."""

from app.services.gateway.thingsboard_client import DeviceRef, ProjectRef, ThingsBoardClient

__all__ = ["DeviceRef", "ProjectRef", "ThingsBoardClient"]
