"""
Configuration for the greenhouse control backend
================================================
Runtime settings for the command dispatcher, the IoT gateway client, the
admission gate and the device status monitor, plus the timing defaults of
the operator-side control client.
Setups the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


def _env_list(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or list(default)


_DEFAULT_SECRET_KEY = "GreenhouseDevSecretKey"


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("GREENHOUSE_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("GREENHOUSE_SECRET_KEY", _DEFAULT_SECRET_KEY))
    database_path: str = field(
        default_factory=lambda: os.getenv("GREENHOUSE_DATABASE_PATH", "database/greenhouse.db")
    )
    socketio_cors_origins: str = field(default_factory=lambda: os.getenv("GREENHOUSE_SOCKETIO_CORS", "*"))
    # Engine.IO transports, e.g. "polling,websocket"
    socketio_transports: list[str] = field(
        default_factory=lambda: _env_list("GREENHOUSE_SOCKETIO_TRANSPORTS", ["polling"])
    )
    compress_min_size: int = field(default_factory=lambda: _env_int("GREENHOUSE_COMPRESS_MIN_SIZE", 256))

    DEBUG: bool = field(default_factory=lambda: _env_bool("GREENHOUSE_DEBUG", False))
    audit_log_path: str = field(default_factory=lambda: os.getenv("GREENHOUSE_AUDIT_LOG_PATH", "logs/audit.log"))
    log_level: str = field(default_factory=lambda: os.getenv("GREENHOUSE_LOG_LEVEL", "INFO"))

    # IoT gateway (ThingsBoard)
    gateway_request_timeout_s: float = field(
        default_factory=lambda: _env_float("GREENHOUSE_GATEWAY_REQUEST_TIMEOUT_S", 30.0)
    )
    gateway_token_lifetime_s: int = field(
        default_factory=lambda: _env_int("GREENHOUSE_GATEWAY_TOKEN_LIFETIME_S", 9000)
    )
    gateway_token_refresh_buffer_s: int = field(
        default_factory=lambda: _env_int("GREENHOUSE_GATEWAY_TOKEN_REFRESH_BUFFER_S", 60)
    )

    # Online-admission gate
    online_cache_ttl_s: float = field(default_factory=lambda: _env_float("GREENHOUSE_ONLINE_CACHE_TTL_S", 5.0))
    offline_threshold_s: int = field(default_factory=lambda: _env_int("GREENHOUSE_OFFLINE_THRESHOLD_S", 180))
    telemetry_fresh_s: int = field(default_factory=lambda: _env_int("GREENHOUSE_TELEMETRY_FRESH_S", 120))

    # Device status monitor
    device_monitor_enabled: bool = field(
        default_factory=lambda: _env_bool("GREENHOUSE_DEVICE_MONITOR_ENABLED", True)
    )
    device_monitor_interval_s: int = field(
        default_factory=lambda: _env_int("GREENHOUSE_DEVICE_MONITOR_INTERVAL_S", 30)
    )

    eventbus_queue_size: int = field(default_factory=lambda: _env_int("GREENHOUSE_EVENTBUS_QUEUE_SIZE", 1024))
    eventbus_worker_count: int = field(default_factory=lambda: _env_int("GREENHOUSE_EVENTBUS_WORKER_COUNT", 2))

    # Operator-side control client timings (seconds)
    client_send_phase_s: float = field(default_factory=lambda: _env_float("GREENHOUSE_CLIENT_SEND_PHASE_S", 0.45))
    client_relay_ttl_s: float = field(default_factory=lambda: _env_float("GREENHOUSE_CLIENT_RELAY_TTL_S", 6.0))
    client_motor_ttl_s: float = field(default_factory=lambda: _env_float("GREENHOUSE_CLIENT_MOTOR_TTL_S", 12.0))
    client_poll_interval_s: float = field(
        default_factory=lambda: _env_float("GREENHOUSE_CLIENT_POLL_INTERVAL_S", 5.0)
    )
    client_relay_refetch_delay_s: float = field(
        default_factory=lambda: _env_float("GREENHOUSE_CLIENT_RELAY_REFETCH_DELAY_S", 1.2)
    )
    client_motor_refetch_delay_s: float = field(
        default_factory=lambda: _env_float("GREENHOUSE_CLIENT_MOTOR_REFETCH_DELAY_S", 0.9)
    )

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        # SECURITY: Fail fast if using default secret key in production
        if self.environment == "production" and self.secret_key == _DEFAULT_SECRET_KEY:
            raise RuntimeError(
                "SECURITY ERROR: Cannot use default secret key in production!\n"
                "Set GREENHOUSE_SECRET_KEY environment variable to a secure random value."
            )
        if self.gateway_token_refresh_buffer_s >= self.gateway_token_lifetime_s:
            raise ValueError("Gateway token refresh buffer must be shorter than the token lifetime.")

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DATABASE_PATH": self.database_path,
            "SOCKETIO_CORS_ALLOWED_ORIGINS": self.socketio_cors_origins,
            "AUDIT_LOG_PATH": self.audit_log_path,
            "DEBUG": self.DEBUG,
        }


def setup_logging(debug: bool = False, level: str = "INFO") -> None:
    """Setup logging configuration. *debug* wins over *level*."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)

    # Keep existing handlers but avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "greenhouse_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "greenhouse_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "greenhouse_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file:
        os.makedirs("logs", exist_ok=True)
        file_handler = RotatingFileHandler(
            "logs/greenhouse.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "greenhouse_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"greenhouse_console", "greenhouse_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("GREENHOUSE_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    # Socket.IO polling is chatty
    if _env_bool("GREENHOUSE_SILENCE_SOCKETIO", True):
        logging.getLogger("socketio").setLevel(logging.WARNING)
        logging.getLogger("engineio").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
