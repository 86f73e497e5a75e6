"""Control catalog and command classification."""

from app.control.catalog import (
    CONTROLS,
    GLOBAL_MOTOR_AUTO_KEY,
    MODE_KEYS,
    attribute_keys,
    auto_mode_active,
    derive_ground_truth,
    get_control,
    humanize_control,
    normalize_boolean,
)
from app.control.classifier import classify_command, effective_timeout, is_one_way

__all__ = [
    "CONTROLS",
    "GLOBAL_MOTOR_AUTO_KEY",
    "MODE_KEYS",
    "attribute_keys",
    "auto_mode_active",
    "classify_command",
    "derive_ground_truth",
    "effective_timeout",
    "get_control",
    "humanize_control",
    "is_one_way",
    "normalize_boolean",
]
