"""
Configuration loader for the PillMate device core.
Loads and validates settings from settings.yaml.
"""

import os
import yaml
from typing import TypedDict, Optional, Any, Literal
from pathlib import Path

SlotInitMode = Literal["reset", "preserve"]


class DeviceConfig(TypedDict, total=False):
    slot_count: int
    default_max_capacity: int
    default_low_threshold: int
    model: str
    motor_step_degrees: int


class PairingConfig(TypedDict, total=False):
    slot_init_mode: SlotInitMode
    derived_write_attempts: int
    derived_write_base_delay_sec: float


class DispenseConfig(TypedDict, total=False):
    reject_while_pending: bool


class NotificationsConfig(TypedDict, total=False):
    dispatch_cooldown_sec: float
    schedule_debounce_sec: float
    reminder_title: str
    alert_title_single: str
    alert_title_multiple: str


class SafetyConfig(TypedDict, total=False):
    auth_wait_sec: float
    model: str
    temperature: float
    suggestion_limit: int
    chat_max_tokens: int
    chat_temperature: float


class RemindersConfig(TypedDict, total=False):
    timezone: str
    schedule: str


class AppConfig(TypedDict, total=False):
    device: DeviceConfig
    pairing: PairingConfig
    dispense: DispenseConfig
    notifications: NotificationsConfig
    safety: SafetyConfig
    reminders: RemindersConfig


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _validate_config(config: dict) -> None:
    """
    Validate configuration values.

    Raises:
        ConfigValidationError: If validation fails
    """

    # Validate device config
    device = config.get("device", {})
    if "slot_count" in device:
        slot_count = device["slot_count"]
        if not isinstance(slot_count, int) or slot_count <= 0:
            raise ConfigValidationError("device.slot_count must be a positive integer")

    if "default_max_capacity" in device:
        capacity = device["default_max_capacity"]
        if not isinstance(capacity, int) or capacity <= 0:
            raise ConfigValidationError("device.default_max_capacity must be a positive integer")

    if "default_low_threshold" in device:
        threshold = device["default_low_threshold"]
        if not isinstance(threshold, int) or threshold < 0:
            raise ConfigValidationError("device.default_low_threshold must be int >= 0")

    if "model" in device:
        if not isinstance(device["model"], str) or not device["model"].strip():
            raise ConfigValidationError("device.model must be a non-empty string")

    if "motor_step_degrees" in device:
        if not isinstance(device["motor_step_degrees"], int):
            raise ConfigValidationError("device.motor_step_degrees must be an integer")

    # Validate pairing config
    pairing = config.get("pairing", {})
    if "slot_init_mode" in pairing:
        if pairing["slot_init_mode"] not in ("reset", "preserve"):
            raise ConfigValidationError("pairing.slot_init_mode must be 'reset' or 'preserve'")

    if "derived_write_attempts" in pairing:
        attempts = pairing["derived_write_attempts"]
        if not isinstance(attempts, int) or attempts <= 0:
            raise ConfigValidationError("pairing.derived_write_attempts must be a positive integer")

    if "derived_write_base_delay_sec" in pairing:
        delay = pairing["derived_write_base_delay_sec"]
        if not isinstance(delay, (int, float)) or delay < 0:
            raise ConfigValidationError("pairing.derived_write_base_delay_sec must be a number >= 0")

    # Validate dispense config
    dispense = config.get("dispense", {})
    if "reject_while_pending" in dispense:
        if not isinstance(dispense["reject_while_pending"], bool):
            raise ConfigValidationError("dispense.reject_while_pending must be a boolean")

    # Validate notifications
    notifications = config.get("notifications", {})
    for key in ["dispatch_cooldown_sec", "schedule_debounce_sec"]:
        if key in notifications and not _is_positive_number(notifications[key]):
            raise ConfigValidationError(f"notifications.{key} must be a positive number")

    for key in ["reminder_title", "alert_title_single", "alert_title_multiple"]:
        if key in notifications:
            value = notifications[key]
            if not isinstance(value, str) or not value.strip():
                raise ConfigValidationError(f"notifications.{key} must be a non-empty string")

    # Validate safety config
    safety = config.get("safety", {})
    if "auth_wait_sec" in safety and not _is_positive_number(safety["auth_wait_sec"]):
        raise ConfigValidationError("safety.auth_wait_sec must be a positive number")

    if "model" in safety:
        if not isinstance(safety["model"], str) or not safety["model"].strip():
            raise ConfigValidationError("safety.model must be a non-empty string")

    if "temperature" in safety:
        temp = safety["temperature"]
        if not isinstance(temp, (int, float)) or temp < 0.0 or temp > 1.0:
            raise ConfigValidationError("safety.temperature must be between 0.0 and 1.0")

    if "suggestion_limit" in safety:
        limit = safety["suggestion_limit"]
        if not isinstance(limit, int) or limit <= 0:
            raise ConfigValidationError("safety.suggestion_limit must be a positive integer")

    # Validate reminders config
    reminders = config.get("reminders", {})
    if "timezone" in reminders:
        if not isinstance(reminders["timezone"], str) or not reminders["timezone"].strip():
            raise ConfigValidationError("reminders.timezone must be a non-empty string")


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from settings.yaml.

    Args:
        config_path: Optional path to a settings file. Defaults to the
            PILLMATE_SETTINGS environment variable, then the bundled file.

    Returns:
        AppConfig: Validated configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
        FileNotFoundError: If settings file is not found
    """
    if config_path is None:
        config_path = os.getenv("PILLMATE_SETTINGS") or str(Path(__file__).parent / "settings.yaml")

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ConfigValidationError("settings file must contain a mapping at the top level")

    _validate_config(config)
    return config  # type: ignore[return-value]


def get_config_value(key_path: str, default: Any = None, config: Optional[AppConfig] = None) -> Any:
    """
    Get a configuration value using dot notation.

    Args:
        key_path: Dot-separated path (e.g., "pairing.slot_init_mode")
        default: Value returned when the path is missing
        config: Optional pre-loaded configuration

    Returns:
        The configured value or the default
    """
    if config is None:
        config = load_app_config()

    value: Any = config
    for key in key_path.split("."):
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]

    return value
