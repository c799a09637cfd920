"""Configuration package."""

from .loader import (
    AppConfig,
    ConfigValidationError,
    load_app_config,
    get_config_value,
)
from .env_loader import (
    EnvironmentError,
    load_environment,
    get_required_env_var,
    get_optional_env_var,
)

__all__ = [
    "AppConfig",
    "ConfigValidationError",
    "load_app_config",
    "get_config_value",
    "EnvironmentError",
    "load_environment",
    "get_required_env_var",
    "get_optional_env_var",
]
