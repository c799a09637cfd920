"""
Environment variable loader for the PillMate device core.
"""

import os
from pathlib import Path
from typing import Dict, Optional
from dotenv import load_dotenv

from pillmate.util.logger import get_logger

logger = get_logger(__name__)


class EnvironmentError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass


def load_environment(env_file: Optional[str] = None) -> None:
    """
    Load environment variables from a .env file.

    Args:
        env_file: Optional path to .env file. Defaults to .env.local, then
            .env, in the current directory.
    """
    if env_file is not None:
        candidates = [Path(env_file)]
    else:
        candidates = [Path(".env.local"), Path(".env")]

    for env_path in candidates:
        if env_path.exists():
            load_dotenv(env_path)
            return

    # In production, environment variables are set by the runtime
    logger.debug("No .env file found, assuming environment variables are set by the system")


def get_required_env_var(name: str, description: str = "") -> str:
    """
    Get a required environment variable.

    Args:
        name: Environment variable name
        description: Optional description for error messages

    Returns:
        Environment variable value

    Raises:
        EnvironmentError: If the environment variable is not set or empty
    """
    value = os.getenv(name)
    if not value:
        desc_part = f" ({description})" if description else ""

        guidance = ""
        if "API_KEY" in name:
            guidance = "\n  Hint: Obtain your API key from the service provider and add it to your .env file"
        elif "DATABASE_URL" in name:
            guidance = "\n  Hint: Use the Realtime Database URL from the Firebase Console (https://<project>.firebaseio.com)"
        elif "CREDENTIALS" in name:
            guidance = "\n  Hint: Set this to the path of your Google service account JSON file"

        raise EnvironmentError(f"Required environment variable {name}{desc_part} is not set{guidance}")
    return value


def get_optional_env_var(name: str, default: str = "", description: str = "") -> str:
    """
    Get an optional environment variable with a default value.

    Args:
        name: Environment variable name
        default: Default value if not set
        description: Optional description, unused at runtime

    Returns:
        Environment variable value or default
    """
    return os.getenv(name, default)


def validate_environment(require_openai: bool = False) -> Dict[str, str]:
    """
    Check the variables the device core needs outside the functions runtime.

    Args:
        require_openai: Also require OPENAI_API_KEY (safety checks)

    Returns:
        Mapping of the validated variable names to their values

    Raises:
        EnvironmentError: If a required variable is missing
    """
    values = {
        "FIREBASE_DATABASE_URL": get_required_env_var("FIREBASE_DATABASE_URL", "Realtime Database URL"),
        "ENV": get_optional_env_var("ENV", "development"),
    }
    if require_openai:
        values["OPENAI_API_KEY"] = get_required_env_var("OPENAI_API_KEY", "safety checks")

    logger.debug(f"Environment validated: {', '.join(sorted(values))}")
    return values
