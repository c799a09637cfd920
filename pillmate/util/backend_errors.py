"""Translation of Firebase and Google Cloud errors into project errors."""

from contextlib import contextmanager
from typing import Iterator

from firebase_admin import exceptions as firebase_exceptions
from google.api_core import exceptions as gcp_exceptions

from pillmate.exceptions import BackendError, PermissionDeniedError, PillMateError
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


def translate_backend_error(error: Exception, action: str) -> BackendError:
    """Map a store failure to a BackendError with a remediation hint.

    Args:
        error: Exception raised by the Firebase Admin SDK or a Google client
        action: Short description of what was attempted

    Returns:
        BackendError (or PermissionDeniedError) ready to raise
    """
    message = f"Failed to {action}: {error}"

    if isinstance(error, (firebase_exceptions.PermissionDeniedError, gcp_exceptions.PermissionDenied)):
        return PermissionDeniedError(message)
    if "permission denied" in str(error).lower():
        return PermissionDeniedError(message)

    if isinstance(error, (firebase_exceptions.UnavailableError, gcp_exceptions.ServiceUnavailable,
                          firebase_exceptions.DeadlineExceededError, gcp_exceptions.DeadlineExceeded)):
        return BackendError(
            message,
            code="UNAVAILABLE",
            user_message="The service is unreachable. Check your connection and try again.",
        )

    return BackendError(message, user_message=f"Failed to {action}. Please try again.")


@contextmanager
def backend_errors(action: str) -> Iterator[None]:
    """Re-raise store failures inside the block as BackendError."""
    try:
        yield
    except PillMateError:
        raise
    except (firebase_exceptions.FirebaseError, gcp_exceptions.GoogleAPICallError) as e:
        logger.error(f"Backend error while trying to {action}: {e}")
        raise translate_backend_error(e, action) from e
