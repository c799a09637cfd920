"""Mapping of project errors to callable-function errors."""

from firebase_functions import https_fn

from pillmate.exceptions import PillMateError

_CODES = {
    "VALIDATION_ERROR": https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
    "NOT_FOUND": https_fn.FunctionsErrorCode.NOT_FOUND,
    "NOT_READY": https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
    "NO_DEVICE": https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
    "DISPENSE_BLOCKED": https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
    "DISPENSE_PENDING": https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
    "INTERACTION_CONFLICT": https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
    "EXTERNAL_SERVICE_ERROR": https_fn.FunctionsErrorCode.FAILED_PRECONDITION,
    "CONFLICT": https_fn.FunctionsErrorCode.ALREADY_EXISTS,
    "UNAUTHENTICATED": https_fn.FunctionsErrorCode.UNAUTHENTICATED,
    "PERMISSION_DENIED": https_fn.FunctionsErrorCode.PERMISSION_DENIED,
    "DEVICE_ACCESS_DENIED": https_fn.FunctionsErrorCode.PERMISSION_DENIED,
    "UNAVAILABLE": https_fn.FunctionsErrorCode.UNAVAILABLE,
    "DISPENSE_FAILED": https_fn.FunctionsErrorCode.UNAVAILABLE,
}


def to_https_error(error: PillMateError) -> https_fn.HttpsError:
    """HttpsError carrying the user-facing message and the error code."""
    code = _CODES.get(error.code, https_fn.FunctionsErrorCode.INTERNAL)
    return https_fn.HttpsError(code, error.user_message, {"code": error.code})
