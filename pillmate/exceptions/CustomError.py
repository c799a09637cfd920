"""Custom exception classes for the device core."""

from typing import Optional, Dict, Any


class PillMateError(Exception):
    """Base exception class for PillMate errors.

    ``user_message`` is what the invocation boundary (callable or CLI) shows
    to the user; ``message`` is for logs.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ):
        """Initialize PillMateError.

        Args:
            message: Error message
            code: Optional error code
            details: Optional additional error details
            user_message: Optional human-readable message for the UI
        """
        super().__init__(message)
        self.message = message
        self.code = code or "PILLMATE_ERROR"
        self.details = details or {}
        self.user_message = user_message or message


class ValidationError(PillMateError):
    """Raised when input validation fails, before any network call."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize ValidationError.

        Args:
            message: Error message
            field: Optional field that failed validation
            details: Optional additional error details
        """
        if field:
            details = details or {}
            details["field"] = field

        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidPinError(ValidationError):
    """Raised when a pairing PIN is not exactly six digits."""

    def __init__(self, pin: str):
        super().__init__("Please enter a 6-digit PIN.", field="pin", details={"pin": pin})


class InvalidCountError(ValidationError):
    """Raised when a pill count is negative."""

    def __init__(self, pill_count: int):
        super().__init__(
            "Pill count cannot be negative.",
            field="pillCount",
            details={"pillCount": pill_count},
        )


class NotFoundError(PillMateError):
    """Raised when a resource is not found."""

    def __init__(self, resource_type: str, resource_id: str, user_message: Optional[str] = None):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource not found
            resource_id: ID of resource not found
            user_message: Optional remediation text for the user
        """
        message = f"{resource_type} with ID '{resource_id}' not found"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id
        }
        super().__init__(message, code="NOT_FOUND", details=details, user_message=user_message)


class DeviceNotFoundError(NotFoundError):
    """Raised when no device record exists for a PIN."""

    def __init__(self, pin: str):
        super().__init__(
            "Device",
            pin,
            user_message=(
                "No device found with this PIN.\n\nMake sure:\n"
                "- The box is powered on\n"
                "- The PIN is correctly displayed on the screen\n"
                "- The box is connected to WiFi"
            ),
        )


class DeviceNotReadyError(PillMateError):
    """Raised when a device is in neither pairing nor linked state."""

    def __init__(self, pin: str, status: Optional[str]):
        super().__init__(
            f"Device {pin} has unexpected status {status!r}",
            code="NOT_READY",
            details={"pin": pin, "status": status},
            user_message=(
                f"Device status: {status or 'unknown'}. "
                "Please make sure the device is in pairing mode."
            ),
        )


class ConflictError(PillMateError):
    """Raised when a resource is owned by someone else."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, user_message: Optional[str] = None):
        super().__init__(message, code="CONFLICT", details=details, user_message=user_message)


class AlreadyLinkedToOtherError(ConflictError):
    """Raised when a device is already linked to a different account."""

    def __init__(self, pin: str):
        super().__init__(
            f"Device {pin} is linked to another account",
            details={"pin": pin},
            user_message="This device is already linked to another account.",
        )


class DeviceAccessDeniedError(PillMateError):
    """Raised when a PIN names a device the caller does not own."""

    def __init__(self, pin: str, uid: Optional[str]):
        super().__init__(
            f"User {uid} does not own device {pin}",
            code="DEVICE_ACCESS_DENIED",
            details={"pin": pin, "uid": uid},
            user_message="This device is not linked to your account.",
        )


class NotAuthenticatedError(PillMateError):
    """Raised when an operation needs a signed-in user."""

    def __init__(self):
        super().__init__(
            "The operation requires an authenticated user",
            code="UNAUTHENTICATED",
            user_message="Please sign in again.",
        )


class NoDeviceLinkedError(PillMateError):
    """Raised when the user has no linked device."""

    def __init__(self, uid: str):
        super().__init__(
            f"No device linked for user {uid}",
            code="NO_DEVICE",
            details={"uid": uid},
            user_message="Please link a device first from the device link page.",
        )


class DispenseBlockedError(PillMateError):
    """Raised when the safety gate refuses a dispense."""

    def __init__(self, reason: str):
        super().__init__(
            f"Dispense blocked: {reason}",
            code="DISPENSE_BLOCKED",
            details={"reason": reason},
            user_message=f"{reason}\n\nDispense blocked for your safety.",
        )
        self.reason = reason


class DispensePendingError(PillMateError):
    """Raised when a previous dispense request has not been consumed yet."""

    def __init__(self, pin: str):
        super().__init__(
            f"Dispense already pending on device {pin}",
            code="DISPENSE_PENDING",
            details={"pin": pin},
            user_message="The device has not finished the previous dispense yet.",
        )


class InteractionConflictError(PillMateError):
    """Raised when two medications cannot be scheduled together."""

    def __init__(self, med_name: str, other_med_name: str, message: str):
        super().__init__(
            f"{med_name} conflicts with {other_med_name}: {message}",
            code="INTERACTION_CONFLICT",
            details={"medName": med_name, "otherMedName": other_med_name},
            user_message=f'{message}\n\nCannot take "{med_name}" with "{other_med_name}".',
        )


class BackendError(PillMateError):
    """Raised when a store read or write fails."""

    def __init__(self, message: str, user_message: Optional[str] = None, code: str = "BACKEND_ERROR"):
        super().__init__(message, code=code, user_message=user_message)


class PermissionDeniedError(BackendError):
    """Raised when the backend rejects an operation on security rules."""

    def __init__(self, message: str):
        super().__init__(
            message,
            code="PERMISSION_DENIED",
            user_message=(
                "Permission denied. The Realtime Database or Firestore security "
                "rules do not allow this operation. Update the rules in the "
                "Firebase Console and publish them."
            ),
        )


class DispenseCommandError(BackendError):
    """Raised when the dispense command could not be written."""

    def __init__(self, message: str):
        super().__init__(
            message,
            code="DISPENSE_FAILED",
            user_message="Could not trigger dispense. Make sure the device is online.",
        )


class ExternalServiceError(PillMateError):
    """Raised when an external service fails or is not configured."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        """Initialize ExternalServiceError.

        Args:
            service: Name of the external service
            message: Error message
            status_code: Optional HTTP status code
        """
        details = {
            "service": service,
            "status_code": status_code
        }
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", details=details)
