"""Exceptions package initialization."""

from .CustomError import (
    PillMateError,
    ValidationError,
    InvalidPinError,
    InvalidCountError,
    NotFoundError,
    DeviceNotFoundError,
    DeviceNotReadyError,
    ConflictError,
    AlreadyLinkedToOtherError,
    DeviceAccessDeniedError,
    NotAuthenticatedError,
    NoDeviceLinkedError,
    DispenseBlockedError,
    DispensePendingError,
    InteractionConflictError,
    BackendError,
    PermissionDeniedError,
    DispenseCommandError,
    ExternalServiceError,
)

__all__ = [
    "PillMateError",
    "ValidationError",
    "InvalidPinError",
    "InvalidCountError",
    "NotFoundError",
    "DeviceNotFoundError",
    "DeviceNotReadyError",
    "ConflictError",
    "AlreadyLinkedToOtherError",
    "DeviceAccessDeniedError",
    "NotAuthenticatedError",
    "NoDeviceLinkedError",
    "DispenseBlockedError",
    "DispensePendingError",
    "InteractionConflictError",
    "BackendError",
    "PermissionDeniedError",
    "DispenseCommandError",
    "ExternalServiceError",
]
