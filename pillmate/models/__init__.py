"""Models package initialization."""

from .realtime_types import (
    DeviceStatus,
    SlotStatus,
    Slot,
    MotorRotateCommand,
    DeviceRecord,
    is_valid_pin,
    slot_status,
    default_slot,
    default_slots,
    slots_from_raw,
)
from .firestore_types import UserDoc, UserDeviceDoc, DoseDoc, ReminderDoc
from .safety_types import AllergyCheckResult, InteractionCheckResult, SuggestionsResult

__all__ = [
    # Realtime types
    "DeviceStatus",
    "SlotStatus",
    "Slot",
    "MotorRotateCommand",
    "DeviceRecord",
    "is_valid_pin",
    "slot_status",
    "default_slot",
    "default_slots",
    "slots_from_raw",
    # Firestore types
    "UserDoc",
    "UserDeviceDoc",
    "DoseDoc",
    "ReminderDoc",
    # Safety types
    "AllergyCheckResult",
    "InteractionCheckResult",
    "SuggestionsResult",
]
