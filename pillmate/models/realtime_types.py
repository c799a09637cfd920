"""Realtime Database record types for devices and their slots."""

import re
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

PIN_PATTERN = re.compile(r"^\d{6}$")
SLOT_COUNT = 7
DEFAULT_MAX_CAPACITY = 100
DEFAULT_LOW_THRESHOLD = 10


class DeviceStatus(str, Enum):
    """Pairing state written by the firmware and the app."""
    WAITING_FOR_PAIR = "WAITING_FOR_PAIR"
    LINKED = "LINKED"


class SlotStatus(str, Enum):
    """Stock level of a single slot."""
    EMPTY = "empty"
    LOW = "low"
    OK = "ok"


class Slot(BaseModel):
    """One of the seven physical compartments of a device."""

    slotNumber: int = Field(ge=1)
    medicationName: Optional[str] = None
    pillCount: int = 0
    maxCapacity: int = DEFAULT_MAX_CAPACITY
    lowThreshold: int = DEFAULT_LOW_THRESHOLD
    lastRefilled: Optional[str] = None

    @field_validator("medicationName")
    @classmethod
    def _blank_name_is_unassigned(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def status(self) -> SlotStatus:
        return slot_status(self)


class MotorRotateCommand(BaseModel):
    """One-shot motor command; the firmware flips ``executed`` when done."""

    angle: int
    timestamp: int
    executed: bool = False


class DeviceRecord(BaseModel):
    """Device record stored at ``devices/{pin}``.

    Unknown keys written by the firmware are kept so that a read-modify-write
    never drops them.
    """

    model_config = {"extra": "allow"}

    status: Optional[str] = None
    ownerUid: Optional[str] = None
    ownerEmail: Optional[str] = None
    linkedAt: Optional[str] = None
    pairingSession: int = 0
    slots: Optional[Any] = None
    dispense: Optional[bool] = None
    dispenseRequestedAt: Optional[int] = None
    motorRotate: Optional[MotorRotateCommand] = None


def is_valid_pin(pin: Any) -> bool:
    """A PIN is exactly six ASCII digits, string-typed."""
    return isinstance(pin, str) and bool(PIN_PATTERN.match(pin))


def slot_status(slot: Slot) -> SlotStatus:
    """Derive the stock status of a slot. Empty wins over low."""
    if slot.pillCount == 0:
        return SlotStatus.EMPTY
    if slot.pillCount <= slot.lowThreshold:
        return SlotStatus.LOW
    return SlotStatus.OK


def default_slot(
    slot_number: int,
    max_capacity: int = DEFAULT_MAX_CAPACITY,
    low_threshold: int = DEFAULT_LOW_THRESHOLD,
) -> Slot:
    return Slot(
        slotNumber=slot_number,
        medicationName=None,
        pillCount=0,
        maxCapacity=max_capacity,
        lowThreshold=low_threshold,
    )


def default_slots(
    slot_count: int = SLOT_COUNT,
    max_capacity: int = DEFAULT_MAX_CAPACITY,
    low_threshold: int = DEFAULT_LOW_THRESHOLD,
) -> List[Slot]:
    return [default_slot(i, max_capacity, low_threshold) for i in range(1, slot_count + 1)]


def _raw_slot_entries(raw: Any) -> Dict[int, Any]:
    """Index raw slot data by slot number.

    The Realtime Database returns integer-keyed objects as lists (index 0
    unused), so both shapes are accepted.
    """
    if raw is None:
        return {}
    if isinstance(raw, list):
        return {i: entry for i, entry in enumerate(raw) if entry is not None}
    if isinstance(raw, dict):
        entries = {}
        for key, entry in raw.items():
            try:
                entries[int(key)] = entry
            except (TypeError, ValueError):
                continue
        return entries
    return {}


def slots_from_raw(
    raw: Any,
    slot_count: int = SLOT_COUNT,
    max_capacity: int = DEFAULT_MAX_CAPACITY,
    low_threshold: int = DEFAULT_LOW_THRESHOLD,
) -> List[Slot]:
    """Build exactly ``slot_count`` slots sorted by number, gap-filling defaults."""
    entries = _raw_slot_entries(raw)
    slots = []
    for number in range(1, slot_count + 1):
        entry = entries.get(number)
        if isinstance(entry, dict):
            slots.append(Slot(**{
                "maxCapacity": max_capacity,
                "lowThreshold": low_threshold,
                **entry,
                "slotNumber": number,
            }))
        else:
            slots.append(default_slot(number, max_capacity, low_threshold))
    return sorted(slots, key=lambda s: s.slotNumber)


def missing_slot_numbers(raw: Any, slot_count: int = SLOT_COUNT) -> List[int]:
    entries = _raw_slot_entries(raw)
    return [
        number for number in range(1, slot_count + 1)
        if not isinstance(entries.get(number), dict)
    ]
