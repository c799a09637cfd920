"""Function request and response type definitions."""

from typing import Optional, List, Dict, Any, TypedDict


class LinkDeviceRequest(TypedDict):
    """Request structure for link_device_callable."""
    pin: str


class LinkDeviceResponse(TypedDict):
    """Response structure for link_device_callable."""
    success: bool
    pin: str
    alreadyLinked: bool
    message: str


class GetSlotsRequest(TypedDict):
    """Request structure for get_slots_callable."""
    pin: Optional[str]


class GetSlotsResponse(TypedDict):
    """Response structure for get_slots_callable."""
    success: bool
    pin: str
    slots: List[Dict[str, Any]]


class UpdateSlotRequest(TypedDict):
    """Request structure for update_slot_callable."""
    pin: Optional[str]
    slotNumber: int
    medicationName: Optional[str]
    pillCount: int


class DispenseRequest(TypedDict):
    """Request structure for dispense_callable."""
    pin: Optional[str]


class RotateMotorRequest(TypedDict):
    """Request structure for rotate_motor_callable."""
    angle: Optional[int]


class CommandResponse(TypedDict):
    """Response structure for command-style callables."""
    success: bool
    message: str


class CheckAllergyRequest(TypedDict):
    """Request structure for check_allergy_callable."""
    medicationName: str
    userAllergies: List[str]


class CheckInteractionRequest(TypedDict):
    """Request structure for check_interaction_callable."""
    medication1: str
    medication2: str
    medication1Time: Optional[str]
    medication2Time: Optional[str]


class GetSuggestionsRequest(TypedDict):
    """Request structure for get_suggestions_callable."""
    query: str
    limit: Optional[int]


class ChatRequest(TypedDict):
    """Request structure for chat_callable."""
    messages: List[Dict[str, str]]
    userMedications: Optional[List[str]]


class ChatResponse(TypedDict):
    """Response structure for chat_callable."""
    success: bool
    response: str


class AddDoseRequest(TypedDict):
    """Request structure for add_dose_callable."""
    medName: str
    dose: str
    time: str
    acknowledgeWarnings: Optional[bool]
