"""Firestore document type definitions using Pydantic."""

from datetime import datetime
from typing import Optional, List, Any
from pydantic import BaseModel, Field


class BaseDoc(BaseModel):
    """Base document type for all Firestore documents."""

    createdAt: Optional[Any] = None


class UserDoc(BaseDoc):
    """User profile stored at ``users/{uid}``."""

    model_config = {"extra": "allow"}

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    fullName: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    allergiesCompleted: bool = False
    allergiesUpdatedAt: Optional[Any] = None
    primaryDevicePIN: Optional[str] = None
    fcmTokens: List[str] = Field(default_factory=list)
    dispenseBlocked: bool = False
    safetyWarning: Optional[str] = None
    timezone: Optional[str] = None  # IANA name, e.g. "Europe/Amsterdam"


class UserDeviceDoc(BaseModel):
    """Denormalized link record stored at ``users/{uid}/devices/{pin}``."""

    devicePIN: str
    status: str = "LINKED"
    linkedAt: Optional[datetime] = None
    model: str = "M5Stack"


class DoseDoc(BaseDoc):
    """Schedule entry stored at ``users/{uid}/schedule/{doseId}``."""

    id: Optional[str] = None
    medName: str
    dose: Optional[str] = None
    time: str  # HH:MM
    enabled: bool = True


class ReminderDoc(BaseDoc):
    """Daily reminder stored at ``users/{uid}/reminders/{reminderId}``."""

    id: Optional[str] = None
    uid: str
    doseId: Optional[str] = None
    title: str
    body: str
    hour: int = Field(ge=0, le=23)
    minute: int = Field(ge=0, le=59)
    time: str  # HH:MM in the user's timezone
    timezone: Optional[str] = None
