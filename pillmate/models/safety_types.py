"""Strict result types for the AI-backed safety checks.

Each type has a ``degraded`` constructor used whenever the remote call or its
parsing fails. Degraded results are permissive and refer the user to a doctor.
"""

from typing import List, Literal
from pydantic import BaseModel, Field

DOCTOR_REFERRAL = "Unable to verify. Please consult your doctor."

Severity = Literal["high", "medium", "low", "none"]
Recommendation = Literal["take_together", "space_hours", "avoid"]
ChatRole = Literal["user", "assistant"]


class AllergyCheckResult(BaseModel):
    hasAllergy: bool = False
    severity: Severity = "none"
    message: str = ""
    shouldBlock: bool = False
    degraded: bool = False

    @classmethod
    def none(cls) -> "AllergyCheckResult":
        return cls()

    @classmethod
    def degraded_result(cls, message: str = DOCTOR_REFERRAL) -> "AllergyCheckResult":
        return cls(message=message, degraded=True)

    @property
    def blocks(self) -> bool:
        return self.hasAllergy and self.shouldBlock


class InteractionCheckResult(BaseModel):
    canTakeTogether: bool = True
    interactionLevel: str = "none"
    timeGapRequired: float = Field(default=0, ge=0)
    message: str = ""
    recommendation: Recommendation = "take_together"
    degraded: bool = False

    @classmethod
    def degraded_result(cls, message: str = DOCTOR_REFERRAL) -> "InteractionCheckResult":
        return cls(message=message, degraded=True)


class SuggestionsResult(BaseModel):
    suggestions: List[str] = Field(default_factory=list)


class ChatMessage(BaseModel):
    """One turn of the assistant conversation, as sent by the app."""
    role: ChatRole
    content: str = Field(min_length=1)
