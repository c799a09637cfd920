"""AI-backed medication safety checks.

Every check asks the model for JSON only and parses it into a strict result
type. Remote or parse failures return the permissive degraded result; only a
missing API key is reported as an error. The assistant chat has no safe
default, so its remote failures raise as well.
"""

import json
import os
import re
from typing import Any, Dict, Iterable, List, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError as PydanticValidationError

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.exceptions import ExternalServiceError, ValidationError
from pillmate.models.safety_types import (
    AllergyCheckResult,
    ChatMessage,
    InteractionCheckResult,
    SuggestionsResult,
)
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?\n?")

CHAT_SYSTEM_PROMPT = (
    "You are a helpful medication assistant for PillMate.\n"
    "Help users with medication questions, drug interactions, dosage, and scheduling."
)
CHAT_FALLBACK_REPLY = "Sorry, I couldn't generate a response."


def strip_code_fences(content: str) -> str:
    return _FENCE.sub("", content).strip()


def resolve_openai_api_key() -> Optional[str]:
    """OPENAI_API_KEY from the environment, else Secret Manager in production."""
    key = os.getenv("OPENAI_API_KEY")
    if key:
        return key
    if Db.is_production():
        return Db.get_secret("OPENAI_API_KEY")
    return None


class SafetyService:
    """Allergy, interaction and name-suggestion checks, plus the assistant chat, via OpenAI."""

    def __init__(self, client: Optional[OpenAI] = None, config: Optional[AppConfig] = None):
        config = config if config is not None else load_app_config()
        self.model = get_config_value("safety.model", "gpt-3.5-turbo", config)
        self.temperature = get_config_value("safety.temperature", 0.2, config)
        self.default_limit = get_config_value("safety.suggestion_limit", 5, config)
        self.chat_max_tokens = get_config_value("safety.chat_max_tokens", 500, config)
        self.chat_temperature = get_config_value("safety.chat_temperature", 0.7, config)
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            api_key = resolve_openai_api_key()
            if not api_key:
                raise ExternalServiceError("openai", "OpenAI API key not configured")
            self._client = OpenAI(api_key=api_key)
        return self._client

    def _create(self, messages: List[Dict[str, str]], max_tokens: int, temperature: float) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def _complete(self, system: str, prompt: str, max_tokens: int, temperature: Optional[float] = None) -> str:
        return self._create(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=self.temperature if temperature is None else temperature,
        )

    def check_allergy(self, medication_name: str, user_allergies: List[str]) -> AllergyCheckResult:
        if not medication_name or not user_allergies:
            return AllergyCheckResult.none()

        prompt = f"""Check if medication "{medication_name}" conflicts with allergies: {", ".join(user_allergies)}.
Return ONLY JSON:
{{
  "hasAllergy": true/false,
  "severity": "high"/"medium"/"low"/"none",
  "message": "explanation",
  "shouldBlock": true/false
}}"""

        try:
            content = self._complete("Return only valid JSON.", prompt, max_tokens=200)
            if not content:
                return AllergyCheckResult.none()
            result = AllergyCheckResult.model_validate(json.loads(strip_code_fences(content)))
            logger.info(f"Allergy check for {medication_name}: severity={result.severity} block={result.shouldBlock}")
            return result
        except (OpenAIError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.error(f"Allergy check error: {e}")
            return AllergyCheckResult.degraded_result()

    def check_interaction(
        self,
        medication1: str,
        medication2: str,
        medication1_time: Optional[str] = None,
        medication2_time: Optional[str] = None,
    ) -> InteractionCheckResult:
        if not medication1 or not medication2:
            raise ValidationError("Both medications are required")

        time_info = (
            f" Times: {medication1} at {medication1_time}, {medication2} at {medication2_time}."
            if medication1_time and medication2_time else ""
        )
        prompt = f"""Check drug interaction between "{medication1}" and "{medication2}".{time_info}
Return ONLY JSON:
{{
  "canTakeTogether": true/false,
  "interactionLevel": "severe"/"moderate"/"mild"/"none",
  "timeGapRequired": number (hours, 0 if safe together),
  "message": "explanation",
  "recommendation": "take_together"/"space_hours"/"avoid"
}}"""

        try:
            content = self._complete("Return only valid JSON.", prompt, max_tokens=250)
            if not content:
                return InteractionCheckResult()
            return InteractionCheckResult.model_validate(json.loads(strip_code_fences(content)))
        except (OpenAIError, json.JSONDecodeError, PydanticValidationError) as e:
            logger.error(f"Interaction check error: {e}")
            return InteractionCheckResult.degraded_result()

    def get_suggestions(self, query: str, limit: Optional[int] = None) -> SuggestionsResult:
        limit = limit or self.default_limit
        if not query or len(query.strip()) < 2:
            return SuggestionsResult()

        prompt = f"""Given "{query.strip()}", suggest {limit} common medication names (brand or generic).
Return ONLY a JSON array: ["Medication1", "Medication2", ...]"""

        try:
            content = self._complete("Return only valid JSON array.", prompt, max_tokens=150, temperature=0.3)
            suggestions = json.loads(strip_code_fences(content or "[]"))
        except (OpenAIError, json.JSONDecodeError) as e:
            logger.error(f"Suggestions error: {e}")
            return SuggestionsResult()

        if not isinstance(suggestions, list):
            return SuggestionsResult()
        return SuggestionsResult(suggestions=[s for s in suggestions if isinstance(s, str)][:limit])

    def chat(self, messages: List[Dict[str, Any]], user_medications: Optional[Iterable[str]] = None) -> str:
        """Free-form medication assistant reply to a conversation.

        Args:
            messages: Conversation so far, oldest first, as ``{"role", "content"}`` dicts
            user_medications: Names added to the system prompt as context

        Raises:
            ValidationError: Empty or malformed conversation
            ExternalServiceError: Missing API key or failed completion
        """
        if not isinstance(messages, list) or not messages:
            raise ValidationError("Messages array is required", field="messages")
        try:
            conversation = [ChatMessage.model_validate(m).model_dump() for m in messages]
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid chat message: {e.errors()[0]['msg']}", field="messages") from e

        medications = [m for m in (user_medications or []) if isinstance(m, str) and m.strip()]
        system = CHAT_SYSTEM_PROMPT
        if medications:
            system += f"\nUser's medications: {', '.join(medications)}"
        system += "\nAlways prioritize safety and recommend consulting a doctor for serious concerns."

        try:
            content = self._create(
                [{"role": "system", "content": system}, *conversation],
                max_tokens=self.chat_max_tokens,
                temperature=self.chat_temperature,
            )
        except OpenAIError as e:
            logger.error(f"Chat error: {e}")
            raise ExternalServiceError("openai", f"Failed to get AI response: {e}") from e
        return content or CHAT_FALLBACK_REPLY
