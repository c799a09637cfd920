"""Session-side wrapper around the safety checks."""

from typing import List, Optional, Protocol

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.documents.users.User import User
from pillmate.exceptions import PillMateError
from pillmate.models.safety_types import AllergyCheckResult, InteractionCheckResult
from pillmate.services.session import Session
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

SIGN_IN_TO_VERIFY = "Please sign in to verify allergies."


class SafetyChecker(Protocol):
    def check_allergy(self, medication_name: str, user_allergies: List[str]) -> AllergyCheckResult: ...

    def check_interaction(
        self,
        medication1: str,
        medication2: str,
        medication1_time: Optional[str] = None,
        medication2_time: Optional[str] = None,
    ) -> InteractionCheckResult: ...


class SafetyGate:
    """Runs safety checks on behalf of a session.

    Checks wait a bounded time for the session to authenticate and degrade
    to a permissive result rather than failing.
    """

    def __init__(self, checker: SafetyChecker, db: Optional[Db] = None, config: Optional[AppConfig] = None):
        self.checker = checker
        self.db = db or Db.get_instance()
        config = config if config is not None else load_app_config()
        self.auth_wait_sec = get_config_value("safety.auth_wait_sec", 3, config)

    def get_user_allergies(self, uid: str) -> List[str]:
        try:
            return User(uid, db=self.db).get_allergies()
        except PillMateError as e:
            logger.error(f"Error fetching allergies for user {uid}: {e}")
            return []

    def check_allergy(
        self,
        session: Session,
        medication_name: str,
        allergies: Optional[List[str]] = None,
    ) -> AllergyCheckResult:
        if not session.wait_until_authenticated(self.auth_wait_sec) or not session.uid:
            logger.warning("Allergy check skipped, authentication did not resolve in time")
            return AllergyCheckResult.degraded_result(SIGN_IN_TO_VERIFY)

        if allergies is None:
            allergies = self.get_user_allergies(session.uid)
        if not allergies:
            return AllergyCheckResult.none()

        try:
            return self.checker.check_allergy(medication_name, allergies)
        except PillMateError as e:
            logger.error(f"Allergy check error: {e}")
            return AllergyCheckResult.degraded_result()

    def check_interaction(
        self,
        session: Session,
        medication1: str,
        medication2: str,
        medication1_time: Optional[str] = None,
        medication2_time: Optional[str] = None,
    ) -> InteractionCheckResult:
        if not session.wait_until_authenticated(self.auth_wait_sec):
            return InteractionCheckResult.degraded_result()

        try:
            return self.checker.check_interaction(medication1, medication2, medication1_time, medication2_time)
        except PillMateError as e:
            logger.error(f"Interaction check error: {e}")
            return InteractionCheckResult.degraded_result()
