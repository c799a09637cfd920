"""Dispense and motor commands for a user's device, behind the safety gate."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Union

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.documents.users.User import User
from pillmate.exceptions import (
    BackendError,
    DeviceAccessDeniedError,
    DispenseBlockedError,
    DispenseCommandError,
    DispensePendingError,
    InvalidPinError,
    NoDeviceLinkedError,
    NotAuthenticatedError,
    PillMateError,
)
from pillmate.models.firestore_types import DoseDoc
from pillmate.models.realtime_types import MotorRotateCommand, is_valid_pin
from pillmate.services.safety_gate import SafetyGate
from pillmate.services.session import Session
from pillmate.services.slot_inventory import device_path
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BLOCK_WARNING = "This medication may cause an allergic reaction."

DoseLike = Union[DoseDoc, Dict[str, Any]]


class DispenseState(str, Enum):
    IDLE = "IDLE"
    CHECKING_SAFETY = "CHECKING_SAFETY"
    BLOCKED = "BLOCKED"
    ISSUING = "ISSUING"


@dataclass
class DispenseOutcome:
    """Result of a silent (automatic) dispense attempt."""

    dispensed: bool
    pin: Optional[str] = None
    reason: Optional[str] = None
    rotated: bool = False


def verify_device_owner(session: Session, pin: str, db: Optional[Db] = None):
    """Check that the realtime record of ``pin`` is owned by the session user.

    Raises:
        InvalidPinError: PIN is not six digits
        DeviceAccessDeniedError: Missing device or another owner
    """
    if not is_valid_pin(pin):
        raise InvalidPinError(str(pin))

    db = db or Db.get_instance()
    with backend_errors(f"read owner of device {pin}"):
        owner = db.realtime.get(f"{device_path(pin)}/ownerUid")
    if not owner or owner != session.uid:
        logger.warning(f"User {session.uid} denied access to device {pin}")
        raise DeviceAccessDeniedError(pin, session.uid)


def resolve_device_pin(session: Session, db: Optional[Db] = None) -> str:
    """The session's device, else the user's primary device, once ownership is verified.

    A PIN supplied by a client is never trusted; the realtime record's
    ``ownerUid`` must be the session user.

    Raises:
        NotAuthenticatedError: Session has no user
        NoDeviceLinkedError: The user has no linked device
        DeviceAccessDeniedError: The PIN belongs to someone else
    """
    if not session.uid:
        raise NotAuthenticatedError()

    pin = session.device_pin or User(session.uid, db=db).get_primary_device_pin()
    if not pin:
        raise NoDeviceLinkedError(session.uid)

    if pin != session.verified_device_pin:
        verify_device_owner(session, pin, db)
        session.verified_device_pin = pin
    session.device_pin = pin
    return pin


def next_dose(doses: Iterable[DoseLike]) -> Optional[DoseDoc]:
    """First enabled dose in the caller's order."""
    for dose in doses or []:
        if isinstance(dose, dict):
            dose = DoseDoc(**dose)
        if dose.enabled:
            return dose
    return None


class DispenseCoordinator:
    """Issues dispense and motor commands to the session user's device.

    Every attempt walks IDLE -> CHECKING_SAFETY -> BLOCKED or ISSUING -> IDLE.
    Nothing is retried; the caller decides whether to try again.
    """

    def __init__(self, gate: SafetyGate, db: Optional[Db] = None, config: Optional[AppConfig] = None):
        self.gate = gate
        self.db = db or Db.get_instance()
        config = config if config is not None else load_app_config()
        self.motor_step = get_config_value("device.motor_step_degrees", 45, config)
        self.reject_while_pending = get_config_value("dispense.reject_while_pending", False, config)
        self.state = DispenseState.IDLE

    def resolve_device_pin(self, session: Session) -> str:
        return resolve_device_pin(session, self.db)

    def _check_gate(self, session: Session, doses: Iterable[DoseLike]):
        """Raise DispenseBlockedError if the sticky block or an allergy forbids dispensing."""
        self.state = DispenseState.CHECKING_SAFETY

        if not session.dispense_blocked and session.uid:
            stored_warning = User(session.uid, db=self.db).get_dispense_block()
            if stored_warning:
                session.block_dispense(stored_warning)

        if session.dispense_blocked:
            self.state = DispenseState.BLOCKED
            raise DispenseBlockedError(session.safety_warning or DEFAULT_BLOCK_WARNING)

        dose = next_dose(doses)
        if dose is None:
            return

        result = self.gate.check_allergy(session, dose.medName)
        if result.blocks:
            self.state = DispenseState.BLOCKED
            raise DispenseBlockedError(result.message or DEFAULT_BLOCK_WARNING)

    def _issue(self, pin: str):
        self.state = DispenseState.ISSUING

        if self.reject_while_pending:
            with backend_errors(f"read dispense flag of device {pin}"):
                pending = self.db.realtime.get(f"{device_path(pin)}/dispense")
            if pending is True:
                raise DispensePendingError(pin)

        try:
            with backend_errors(f"trigger dispense on device {pin}"):
                self.db.realtime.update(
                    device_path(pin),
                    {"dispense": True, "dispenseRequestedAt": self.db.now_ms()},
                )
        except BackendError as e:
            raise DispenseCommandError(e.message) from e

        logger.info(f"Dispense triggered on device {pin}")

    def manual_dispense(self, session: Session, doses: Iterable[DoseLike]) -> str:
        """Dispense the next dose now.

        Returns:
            PIN of the device that was told to dispense

        Raises:
            NoDeviceLinkedError: The user has no linked device
            DeviceAccessDeniedError: The session's PIN belongs to someone else
            DispenseBlockedError: Sticky block set or blocking allergy
            DispensePendingError: Previous request still pending (if configured)
            DispenseCommandError: The command could not be written
        """
        pin = self.resolve_device_pin(session)
        try:
            self._check_gate(session, doses)
            self._issue(pin)
            return pin
        finally:
            self.state = DispenseState.IDLE

    def auto_dispense(self, session: Session, doses: Iterable[DoseLike]) -> DispenseOutcome:
        """Motor step followed by a gated dispense, without raising."""
        try:
            pin = self.resolve_device_pin(session)
        except PillMateError as e:
            logger.warning(f"Auto-dispense skipped for user {session.uid}: {e.message}")
            return DispenseOutcome(dispensed=False, reason=e.message)

        rotated = False
        try:
            self.rotate(session, self.motor_step)
            rotated = True
        except PillMateError as e:
            logger.error(f"Motor rotation before auto-dispense failed on device {pin}: {e.message}")

        try:
            self._check_gate(session, doses)
            self._issue(pin)
        except DispenseBlockedError as e:
            logger.warning(f"Auto-dispense blocked on device {pin}: {e.reason}")
            return DispenseOutcome(dispensed=False, pin=pin, reason=e.reason, rotated=rotated)
        except PillMateError as e:
            logger.error(f"Error triggering auto-dispense on device {pin}: {e.message}")
            return DispenseOutcome(dispensed=False, pin=pin, reason=e.message, rotated=rotated)
        finally:
            self.state = DispenseState.IDLE

        return DispenseOutcome(dispensed=True, pin=pin, rotated=rotated)

    def rotate(self, session: Session, angle: int) -> MotorRotateCommand:
        """Write a one-shot motor command; does not wait for ``executed``."""
        pin = self.resolve_device_pin(session)
        command = MotorRotateCommand(angle=int(angle), timestamp=self.db.now_ms(), executed=False)

        with backend_errors(f"rotate motor of device {pin}"):
            self.db.realtime.set(f"{device_path(pin)}/motorRotate", command.model_dump())

        logger.info(f"Motor rotation of {angle} degrees sent to device {pin}")
        return command
