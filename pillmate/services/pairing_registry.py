"""Claiming a PIN-identified device for an authenticated user."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.documents.users.User import User
from pillmate.exceptions import (
    AlreadyLinkedToOtherError,
    BackendError,
    DeviceNotFoundError,
    DeviceNotReadyError,
    InvalidPinError,
    NotAuthenticatedError,
)
from pillmate.models.realtime_types import DeviceStatus, is_valid_pin
from pillmate.services.session import Session
from pillmate.services.slot_inventory import SlotInventoryStore, device_path
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger
from pillmate.util.reliability import RetryPolicy, run_with_retry
from pillmate.util.subscription import Subscription

logger = get_logger(__name__)


@dataclass
class LinkResult:
    pin: str
    already_linked: bool
    pairing_session: int
    slots_seeded: List[int] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.already_linked:
            return "This device is already linked to your account."
        return "Device linked successfully!"


def waiting_pins(raw: Any) -> List[str]:
    """PINs whose device record is waiting for pairing, sorted."""
    if not isinstance(raw, dict):
        return []
    return sorted(
        pin for pin, record in raw.items()
        if isinstance(record, dict) and record.get("status") == DeviceStatus.WAITING_FOR_PAIR.value
    )


class PairingRegistry:
    """Brokers ownership of devices between firmware and user accounts.

    A link is a single Realtime Database transaction on ``devices/{pin}``
    (the claim), followed by two derived writes: the Firestore link record
    and the slot seeding. Derived writes are retried until they converge; a
    re-link by the owner re-runs them, so a partial failure is repaired by
    linking again.
    """

    def __init__(
        self,
        db: Optional[Db] = None,
        slots: Optional[SlotInventoryStore] = None,
        config: Optional[AppConfig] = None,
    ):
        self.db = db or Db.get_instance()
        config = config if config is not None else load_app_config()
        self.slots = slots or SlotInventoryStore(self.db, config)
        self.model = get_config_value("device.model", "M5Stack", config)
        self.reset_slots_on_link = get_config_value("pairing.slot_init_mode", "preserve", config) == "reset"
        self.retry_policy = RetryPolicy(
            max_attempts=get_config_value("pairing.derived_write_attempts", 3, config),
            base_delay_seconds=get_config_value("pairing.derived_write_base_delay_sec", 1, config),
        )

    def find_waiting_devices(self, on_value: Optional[Callable[[List[str]], None]] = None) -> Subscription[List[str]]:
        """Stream the PINs currently waiting for pairing.

        Discovery only; linking does not require the PIN to appear here.
        """
        subscription: Subscription[List[str]] = Subscription(
            "waiting-devices", transform=waiting_pins, on_value=on_value
        )
        with backend_errors("watch devices waiting for pairing"):
            subscription.attach(self.db.realtime.listen("devices", subscription.deliver))
        return subscription

    def link_device(self, session: Session, pin: str) -> LinkResult:
        """Claim the device at ``pin`` for the session's user.

        Raises:
            InvalidPinError: PIN is not six digits (no store access)
            NotAuthenticatedError: Session has no user
            DeviceNotFoundError: No record for the PIN
            AlreadyLinkedToOtherError: Linked to a different account
            DeviceNotReadyError: Unexpected device status
            BackendError: Store failure during the claim or derived writes
        """
        pin = pin.strip() if isinstance(pin, str) else pin
        if not is_valid_pin(pin):
            raise InvalidPinError(str(pin))
        if not session.uid:
            raise NotAuthenticatedError()

        uid = session.uid
        linked_at = self.db.timestamp_now()
        outcome = {"already_linked": False, "pairing_session": 0}

        def claim(current: Any) -> Any:
            if current is None:
                raise DeviceNotFoundError(pin)

            status = current.get("status") if isinstance(current, dict) else None
            if status == DeviceStatus.LINKED.value:
                if current.get("ownerUid") != uid:
                    raise AlreadyLinkedToOtherError(pin)
                outcome["already_linked"] = True
                outcome["pairing_session"] = current.get("pairingSession", 0)
                return current
            if status != DeviceStatus.WAITING_FOR_PAIR.value:
                raise DeviceNotReadyError(pin, status)

            outcome["already_linked"] = False
            outcome["pairing_session"] = int(current.get("pairingSession", 0)) + 1
            return {
                **current,
                "status": DeviceStatus.LINKED.value,
                "ownerUid": uid,
                "ownerEmail": session.email or "",
                "linkedAt": _iso(linked_at),
                "pairingSession": outcome["pairing_session"],
            }

        with backend_errors(f"link device {pin}"):
            self.db.realtime.transaction(device_path(pin), claim)

        if outcome["already_linked"]:
            logger.info(f"Device {pin} already linked to user {uid}, confirming derived records")
        else:
            logger.info(f"Device {pin} claimed by user {uid} (session {outcome['pairing_session']})")

        seeded = self._converge_derived_writes(
            session,
            pin,
            linked_at,
            # Re-linking an owned device never wipes its inventory
            reset_slots=self.reset_slots_on_link and not outcome["already_linked"],
        )

        return LinkResult(
            pin=pin,
            already_linked=outcome["already_linked"],
            pairing_session=outcome["pairing_session"],
            slots_seeded=seeded,
        )

    def _converge_derived_writes(self, session: Session, pin: str, linked_at: datetime, reset_slots: bool) -> List[int]:
        user = User(session.uid, db=self.db)

        try:
            run_with_retry(
                lambda: user.record_device_link(pin, self.model, linked_at),
                self.retry_policy,
                f"Saving link record for device {pin}",
            )
            return run_with_retry(
                lambda: self.slots.seed_slots(pin, reset=reset_slots),
                self.retry_policy,
                f"Initializing slots of device {pin}",
            )
        except BackendError as e:
            raise BackendError(
                f"Device {pin} is linked but its records are incomplete: {e.message}",
                code=e.code,
                user_message=(
                    f"{e.user_message}\n\nThe device was linked but setup did not finish. "
                    "Link it again to complete setup."
                ),
            ) from e


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")
