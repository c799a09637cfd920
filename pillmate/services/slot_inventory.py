"""Seven-slot inventory of a linked device, kept in the Realtime Database."""

from typing import Any, Callable, Dict, List, Optional

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.exceptions import InvalidCountError, InvalidPinError, ValidationError
from pillmate.models.realtime_types import (
    DEFAULT_LOW_THRESHOLD,
    DEFAULT_MAX_CAPACITY,
    SLOT_COUNT,
    Slot,
    SlotStatus,
    default_slots,
    is_valid_pin,
    missing_slot_numbers,
    slot_status,
    slots_from_raw,
)
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger
from pillmate.util.subscription import Subscription

logger = get_logger(__name__)


def device_path(pin: str) -> str:
    return f"devices/{pin}"


def slots_path(pin: str) -> str:
    return f"devices/{pin}/slots"


class SlotInventoryStore:
    """CRUD over the fixed set of slots of one or more devices."""

    def __init__(self, db: Optional[Db] = None, config: Optional[AppConfig] = None):
        self.db = db or Db.get_instance()
        config = config if config is not None else load_app_config()
        self.slot_count = get_config_value("device.slot_count", SLOT_COUNT, config)
        self.default_max_capacity = get_config_value("device.default_max_capacity", DEFAULT_MAX_CAPACITY, config)
        self.default_low_threshold = get_config_value("device.default_low_threshold", DEFAULT_LOW_THRESHOLD, config)

    @staticmethod
    def status(slot: Slot) -> SlotStatus:
        return slot_status(slot)

    def _check_pin(self, pin: str):
        if not is_valid_pin(pin):
            raise InvalidPinError(pin)

    def parse_slots(self, raw: Any) -> List[Slot]:
        """Full sorted slot list from a raw realtime value, gap-filled with defaults."""
        return slots_from_raw(raw, self.slot_count, self.default_max_capacity, self.default_low_threshold)

    def _defaults(self) -> List[Slot]:
        return default_slots(self.slot_count, self.default_max_capacity, self.default_low_threshold)

    def _payload(self, slots: List[Slot]) -> Dict[str, Any]:
        return {str(slot.slotNumber): slot.model_dump() for slot in slots}

    def load_slots(self, pin: str) -> List[Slot]:
        """Read all slots of a device.

        An absent slot map is seeded with defaults and persisted. Individual
        missing entries are filled in the returned list only.
        """
        self._check_pin(pin)
        with backend_errors(f"load slots of device {pin}"):
            raw = self.db.realtime.get(slots_path(pin))

            if raw is None:
                slots = self._defaults()
                self.db.realtime.set(slots_path(pin), self._payload(slots))
                logger.info(f"Initialized {len(slots)} empty slots for device {pin}")
                return slots

        return self.parse_slots(raw)

    def watch_slots(
        self,
        pin: str,
        on_value: Optional[Callable[[List[Slot]], None]] = None,
    ) -> Subscription[List[Slot]]:
        """Stream the full sorted slot list on every change.

        Emissions for a missing slot map are skipped.
        """
        self._check_pin(pin)
        subscription: Subscription[List[Slot]] = Subscription(
            f"slots:{pin}", transform=self.parse_slots, on_value=on_value
        )

        def _on_raw(raw: Any) -> None:
            if raw is None:
                return
            subscription.deliver(raw)

        with backend_errors(f"watch slots of device {pin}"):
            subscription.attach(self.db.realtime.listen(slots_path(pin), _on_raw))
        return subscription

    def update_slot(
        self,
        pin: str,
        slot_number: int,
        medication_name: Optional[str],
        pill_count: int,
    ) -> Dict[str, Any]:
        """Assign a medication and pill count to a slot.

        Only medicationName, pillCount and lastRefilled are written; capacity
        and threshold keep their stored values.

        Returns:
            The fields written
        """
        self._check_pin(pin)
        if isinstance(slot_number, bool) or not isinstance(slot_number, int) or not 1 <= slot_number <= self.slot_count:
            raise ValidationError(f"Slot number must be between 1 and {self.slot_count}.", field="slotNumber")
        if isinstance(pill_count, bool) or not isinstance(pill_count, int):
            raise ValidationError("Pill count must be a whole number.", field="pillCount")
        if pill_count < 0:
            raise InvalidCountError(pill_count)

        name = medication_name.strip() if isinstance(medication_name, str) else None
        name = name or None

        fields = {
            "medicationName": name,
            "pillCount": pill_count,
            "lastRefilled": self.db.iso_now() if name else None,
        }
        with backend_errors(f"update slot {slot_number} of device {pin}"):
            self.db.realtime.update(f"{slots_path(pin)}/{slot_number}", fields)

        logger.info(f"Updated slot {slot_number} of device {pin}: {name or 'unassigned'} x{pill_count}")
        return fields

    def seed_slots(self, pin: str, reset: bool) -> List[int]:
        """Create slot entries for a freshly linked device.

        Args:
            pin: Device PIN
            reset: Overwrite every slot with defaults instead of only the
                missing ones

        Returns:
            Slot numbers that were written
        """
        self._check_pin(pin)
        defaults = self._defaults()

        with backend_errors(f"initialize slots of device {pin}"):
            if reset:
                self.db.realtime.set(slots_path(pin), self._payload(defaults))
                written = [slot.slotNumber for slot in defaults]
            else:
                raw = self.db.realtime.get(slots_path(pin))
                written = missing_slot_numbers(raw, self.slot_count)
                if written:
                    by_number = {slot.slotNumber: slot for slot in defaults}
                    self.db.realtime.update(
                        slots_path(pin),
                        self._payload([by_number[n] for n in written]),
                    )

        logger.info(f"Seeded slots {written} of device {pin} (reset={reset})")
        return written
