"""Low and empty stock alerts for a device's slots."""

import threading
from typing import Any, List, Optional, Protocol, Set, Tuple

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.exceptions import PillMateError
from pillmate.models.realtime_types import Slot, SlotStatus
from pillmate.services.slot_inventory import SlotInventoryStore, device_path
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger
from pillmate.util.subscription import Subscription

logger = get_logger(__name__)

MAX_LISTED_ALERTS = 3

AlertKey = Tuple[int, SlotStatus]


class Notifier(Protocol):
    def notify(self, uid: str, title: str, body: str) -> int: ...


def slot_alert_message(slot: Slot) -> Optional[str]:
    status = slot.status
    if status == SlotStatus.EMPTY:
        return f"Slot {slot.slotNumber} ({slot.medicationName}) is empty! Please refill."
    if status == SlotStatus.LOW:
        return (
            f"Slot {slot.slotNumber} ({slot.medicationName}) is low! "
            f"Only {slot.pillCount} pills remaining. Please refill soon."
        )
    return None


def summarize_alerts(messages: List[str]) -> str:
    """One message verbatim; several as a count plus the first few."""
    if len(messages) == 1:
        return messages[0]

    body = f"{len(messages)} slots need attention:\n" + "\n".join(messages[:MAX_LISTED_ALERTS])
    if len(messages) > MAX_LISTED_ALERTS:
        body += f"\n...and {len(messages) - MAX_LISTED_ALERTS} more"
    return body


class InventoryWatcher:
    """Watches one device's slots and notifies its owner of low stock.

    Each (slot, status) pair alerts once until the slot is refilled above its
    threshold. While a dispatch is in flight, and for a short cooldown after
    it, further alerts are dropped rather than queued.
    """

    def __init__(
        self,
        uid: str,
        pin: str,
        notifier: Notifier,
        slots: Optional[SlotInventoryStore] = None,
        db: Optional[Db] = None,
        config: Optional[AppConfig] = None,
    ):
        config = config if config is not None else load_app_config()
        self.uid = uid
        self.pin = pin
        self.notifier = notifier
        self.slots = slots or SlotInventoryStore(db, config)
        self.cooldown_sec = get_config_value("notifications.dispatch_cooldown_sec", 2, config)
        self.title_single = get_config_value("notifications.alert_title_single", "Device Pill Alert", config)
        self.title_multiple = get_config_value(
            "notifications.alert_title_multiple", "Device Pills Running Low", config
        )

        self.notified: Set[AlertKey] = set()
        self._lock = threading.Lock()
        self._dispatching = False
        self._cooldown_timer: Optional[threading.Timer] = None
        self._subscription: Optional[Subscription[List[Slot]]] = None

    def start(self) -> Subscription[List[Slot]]:
        if self._subscription is None or self._subscription.cancelled:
            self._subscription = self.slots.watch_slots(self.pin, on_value=self.process)
            logger.info(f"Watching slots of device {self.pin} for user {self.uid}")
        return self._subscription

    def stop(self):
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        with self._lock:
            if self._cooldown_timer is not None:
                self._cooldown_timer.cancel()
                self._cooldown_timer = None
            self._dispatching = False

    def collect_alerts(self, slots: List[Slot]) -> List[str]:
        """Messages for newly low or empty slots; re-arms refilled slots."""
        messages = []
        for slot in slots:
            if not slot.medicationName:
                continue

            status = slot.status
            if status == SlotStatus.OK:
                self.notified.discard((slot.slotNumber, SlotStatus.EMPTY))
                self.notified.discard((slot.slotNumber, SlotStatus.LOW))
                continue

            key = (slot.slotNumber, status)
            if key in self.notified:
                continue
            self.notified.add(key)
            messages.append(slot_alert_message(slot))
        return messages

    def process(self, slots: List[Slot]) -> Optional[str]:
        """Handle one slot snapshot.

        Returns:
            The notification body if one was dispatched
        """
        messages = self.collect_alerts(slots)
        if not messages:
            return None

        with self._lock:
            if self._dispatching:
                logger.debug(f"Dropping {len(messages)} alert(s) for device {self.pin}, dispatch in progress")
                return None
            self._dispatching = True

        title = self.title_single if len(messages) == 1 else self.title_multiple
        body = summarize_alerts(messages)
        try:
            self.notifier.notify(self.uid, title, body)
        except PillMateError as e:
            logger.warning(f"Failed to send stock alert for device {self.pin}: {e.message}")
        finally:
            self._schedule_release()
        return body

    def _schedule_release(self):
        if self.cooldown_sec <= 0:
            self._release()
            return
        timer = threading.Timer(self.cooldown_sec, self._release)
        timer.daemon = True
        with self._lock:
            self._cooldown_timer = timer
        timer.start()

    def _release(self):
        with self._lock:
            self._dispatching = False
            self._cooldown_timer = None


def transition_alerts(before: List[Slot], after: List[Slot]) -> List[str]:
    """Messages for slots that became low or empty between two snapshots.

    A slot alerts only when its status differs from the earlier snapshot, so
    a write that leaves an already-low slot low stays silent.
    """
    previous = {slot.slotNumber: slot for slot in before}
    messages = []
    for slot in after:
        if not slot.medicationName:
            continue
        status = slot.status
        if status == SlotStatus.OK:
            continue
        old = previous.get(slot.slotNumber)
        if old is not None and old.medicationName and old.status == status:
            continue
        messages.append(slot_alert_message(slot))
    return messages


class SlotChangeAlerter:
    """Stock alerts for one slot write, without in-process state.

    Driven by the slots write trigger: each invocation compares the value
    before and after the write and notifies the device owner.
    """

    def __init__(
        self,
        notifier: Notifier,
        slots: Optional[SlotInventoryStore] = None,
        db: Optional[Db] = None,
        config: Optional[AppConfig] = None,
    ):
        config = config if config is not None else load_app_config()
        self.notifier = notifier
        self.db = db or Db.get_instance()
        self.slots = slots or SlotInventoryStore(self.db, config)
        self.title_single = get_config_value("notifications.alert_title_single", "Device Pill Alert", config)
        self.title_multiple = get_config_value(
            "notifications.alert_title_multiple", "Device Pills Running Low", config
        )

    def owner_of(self, pin: str) -> Optional[str]:
        with backend_errors(f"read owner of device {pin}"):
            owner = self.db.realtime.get(f"{device_path(pin)}/ownerUid")
        return owner or None

    def handle(self, pin: str, before_raw: Any, after_raw: Any) -> Optional[str]:
        """Notify the owner of ``pin`` about slots that just ran low.

        Returns:
            The notification body if one was sent
        """
        if after_raw is None:
            return None

        messages = transition_alerts(self.slots.parse_slots(before_raw), self.slots.parse_slots(after_raw))
        if not messages:
            return None

        try:
            uid = self.owner_of(pin)
        except PillMateError as e:
            logger.warning(f"Could not resolve owner of device {pin}: {e.message}")
            return None
        if not uid:
            logger.info(f"Device {pin} has no owner, skipping {len(messages)} stock alert(s)")
            return None

        title = self.title_single if len(messages) == 1 else self.title_multiple
        body = summarize_alerts(messages)
        try:
            self.notifier.notify(uid, title, body)
        except PillMateError as e:
            logger.warning(f"Failed to send stock alert for device {pin}: {e.message}")
        return body
