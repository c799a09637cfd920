"""Server-side delivery of due reminders, followed by auto-dispense."""

from datetime import datetime, tzinfo
from typing import Dict, List, Optional

import pytz
from google.api_core import exceptions as gcp_exceptions

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.exceptions import PillMateError
from pillmate.models.firestore_types import ReminderDoc
from pillmate.services.dispense_coordinator import DispenseCoordinator, DispenseOutcome
from pillmate.services.inventory_watcher import Notifier
from pillmate.services.reminder_scheduler import format_hhmm
from pillmate.services.schedule_service import ScheduleService
from pillmate.services.session import Session
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

# UTC offsets are whole quarter hours, so a local minute is one of four UTC minutes
_OFFSET_STEP_MIN = 15


def resolve_timezone(name: Optional[str], default: tzinfo) -> tzinfo:
    """pytz zone for an IANA name; unknown or missing names fall back to ``default``."""
    if not name:
        return default
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone {name!r}, using {default}")
        return default


class ReminderDelivery:
    """Finds reminders due this minute, pushes them, and triggers the device.

    Each reminder carries its user's timezone; reminders without one use
    ``reminders.timezone``. A user is served at most once per local date and
    minute: the first run claims ``users/{uid}/deliveries/{date}T{HHMM}`` and
    overlapping or retried runs skip that user.
    """

    def __init__(
        self,
        notifier: Notifier,
        coordinator: DispenseCoordinator,
        schedule: ScheduleService,
        db: Optional[Db] = None,
        config: Optional[AppConfig] = None,
    ):
        config = config if config is not None else load_app_config()
        self.notifier = notifier
        self.coordinator = coordinator
        self.schedule = schedule
        self.db = db or Db.get_instance()
        self.tz = resolve_timezone(get_config_value("reminders.timezone", "UTC", config), pytz.utc)

    @staticmethod
    def _utc(now: Optional[datetime]) -> datetime:
        now = now or datetime.now(pytz.utc)
        if now.tzinfo is None:
            now = pytz.utc.localize(now)
        return now

    def local_datetime(self, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> datetime:
        return self._utc(now).astimezone(tz or self.tz)

    def local_time(self, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
        local = self.local_datetime(now, tz)
        return format_hhmm(local.hour, local.minute)

    def reminder_timezone(self, reminder: ReminderDoc) -> tzinfo:
        return resolve_timezone(reminder.timezone, self.tz)

    def due_reminders(self, now: Optional[datetime] = None) -> List[ReminderDoc]:
        """Reminders whose time equals the current time in their own timezone."""
        now = self._utc(now)
        minutes = sorted({(now.minute + _OFFSET_STEP_MIN * k) % 60 for k in range(60 // _OFFSET_STEP_MIN)})
        with backend_errors(f"query reminders due at {now.isoformat()}"):
            snaps = self.db.collections["reminders"]().where("minute", "in", minutes).stream()
            candidates = [ReminderDoc(**{**(snap.to_dict() or {}), "id": snap.id}) for snap in snaps]

        return [
            reminder for reminder in candidates
            if self.local_time(now, self.reminder_timezone(reminder)) == reminder.time
        ]

    def claim(self, uid: str, local: datetime) -> bool:
        """Record that ``uid`` is being served for ``local``'s date and minute.

        Returns:
            False if another run already claimed it
        """
        key = local.strftime("%Y-%m-%dT%H%M")
        doc_ref = self.db.collections["userDeliveries"](uid).document(key)
        with backend_errors(f"claim reminder delivery {key} for user {uid}"):
            try:
                doc_ref.create({"uid": uid, "localTime": format_hhmm(local.hour, local.minute),
                                "claimedAt": self.db.get_created_at()})
            except gcp_exceptions.AlreadyExists:
                return False
        return True

    def deliver(self, now: Optional[datetime] = None) -> Dict[str, DispenseOutcome]:
        """Push every due reminder, then auto-dispense once per user.

        Returns:
            Auto-dispense outcome per user id served by this run
        """
        now = self._utc(now)
        by_user: Dict[str, List[ReminderDoc]] = {}
        for reminder in self.due_reminders(now):
            by_user.setdefault(reminder.uid, []).append(reminder)

        outcomes = {}
        for uid, reminders in by_user.items():
            local = self.local_datetime(now, self.reminder_timezone(reminders[0]))
            try:
                if not self.claim(uid, local):
                    logger.info(f"Reminders of user {uid} at {local:%H:%M} already delivered, skipping")
                    continue
            except PillMateError as e:
                logger.error(f"Could not claim reminder delivery for user {uid}: {e.message}")
                continue

            for reminder in reminders:
                try:
                    self.notifier.notify(uid, reminder.title, reminder.body)
                except PillMateError as e:
                    logger.error(f"Failed to push reminder {reminder.id} to user {uid}: {e.message}")

            session = Session(uid=uid)
            try:
                doses = self.schedule.list_doses(session)
            except PillMateError as e:
                logger.error(f"Could not load schedule of user {uid}: {e.message}")
                doses = []
            outcomes[uid] = self.coordinator.auto_dispense(session, doses)

        logger.info(f"Delivered reminders to {len(outcomes)} user(s)")
        return outcomes
