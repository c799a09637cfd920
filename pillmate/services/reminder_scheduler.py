"""Daily dose reminders derived from a user's schedule."""

import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union, runtime_checkable

from pillmate.apis.Db import Db
from pillmate.config.loader import AppConfig, get_config_value, load_app_config
from pillmate.exceptions import ValidationError
from pillmate.models.firestore_types import DoseDoc, ReminderDoc
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

DEFAULT_REMINDER_TITLE = "Time to take your dose"

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")

DoseLike = Union[DoseDoc, Dict[str, Any]]


def parse_hhmm(time: str) -> Tuple[int, int]:
    """Split ``HH:MM`` into hour and minute.

    Raises:
        ValidationError: Malformed or out-of-range time
    """
    match = _HHMM.match(time.strip()) if isinstance(time, str) else None
    if not match:
        raise ValidationError(f"Invalid time format: {time}", field="time")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(f"Invalid time format: {time}", field="time")
    return hour, minute


def format_hhmm(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


@dataclass(frozen=True)
class ReminderSpec:
    title: str
    body: str
    hour: int
    minute: int
    dose_id: Optional[str] = None


class ReminderBackend(Protocol):
    def schedule_daily(self, title: str, body: str, hour: int, minute: int, dose_id: Optional[str] = None) -> Any: ...

    def cancel_all(self) -> None: ...


@runtime_checkable
class AtomicReminderBackend(ReminderBackend, Protocol):
    def replace_all(self, specs: List[ReminderSpec]) -> List[Any]: ...


class ReminderPlanner:
    """Turns schedule entries into one daily reminder per enabled dose."""

    def __init__(self, title: str = DEFAULT_REMINDER_TITLE):
        self.title = title

    @staticmethod
    def body_for(dose: DoseDoc) -> str:
        return f"{dose.medName} • {dose.dose}" if dose.dose else dose.medName

    def plan(self, doses: Iterable[DoseLike]) -> List[ReminderSpec]:
        specs = []
        for dose in doses:
            if isinstance(dose, dict):
                dose = DoseDoc(**dose)
            if not dose.enabled:
                continue
            try:
                hour, minute = parse_hhmm(dose.time)
            except ValidationError:
                logger.warning(f"Skipping reminder for dose {dose.id} with invalid time {dose.time!r}")
                continue
            specs.append(ReminderSpec(self.title, self.body_for(dose), hour, minute, dose.id))
        return specs


class ReminderScheduler:
    """Re-derives all reminders whenever the schedule changes.

    ``apply`` replaces the reminders immediately, in a single batch when the
    backend supports it. ``schedule_changed`` is debounced within one process:
    only the last call within the debounce window is applied.
    """

    def __init__(
        self,
        backend: ReminderBackend,
        planner: Optional[ReminderPlanner] = None,
        config: Optional[AppConfig] = None,
    ):
        config = config if config is not None else load_app_config()
        self.backend = backend
        self.planner = planner or ReminderPlanner(
            get_config_value("notifications.reminder_title", DEFAULT_REMINDER_TITLE, config)
        )
        self.debounce_sec = get_config_value("notifications.schedule_debounce_sec", 1, config)
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def apply(self, doses: Iterable[DoseLike]) -> List[Any]:
        specs = self.planner.plan(doses)
        if isinstance(self.backend, AtomicReminderBackend):
            handles = self.backend.replace_all(specs)
        else:
            self.backend.cancel_all()
            handles = [
                self.backend.schedule_daily(spec.title, spec.body, spec.hour, spec.minute, spec.dose_id)
                for spec in specs
            ]
        logger.info(f"Scheduled {len(handles)} daily reminder(s)")
        return handles

    def schedule_changed(self, doses: Iterable[DoseLike]):
        doses = list(doses)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_sec, self._apply_pending, args=(doses,))
            self._timer.daemon = True
            self._timer.start()

    def _apply_pending(self, doses: List[DoseLike]):
        with self._lock:
            self._timer = None
        try:
            self.apply(doses)
        except Exception as e:
            # Runs on a timer thread; nothing above it to report to
            logger.error(f"Failed to reschedule reminders: {e}")

    def cancel_pending(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class FirestoreReminderBackend:
    """Reminders persisted at ``users/{uid}/reminders`` for server-side delivery.

    A reminder's document id is its dose id, so rescheduling the same dose
    overwrites rather than adds. ``timezone`` is stored on every reminder so
    the delivery sweep can match it against the user's local clock.
    """

    def __init__(self, uid: str, db: Optional[Db] = None, timezone: Optional[str] = None):
        self.uid = uid
        self.db = db or Db.get_instance()
        self.timezone = timezone

    def _collection(self):
        return self.db.collections["userReminders"](self.uid)

    @staticmethod
    def reminder_id(hour: int, minute: int, dose_id: Optional[str] = None) -> str:
        return dose_id or f"{hour:02d}{minute:02d}"

    def _reminder(self, reminder_id: str, spec: ReminderSpec) -> Dict[str, Any]:
        return ReminderDoc(
            id=reminder_id,
            uid=self.uid,
            doseId=spec.dose_id,
            title=spec.title,
            body=spec.body,
            hour=spec.hour,
            minute=spec.minute,
            time=format_hhmm(spec.hour, spec.minute),
            timezone=self.timezone,
            createdAt=self.db.get_created_at(),
        ).model_dump()

    def schedule_daily(self, title: str, body: str, hour: int, minute: int, dose_id: Optional[str] = None) -> str:
        reminder_id = self.reminder_id(hour, minute, dose_id)
        spec = ReminderSpec(title, body, hour, minute, dose_id)
        with backend_errors(f"schedule reminder for user {self.uid}"):
            self._collection().document(reminder_id).set(self._reminder(reminder_id, spec))
        return reminder_id

    def cancel_all(self) -> None:
        with backend_errors(f"cancel reminders of user {self.uid}"):
            for snap in self._collection().get():
                snap.reference.delete()

    def replace_all(self, specs: List[ReminderSpec]) -> List[str]:
        """Write ``specs`` and delete every other reminder in one batch."""
        collection = self._collection()
        wanted = {self.reminder_id(spec.hour, spec.minute, spec.dose_id): spec for spec in specs}

        with backend_errors(f"replace reminders of user {self.uid}"):
            batch = self.db.firestore.batch()
            for snap in collection.get():
                if snap.id not in wanted:
                    batch.delete(snap.reference)
            for reminder_id, spec in wanted.items():
                batch.set(collection.document(reminder_id), self._reminder(reminder_id, spec))
            batch.commit()
        return list(wanted)
