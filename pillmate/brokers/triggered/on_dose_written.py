"""Trigger function for schedule changes."""

from firebase_functions import firestore_fn

from pillmate.documents.users.User import User
from pillmate.services.reminder_scheduler import FirestoreReminderBackend, ReminderScheduler
from pillmate.services.safety_gate import SafetyGate
from pillmate.services.safety_service import SafetyService
from pillmate.services.schedule_service import ScheduleService
from pillmate.services.session import Session
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


def handle_dose_written(uid: str, schedule: ScheduleService, scheduler: ReminderScheduler) -> int:
    """Re-derive all reminders of ``uid`` from the current schedule.

    Returns:
        Number of reminders scheduled
    """
    doses = schedule.list_doses(Session(uid=uid))
    handles = scheduler.apply(doses)
    logger.info(f"Rescheduled {len(handles)} reminder(s) for user {uid}")
    return len(handles)


@firestore_fn.on_document_written(
    document="users/{uid}/schedule/{doseId}",
    timeout_sec=60,
)
def on_dose_written(event: firestore_fn.Event[firestore_fn.Change[firestore_fn.DocumentSnapshot]]):
    """Handle create, update and delete of schedule entries.

    Args:
        event: Firestore document write event
    """
    try:
        uid = event.params["uid"]
        logger.info(f"Schedule entry {event.params.get('doseId')} of user {uid} changed")

        handle_dose_written(
            uid,
            ScheduleService(SafetyGate(SafetyService())),
            ReminderScheduler(FirestoreReminderBackend(uid, timezone=User(uid).get_timezone())),
        )

    except Exception as e:
        logger.error(f"Error rescheduling reminders: {e}")
        raise
