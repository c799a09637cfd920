"""Scheduled delivery of dose reminders."""

from typing import Any, Dict

from firebase_functions import scheduler_fn, options

from pillmate.config.loader import get_config_value, load_app_config
from pillmate.services.dispense_coordinator import DispenseCoordinator
from pillmate.services.notifier import PushNotifier
from pillmate.services.reminder_delivery import ReminderDelivery
from pillmate.services.safety_gate import SafetyGate
from pillmate.services.safety_service import SafetyService
from pillmate.services.schedule_service import ScheduleService
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

_config = load_app_config()
SCHEDULE = get_config_value("reminders.schedule", "every 1 minutes", _config)
TIMEZONE = get_config_value("reminders.timezone", "UTC", _config)


def build_delivery() -> ReminderDelivery:
    gate = SafetyGate(SafetyService())
    return ReminderDelivery(
        notifier=PushNotifier(),
        coordinator=DispenseCoordinator(gate),
        schedule=ScheduleService(gate),
    )


@scheduler_fn.on_schedule(
    schedule=SCHEDULE,
    timezone=TIMEZONE,
    memory=options.MemoryOption.MB_256,
    timeout_sec=60,
)
def fire_due_reminders(event: scheduler_fn.ScheduledEvent) -> Dict[str, Any]:
    """Push the reminders due this minute and run auto-dispense for their users.

    The scheduled time, not the wall clock, selects the due minute, so a
    retried run targets the same reminders and finds them already claimed.
    """
    try:
        outcomes = build_delivery().deliver(event.schedule_time)
        dispensed = sum(1 for outcome in outcomes.values() if outcome.dispensed)
        logger.info(f"Reminder run finished: {len(outcomes)} user(s), {dispensed} dispensed")
        return {"status": "success", "users": len(outcomes), "dispensed": dispensed}

    except Exception as e:
        logger.error(f"Reminder run failed: {e}")
        raise
