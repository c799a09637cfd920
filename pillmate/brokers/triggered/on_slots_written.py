"""Trigger function for device slot writes."""

from firebase_functions import db_fn

from pillmate.services.inventory_watcher import SlotChangeAlerter
from pillmate.services.notifier import PushNotifier
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


@db_fn.on_value_written(
    reference="devices/{pin}/slots",
    timeout_sec=60,
)
def on_slots_written(event: db_fn.Event[db_fn.Change[object]]):
    """Send low and empty stock alerts to the device owner.

    Args:
        event: Realtime Database write event with the slots before and after
    """
    try:
        pin = event.params["pin"]
        body = SlotChangeAlerter(PushNotifier()).handle(pin, event.data.before, event.data.after)
        if body:
            logger.info(f"Stock alert sent for device {pin}")

    except Exception as e:
        logger.error(f"Error processing slot change: {e}")
        raise
