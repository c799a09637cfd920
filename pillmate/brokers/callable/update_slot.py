"""Update slot callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
from pillmate.models.function_types import CommandResponse
from pillmate.services.dispense_coordinator import resolve_device_pin
from pillmate.services.slot_inventory import SlotInventoryStore
from pillmate.util.db_auth_wrapper import db_auth_wrapper
from pillmate.util.cors_response import cors_response_on_call
from pillmate.util.https_errors import to_https_error
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


@https_fn.on_call(
    cors=options.CorsOptions(cors_origins=["*"]),
    ingress=options.IngressSetting.ALLOW_ALL,
)
def update_slot_callable(req: https_fn.CallableRequest) -> CommandResponse:
    """Assign a medication and pill count to one slot.

    Args:
        req: Firebase callable request containing UpdateSlotRequest data

    Returns:
        CommandResponse
    """
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        session = db_auth_wrapper(req)

        slot_number = req.data.get("slotNumber")
        pill_count = req.data.get("pillCount")
        if slot_number is None or pill_count is None:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                "Slot number and pill count are required"
            )

        if req.data.get("pin"):
            session.device_pin = str(req.data["pin"])
        pin = resolve_device_pin(session)
        SlotInventoryStore().update_slot(
            pin,
            slot_number,
            req.data.get("medicationName"),
            pill_count,
        )

        return CommandResponse(success=True, message=f"Slot {slot_number} updated successfully!")

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Failed to update slot: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to update slot. Please try again later."
        )
