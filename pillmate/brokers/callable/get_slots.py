"""Get slots callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
from pillmate.models.function_types import GetSlotsResponse
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
def get_slots_callable(req: https_fn.CallableRequest) -> GetSlotsResponse:
    """Read the seven slots of the caller's device, or of a given PIN the caller owns."""
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        session = db_auth_wrapper(req)
        if req.data.get("pin"):
            session.device_pin = str(req.data["pin"])
        pin = resolve_device_pin(session)

        store = SlotInventoryStore()
        slots = store.load_slots(pin)

        return GetSlotsResponse(
            success=True,
            pin=pin,
            slots=[{**slot.model_dump(), "status": slot.status.value} for slot in slots],
        )

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Failed to load slots: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to load slots. Please try again later."
        )
