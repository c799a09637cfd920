"""Dispense callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
from pillmate.models.function_types import CommandResponse
from pillmate.services.dispense_coordinator import DispenseCoordinator
from pillmate.services.safety_gate import SafetyGate
from pillmate.services.safety_service import SafetyService
from pillmate.services.schedule_service import ScheduleService
from pillmate.util.db_auth_wrapper import db_auth_wrapper
from pillmate.util.cors_response import cors_response_on_call
from pillmate.util.https_errors import to_https_error
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


@https_fn.on_call(
    cors=options.CorsOptions(cors_origins=["*"]),
    ingress=options.IngressSetting.ALLOW_ALL,
)
def dispense_callable(req: https_fn.CallableRequest) -> CommandResponse:
    """Dispense the caller's next dose now, after the allergy check.

    A ``pin`` in the request must name a device the caller owns; the sticky
    dispense block is read from the caller's profile.
    """
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        session = db_auth_wrapper(req)
        if req.data.get("pin"):
            session.device_pin = str(req.data["pin"])

        gate = SafetyGate(SafetyService())
        doses = ScheduleService(gate).list_doses(session)
        pin = DispenseCoordinator(gate).manual_dispense(session, doses)

        logger.info(f"Dispense requested by user {session.uid} on device {pin}")
        return CommandResponse(success=True, message="The device will dispense a dose now.")

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Failed to dispense: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Could not trigger dispense. Make sure the device is online."
        )
