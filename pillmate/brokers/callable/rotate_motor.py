"""Rotate motor callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
from pillmate.models.function_types import CommandResponse
from pillmate.services.dispense_coordinator import DispenseCoordinator
from pillmate.services.safety_gate import SafetyGate
from pillmate.services.safety_service import SafetyService
from pillmate.util.db_auth_wrapper import db_auth_wrapper
from pillmate.util.cors_response import cors_response_on_call
from pillmate.util.https_errors import to_https_error
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


@https_fn.on_call(
    cors=options.CorsOptions(cors_origins=["*"]),
    ingress=options.IngressSetting.ALLOW_ALL,
)
def rotate_motor_callable(req: https_fn.CallableRequest) -> CommandResponse:
    """Send a motor rotation to the caller's primary device."""
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        session = db_auth_wrapper(req)

        coordinator = DispenseCoordinator(SafetyGate(SafetyService()))
        angle = req.data.get("angle", coordinator.motor_step)
        if isinstance(angle, bool) or not isinstance(angle, int):
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                "Angle must be a whole number of degrees"
            )

        coordinator.rotate(session, angle)
        return CommandResponse(success=True, message=f"Motor rotation of {angle} degrees sent.")

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Failed to rotate motor: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to rotate motor. Please try again later."
        )
