"""Link device callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
from pillmate.models.function_types import LinkDeviceResponse
from pillmate.services.pairing_registry import PairingRegistry
from pillmate.util.db_auth_wrapper import db_auth_wrapper
from pillmate.util.cors_response import cors_response_on_call
from pillmate.util.https_errors import to_https_error
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


@https_fn.on_call(
    cors=options.CorsOptions(cors_origins=["*"]),
    ingress=options.IngressSetting.ALLOW_ALL,
)
def link_device_callable(req: https_fn.CallableRequest) -> LinkDeviceResponse:
    """Link the device showing ``pin`` to the caller's account.

    Args:
        req: Firebase callable request containing LinkDeviceRequest data

    Returns:
        LinkDeviceResponse with the link outcome
    """
    # Handle CORS preflight
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        session = db_auth_wrapper(req)

        pin = req.data.get("pin")
        if not pin:
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                "Please enter a 6-digit PIN."
            )

        result = PairingRegistry().link_device(session, str(pin))

        return LinkDeviceResponse(
            success=True,
            pin=result.pin,
            alreadyLinked=result.already_linked,
            message=result.message,
        )

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        logger.warning(f"Link device failed: {e.message}")
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Failed to link device: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to link device. Please try again later."
        )
