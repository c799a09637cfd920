"""Drug interaction check callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
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
def check_interaction_callable(req: https_fn.CallableRequest):
    """Check whether two medications can be taken together."""
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        db_auth_wrapper(req)

        result = SafetyService().check_interaction(
            req.data.get("medication1") or "",
            req.data.get("medication2") or "",
            req.data.get("medication1Time"),
            req.data.get("medication2Time"),
        )
        return result.model_dump(exclude={"degraded"})

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Interaction check failed: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to check interactions. Please try again later."
        )
