"""Medication name suggestions callable function."""

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
def get_suggestions_callable(req: https_fn.CallableRequest):
    """Suggest medication names for a partial query."""
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        db_auth_wrapper(req)

        limit = req.data.get("limit")
        result = SafetyService().get_suggestions(
            req.data.get("query") or "",
            limit if isinstance(limit, int) and limit > 0 else None,
        )
        return result.model_dump()

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Suggestions failed: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to get suggestions. Please try again later."
        )
