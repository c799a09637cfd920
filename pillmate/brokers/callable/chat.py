"""Medication assistant chat callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
from pillmate.models.function_types import ChatResponse
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
def chat_callable(req: https_fn.CallableRequest) -> ChatResponse:
    """Answer a medication question in the context of the conversation so far."""
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        session = db_auth_wrapper(req)

        medications = req.data.get("userMedications") or []
        reply = SafetyService().chat(
            req.data.get("messages"),
            medications if isinstance(medications, list) else [],
        )
        logger.info(f"Chat reply sent to user {session.uid}")
        return ChatResponse(success=True, response=reply)

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Chat failed: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to get AI response. Please try again later."
        )
