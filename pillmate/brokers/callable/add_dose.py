"""Add dose callable function."""

from firebase_functions import https_fn, options
from pillmate.exceptions import PillMateError
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
def add_dose_callable(req: https_fn.CallableRequest):
    """Add a medication to the caller's schedule after the safety checks.

    Non-blocking warnings are returned with ``added: False`` unless the
    request already carries ``acknowledgeWarnings: true``.
    """
    options_response = cors_response_on_call(req.raw_request)
    if options_response:
        return options_response

    try:
        session = db_auth_wrapper(req)
        acknowledged = bool(req.data.get("acknowledgeWarnings"))
        warnings = []

        def confirm(title: str, message: str) -> bool:
            warnings.append({"title": title, "message": message})
            return acknowledged

        service = ScheduleService(SafetyGate(SafetyService()))
        dose = service.add_dose(
            session,
            req.data.get("medName") or "",
            req.data.get("dose"),
            req.data.get("time") or "",
            confirm=confirm,
        )

        if dose is None:
            return {"success": True, "added": False, "warnings": warnings}

        logger.info(f"Dose {dose.id} added for user {session.uid}")
        return {"success": True, "added": True, "doseId": dose.id, "warnings": warnings}

    except https_fn.HttpsError:
        raise
    except PillMateError as e:
        raise to_https_error(e)
    except Exception as e:
        logger.error(f"Failed to add dose: {e}")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INTERNAL,
            "Failed to add medication. Please try again later."
        )
