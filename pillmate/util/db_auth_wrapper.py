"""Database authentication wrapper utility."""

from firebase_functions import https_fn
from pillmate.apis.Db import Db
from pillmate.services.session import Session
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


def db_auth_wrapper(req: https_fn.CallableRequest) -> Session:
    """Build the caller's session from a Firebase callable request.

    Args:
        req: Firebase callable request object

    Returns:
        Authenticated session for the caller

    Raises:
        HttpsError: If authentication fails (not in emulator/dev mode)
    """
    # Skip authentication when running in development/emulator
    if Db.is_development():
        # Tests identify the caller with a User-Id header
        if getattr(req, "raw_request", None) is not None and req.raw_request.headers:
            user_id = req.raw_request.headers.get("User-Id")
            if user_id:
                return Session(uid=user_id)
        return Session(uid="test-user-id")

    if not req.auth:
        logger.warning("Unauthenticated request")
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.UNAUTHENTICATED,
            "The function must be called while authenticated."
        )

    token = req.auth.token or {}
    return Session(uid=req.auth.uid, email=token.get("email"))
