"""Health check HTTP endpoint."""

from firebase_functions import https_fn, options
from pillmate.apis.Db import Db
from pillmate.util.cors_response import preflight_response, create_cors_response
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


@https_fn.on_request(
    ingress=options.IngressSetting.ALLOW_ALL,
    timeout_sec=30,
)
def health_check(req: https_fn.Request):
    """Health check endpoint for monitoring.

    Probes Firestore and the Realtime Database.

    Args:
        req: Firebase HTTP request

    Returns:
        Health status response
    """
    preflight = preflight_response(req, ["GET", "OPTIONS"])
    if preflight is not None:
        return preflight

    try:
        db = Db.get_instance()

        firestore_status = "healthy"
        try:
            db.firestore.collection("_health_check").limit(1).get()
        except Exception as e:
            logger.error(f"Firestore health check failed: {e}")
            firestore_status = "unhealthy"

        realtime_status = "healthy"
        try:
            db.realtime.reference(".info/serverTimeOffset").get()
        except Exception as e:
            logger.error(f"Realtime Database health check failed: {e}")
            realtime_status = "unhealthy"

        healthy = firestore_status == "healthy" and realtime_status == "healthy"
        response_data = {
            "status": "healthy" if healthy else "degraded",
            "timestamp": db.timestamp_now().isoformat(),
            "environment": "production" if db.is_production() else "development",
            "services": {
                "firestore": firestore_status,
                "realtimeDatabase": realtime_status,
                "functions": "healthy",
            },
        }

        logger.info(f"Health check: {response_data['status']}")
        return create_cors_response(response_data, 200 if healthy else 503)

    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return create_cors_response({"status": "unhealthy", "error": str(e)}, status=503)
