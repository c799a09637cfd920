"""Push notifications to a user's registered devices via FCM."""

from typing import Dict, Optional

from firebase_admin import messaging

from pillmate.apis.Db import Db
from pillmate.documents.users.User import User
from pillmate.exceptions import ExternalServiceError
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger

logger = get_logger(__name__)


class PushNotifier:
    """Sends a multicast message to every FCM token of a user."""

    def __init__(self, db: Optional[Db] = None, app=None):
        self.db = db or Db.get_instance()
        self.app = app

    def notify(self, uid: str, title: str, body: str, data: Optional[Dict[str, str]] = None) -> int:
        """Send a notification to the user.

        Returns:
            Number of tokens the message was delivered to
        """
        tokens = User(uid, db=self.db).get_fcm_tokens()
        if not tokens:
            logger.info(f"No push tokens registered for user {uid}, skipping '{title}'")
            return 0

        message = messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=title, body=body),
            data=data or {},
            android=messaging.AndroidConfig(priority="high"),
        )

        with backend_errors(f"send notification to user {uid}"):
            response = messaging.send_each_for_multicast(message, app=self.app)

        if response.failure_count and not response.success_count:
            raise ExternalServiceError("fcm", f"All {response.failure_count} push deliveries failed for user {uid}")
        if response.failure_count:
            logger.warning(f"{response.failure_count} of {len(tokens)} push deliveries failed for user {uid}")

        logger.info(f"Sent '{title}' to {response.success_count} device(s) of user {uid}")
        return response.success_count
