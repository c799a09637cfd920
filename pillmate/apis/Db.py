"""Firebase access point shared by every service."""

import os
import time
from abc import ABC
from datetime import datetime, timezone
from typing import Any, Dict

from firebase_admin import firestore
from google.cloud import secretmanager

from pillmate.apis.RealtimeStore import RealtimeStore
from pillmate.util.logger import get_logger


class Db(ABC):
    """Firestore client, Realtime Database store and collection map.

    Singleton per class; services accept any object with the same
    ``realtime`` and ``collections`` attributes.
    """
    _instances: Dict[str, Any] = {}
    _gcp_secret_client = None

    collections: Dict[str, Any] = {}

    def __new__(cls, *args, **kwargs):
        if cls.__name__ not in cls._instances:
            cls._instances[cls.__name__] = super().__new__(cls)
        return cls._instances[cls.__name__]

    def __init__(self):
        # Singleton: clients are created on first construction only
        if hasattr(self, "_initialized"):
            return

        self.logger = get_logger("pillmate.db")
        self.firestore = firestore.client()
        # URL from the app options (databaseURL), else FIREBASE_DATABASE_URL
        self.realtime = RealtimeStore(url=os.getenv("FIREBASE_DATABASE_URL") or None)
        self._init_collections()
        self.logger.info("Firestore and Realtime Database clients ready")
        self._initialized = True

    def _init_collections(self):
        self.collections = {
            "users": self.firestore.collection("users"),
            "userDevices": lambda uid: self.firestore.collection(f"users/{uid}/devices"),
            "userSchedule": lambda uid: self.firestore.collection(f"users/{uid}/schedule"),
            "userReminders": lambda uid: self.firestore.collection(f"users/{uid}/reminders"),
            # Claimed reminder deliveries, one per local date and time
            "userDeliveries": lambda uid: self.firestore.collection(f"users/{uid}/deliveries"),
            # Reminders of all users, for the due-reminder sweep
            "reminders": lambda: self.firestore.collection_group("reminders"),
        }

    @classmethod
    def get_instance(cls):
        return cls()

    @staticmethod
    def is_production():
        return os.getenv("ENV") == "production"

    @staticmethod
    def is_development():
        return os.getenv("ENV") == "development"

    @staticmethod
    def get_secret(secret_id: str) -> str:
        """Latest version of a Secret Manager secret of this project.

        The project is identified by GCLOUD_PROJECT_NUMBER.
        """
        if not Db._gcp_secret_client:
            Db._gcp_secret_client = secretmanager.SecretManagerServiceClient()

        project_num = os.environ.get("GCLOUD_PROJECT_NUMBER")
        version = Db._gcp_secret_client.access_secret_version(
            request={"name": f"projects/{project_num}/secrets/{secret_id}/versions/latest"}
        )
        return version.payload.data.decode("utf-8")

    @staticmethod
    def timestamp_now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def get_created_at() -> datetime:
        """``createdAt`` value for new Firestore documents."""
        return datetime.now(timezone.utc)

    @staticmethod
    def iso_now() -> str:
        """ISO-8601 UTC timestamp as stored in the Realtime Database."""
        return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    @staticmethod
    def now_ms() -> int:
        """Epoch milliseconds, the unit of device command timestamps."""
        return int(time.time() * 1000)
