"""User document class."""

from datetime import datetime, timezone
from typing import List, Optional

from pillmate.documents.DocumentBase import DocumentBase
from pillmate.models.firestore_types import UserDoc, UserDeviceDoc
from pillmate.models.realtime_types import DeviceStatus
from pillmate.util.backend_errors import backend_errors
from pillmate.util.logger import get_logger

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(device: UserDeviceDoc):
    linked_at = device.linkedAt or _EPOCH
    if linked_at.tzinfo is None:
        linked_at = linked_at.replace(tzinfo=timezone.utc)
    return (linked_at, device.devicePIN)


class User(DocumentBase[UserDoc]):
    """User profile plus the user's linked-device records.

    A missing profile document is treated as an empty profile.
    """

    pydantic_model = UserDoc
    resource_type = "User"
    allow_missing = True

    def _resolve_collection(self):
        return self.db.collections["users"]

    @property
    def uid(self) -> str:
        return self.id

    def get_allergies(self) -> List[str]:
        return [a for a in (self.doc.allergies or []) if isinstance(a, str) and a.strip()]

    def get_fcm_tokens(self) -> List[str]:
        return list(self.doc.fcmTokens or [])

    def get_timezone(self) -> Optional[str]:
        return self.doc.timezone or None

    # Sticky dispense block, shared by every session of the user
    def get_dispense_block(self) -> Optional[str]:
        """Stored block warning, or None when dispensing is allowed."""
        if not self.doc.dispenseBlocked:
            return None
        return self.doc.safetyWarning or "This medication may cause an allergic reaction."

    def set_dispense_block(self, warning: str):
        self.merge_doc({"dispenseBlocked": True, "safetyWarning": warning})
        logger.warning(f"Stored dispense block for user {self.id}: {warning}")

    def clear_dispense_block(self):
        if not self.doc.dispenseBlocked:
            return
        self.merge_doc({"dispenseBlocked": False, "safetyWarning": ""})
        logger.info(f"Cleared dispense block for user {self.id}")

    def list_devices(self) -> List[UserDeviceDoc]:
        """Linked devices, earliest link first."""
        with backend_errors(f"list devices of user {self.id}"):
            snaps = self.db.collections["userDevices"](self.id).get()

        devices = []
        for snap in snaps:
            data = snap.to_dict() or {}
            data.setdefault("devicePIN", snap.id)
            devices.append(UserDeviceDoc(**data))
        return sorted(devices, key=_sort_key)

    def get_primary_device_pin(self) -> Optional[str]:
        """The explicit primary device, else the earliest-linked device."""
        if self.doc.primaryDevicePIN:
            return self.doc.primaryDevicePIN

        devices = self.list_devices()
        if not devices:
            return None
        return devices[0].devicePIN

    def set_primary_device(self, pin: str):
        self.merge_doc({"primaryDevicePIN": pin})
        logger.info(f"User {self.id} primary device set to {pin}")

    def record_device_link(self, pin: str, model: str, linked_at: datetime):
        """Write the denormalized link record; first device becomes primary."""
        record = UserDeviceDoc(
            devicePIN=pin,
            status=DeviceStatus.LINKED.value,
            linkedAt=linked_at,
            model=model,
        )
        with backend_errors(f"save device link {pin}"):
            self.db.collections["userDevices"](self.id).document(pin).set(
                record.model_dump(), merge=True
            )

        if not self.doc.primaryDevicePIN:
            self.set_primary_device(pin)

        logger.info(f"Recorded link of device {pin} for user {self.id}")
