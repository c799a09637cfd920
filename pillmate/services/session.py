"""Explicit per-user session context passed into every core operation."""

import threading
from typing import Optional

from pillmate.util.logger import get_logger

logger = get_logger(__name__)


class Session:
    """Authenticated user context plus session-local safety state.

    ``uid`` may be unknown at construction time (authentication still
    resolving); call ``authenticate`` once it is known. The sticky dispense
    block is mirrored here from the user profile and survives across dispense
    attempts until a dose passes the safety check.
    """

    def __init__(self, uid: Optional[str] = None, email: Optional[str] = None, device_pin: Optional[str] = None):
        self._uid = uid
        self.email = email or ""
        self.device_pin = device_pin
        # PIN whose ownership was checked against the realtime record
        self.verified_device_pin: Optional[str] = None
        self._authenticated = threading.Event()
        if uid:
            self._authenticated.set()

        self._block_lock = threading.Lock()
        self._dispense_blocked = False
        self._safety_warning: Optional[str] = None

    @property
    def uid(self) -> Optional[str]:
        return self._uid

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated.is_set()

    def authenticate(self, uid: str, email: Optional[str] = None):
        self._uid = uid
        if email is not None:
            self.email = email
        self._authenticated.set()
        logger.debug(f"Session authenticated for user {uid}")

    def wait_until_authenticated(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds for authentication to resolve."""
        return self._authenticated.wait(timeout)

    # Sticky block
    @property
    def dispense_blocked(self) -> bool:
        with self._block_lock:
            return self._dispense_blocked

    @property
    def safety_warning(self) -> Optional[str]:
        with self._block_lock:
            return self._safety_warning

    def block_dispense(self, warning: str):
        with self._block_lock:
            self._dispense_blocked = True
            self._safety_warning = warning
        logger.warning(f"Dispense blocked for user {self._uid}: {warning}")

    def clear_dispense_block(self):
        with self._block_lock:
            self._dispense_blocked = False
            self._safety_warning = None
