"""Path-addressed access to the Firebase Realtime Database."""

from typing import Any, Callable, Dict, Optional

from firebase_admin import db as rtdb

from pillmate.util.logger import get_logger

logger = get_logger(__name__)


class RealtimeStore:
    """Thin wrapper over ``firebase_admin.db`` references.

    Paths are relative to the database root, e.g. ``devices/123456/slots``.
    """

    def __init__(self, app=None, url: Optional[str] = None):
        self._app = app
        self._url = url

    def reference(self, path: str) -> rtdb.Reference:
        return rtdb.reference(path, app=self._app, url=self._url)

    def get(self, path: str) -> Any:
        return self.reference(path).get()

    def set(self, path: str, value: Any) -> None:
        self.reference(path).set(value)

    def update(self, path: str, values: Dict[str, Any]) -> None:
        self.reference(path).update(values)

    def transaction(self, path: str, update_fn: Callable[[Any], Any]) -> Any:
        """Run a compare-and-set loop on ``path`` and return the committed value.

        Raises:
            firebase_admin.db.TransactionAbortedError: If the update keeps
                losing races after the SDK's retry budget.
        """
        return self.reference(path).transaction(update_fn)

    def listen(self, path: str, on_value: Callable[[Any], None]):
        """Call ``on_value`` with the full value at ``path`` on every change.

        The first call carries the current value. Returns the SDK's
        ListenerRegistration; call ``close()`` to stop listening.
        """
        ref = self.reference(path)

        def _on_event(event: rtdb.Event) -> None:
            if event.event_type == "put" and event.path == "/":
                on_value(event.data)
            else:
                # Partial event; re-read the whole subtree
                on_value(ref.get())

        logger.debug(f"Listening on {path}")
        return ref.listen(_on_event)
