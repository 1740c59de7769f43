import logging
from threading import Lock
from typing import Any, Callable

logger = logging.getLogger(__name__)

NEW_LOG = "new_log"
USER_DELETED = "user_deleted"
USER_UPDATED = "user_updated"
EVALUATION_DELETED = "evaluation_deleted"
ADMIN_STATUS_UPDATED = "admin_status_updated"
PRODUCTS_UPDATED = "products_updated"

ADMIN_EVENTS = frozenset({
    NEW_LOG,
    USER_DELETED,
    USER_UPDATED,
    EVALUATION_DELETED,
    ADMIN_STATUS_UPDATED,
    PRODUCTS_UPDATED,
})

Subscriber = Callable[[str, dict[str, Any]], None]


class EventBus:
    """Fans admin events out to connected listeners.

    Publishing never fails the caller: the mutation that triggered the event
    has already been applied, so a broken subscriber is logged and skipped.
    """

    def __init__(self):
        self._subscribers: list[Subscriber] = []
        self._lock = Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        if event not in ADMIN_EVENTS:
            raise ValueError(f"Unknown admin event: {event}")

        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event, payload)
            except Exception:
                logger.exception("Admin event subscriber failed for %s", event)
