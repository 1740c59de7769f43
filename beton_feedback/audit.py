"""Bounded, append-only journal of administrative actions.

Entries are kept in process memory only. Once ``capacity`` entries exist, each
new entry evicts the oldest one, so the journal always holds the most recent
actions in the order they were recorded.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from beton_feedback.core import config
from beton_feedback.core.log_setup import mask_token
from beton_feedback.events import NEW_LOG, EventBus

logger = logging.getLogger(__name__)

ADD_PRODUCT = "add_product"
UPDATE_PRODUCT = "update_product"
DELETE_PRODUCT = "delete_product"
DELETE_EVALUATION = "delete_evaluation"
UPDATE_USER = "update_user"
UPDATE_ADMIN_STATUS = "update_admin_status"
DELETE_USER = "delete_user"


class AdminLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    action: str
    details: dict[str, Any] = Field(default_factory=dict)
    admin_phone: str
    time: datetime


class AuditLog:
    def __init__(self, capacity: int = config.AUDIT_LOG_CAPACITY, events: EventBus | None = None):
        if capacity < 1:
            raise ValueError("Audit log capacity must be positive")
        self.capacity = capacity
        self._entries: deque[AdminLogEntry] = deque(maxlen=capacity)
        self._lock = Lock()
        self._events = events

    def record(self, action: str, details: dict[str, Any], admin_phone: str) -> None:
        entry = AdminLogEntry(
            action=action,
            details=details,
            admin_phone=admin_phone,
            time=datetime.now(timezone.utc),
        )
        with self._lock:
            self._entries.append(entry)

        logger.info("Admin action %s by %s: %s", action, mask_token(admin_phone), details)
        if self._events is not None:
            self._events.publish(NEW_LOG, entry.model_dump(mode="json", by_alias=True))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def list(self) -> list[AdminLogEntry]:
        """Entries in insertion order, oldest first."""
        with self._lock:
            return list(self._entries)
