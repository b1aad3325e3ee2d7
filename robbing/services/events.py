"""
Robbing Request — Event Bus

Successful mutations are published here after they have been stored.
Notification delivery and audit sinks subscribe instead of being baked into
the mutation itself.

Event kinds:
    created, transitioned, document_updated, material_store_action
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RobbingEvent:
    kind: str
    request_id: str
    status: str
    previous_status: Optional[str]
    acting_user: str
    acting_role: str
    timestamp: datetime
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "request_id": self.request_id,
            "status": self.status,
            "previous_status": self.previous_status,
            "acting_user": self.acting_user,
            "acting_role": self.acting_role,
            "timestamp": self.timestamp.isoformat(),
            "detail": self.detail,
        }


Subscriber = Callable[[RobbingEvent], None]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, event: RobbingEvent) -> None:
        """Deliver to every subscriber. The mutation is already stored, so a
        failing subscriber is logged and does not undo it."""
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Subscriber %r failed for %s on %s",
                                 subscriber, event.kind, event.request_id)


def log_notification(event: RobbingEvent) -> None:
    """Default subscriber: one INFO line per successful change."""
    if event.kind == "created":
        logger.info("Request %s created (%s)", event.request_id, event.status)
    elif event.kind == "transitioned":
        logger.info("Request %s status updated to %s (from %s) by %s [%s]",
                    event.request_id, event.status, event.previous_status,
                    event.acting_user, event.acting_role)
    else:
        logger.info("Request %s updated: %s", event.request_id, event.detail or event.kind)
