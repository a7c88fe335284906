"""Notification bus for scheduling hooks.

Why This Module Exists
----------------------
Applications want to react when a job is put on the delayed schedule and
right before the worker forwards a due job to its queue (metrics, audit
trails, tracing). The scheduler and the worker should not import those
consumers, so both publish :class:`Event` objects on an :class:`EventBus`
and consumers subscribe by pattern.

Event types published by spine-delayed:

=========================  =====================================================
``job.scheduled``          after every successful ``enqueue_at`` / ``enqueue_in``
``job.before_dispatch``    immediately before a due job is forwarded downstream
=========================  =====================================================

Handlers run synchronously in the publisher's thread. A failing handler is
logged and never breaks scheduling.

Usage::

    from spine_delayed.core.events import EventBus

    bus = EventBus()

    def audit(event):
        print(event.payload["queue"], event.payload["job_class"])

    bus.subscribe("job.*", audit)
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from spine_delayed.core.logging import get_logger

__all__ = [
    "JOB_BEFORE_DISPATCH",
    "JOB_SCHEDULED",
    "Event",
    "EventBus",
    "EventHandler",
]

logger = get_logger(__name__)

JOB_SCHEDULED = "job.scheduled"
JOB_BEFORE_DISPATCH = "job.before_dispatch"


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass
class Event:
    """Notification payload.

    Attributes:
        event_type: Dot-separated type (e.g., ``job.scheduled``)
        source: Origin component
        payload: Event-specific data
        timestamp: When the event occurred (UTC)
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``job.*`` matches ``job.scheduled``, ``job.before_dispatch``
            - ``*`` matches everything
            - ``job.scheduled`` matches exactly ``job.scheduled``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern


EventHandler = Callable[[Event], None]


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    pattern: str
    handler: EventHandler


# ── EventBus ─────────────────────────────────────────────────────────────


class EventBus:
    """In-process publish/subscribe bus with wildcard patterns.

    Thread-safe: subscriptions may change while another thread publishes.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def publish(self, event: Event) -> None:
        """Deliver an event to every matching subscriber."""
        with self._lock:
            handlers_to_call = [
                (sub.id, sub.handler)
                for sub in self._subscriptions.values()
                if event.matches(sub.pattern)
            ]

        for sub_id, handler in handlers_to_call:
            try:
                handler(event)
            except Exception as e:
                logger.warning(
                    "event_handler_error",
                    subscription_id=sub_id,
                    event_type=event.event_type,
                    error=str(e),
                )

    def emit(self, event_type: str, source: str, **payload: Any) -> Event:
        """Build and publish an event in one call. Returns the event."""
        event = Event(event_type=event_type, source=source, payload=payload)
        self.publish(event)
        return event

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern.

        Args:
            event_type: Pattern to match (supports ``*`` and ``type.*``)
            handler: Callback for matching events

        Returns:
            Subscription ID for later unsubscription
        """
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"

        with self._lock:
            self._subscriptions[sub_id] = Subscription(
                id=sub_id,
                pattern=event_type,
                handler=handler,
            )

        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription. No-op for unknown IDs."""
        with self._lock:
            self._subscriptions.pop(subscription_id, None)

    def clear(self) -> None:
        """Drop all subscriptions."""
        with self._lock:
            self._subscriptions.clear()

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)
