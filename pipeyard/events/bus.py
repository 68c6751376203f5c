"""Tenant event bus: publish, subscribe and an in-memory audit log of recent events."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

_ID_CHARSET = "abcdefghijklmnopqrstuvwxyz0123456789"
DEFAULT_MAX_LOG_SIZE = 1000


@dataclass(frozen=True)
class TenantEvent:
    """A business event raised by one tenant."""

    tenant_id: str
    event_type: str
    data: dict[str, Any] = field(default_factory=dict)
    id: str = ""
    timestamp: datetime | None = None
    source: str = ""


EventHandler = Callable[[TenantEvent], Any]


def generate_event_id() -> str:
    """Return a new event id of the form ``evt_<nanoseconds>_<6 random characters>``."""
    suffix = "".join(secrets.choice(_ID_CHARSET) for _ in range(6))
    return f"evt_{time.time_ns()}_{suffix}"


class TenantEventBus:
    """Delivers events to subscribers in the background and keeps the latest for audit."""

    def __init__(self, max_log_size: int = DEFAULT_MAX_LOG_SIZE) -> None:
        self._subscribers: dict[str, list[EventHandler]] = {}
        self._lock = threading.RLock()
        self._event_log: deque[TenantEvent] = deque(maxlen=max_log_size)
        self._idle = threading.Condition()
        self._pending = 0

    def publish_event(self, event: TenantEvent) -> TenantEvent:
        """Record an event and hand it to its subscribers without waiting for them.

        A missing id or timestamp is filled in. Returns the event as recorded.
        """
        if not event.tenant_id or not event.event_type:
            raise ValueError("event must have tenant_id and event_type")

        if not event.id:
            event = replace(event, id=generate_event_id())
        if event.timestamp is None:
            event = replace(event, timestamp=datetime.now())

        with self._lock:
            self._event_log.append(event)
            handlers = list(self._subscribers.get(event.event_type, ()))

        if handlers:
            with self._idle:
                self._pending += 1
            threading.Thread(
                target=self._deliver, args=(event, handlers), daemon=True
            ).start()
        return event

    def _deliver(self, event: TenantEvent, handlers: list[EventHandler]) -> None:
        try:
            for index, handler in enumerate(handlers):
                try:
                    handler(event)
                except Exception as exc:  # a failing handler must not stop the others
                    logger.warning(
                        "Event handler error for %s (handler %d): %s",
                        event.event_type,
                        index,
                        exc,
                    )
        finally:
            with self._idle:
                self._pending -= 1
                self._idle.notify_all()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register ``handler`` for events of exactly ``event_type``."""
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)
        logger.info("Subscribed to event type: %s", event_type)

    def get_event_history(self, tenant_id: str = "", limit: int = 100) -> list[TenantEvent]:
        """Return up to ``limit`` most recent events, oldest first.

        An empty ``tenant_id`` matches every tenant.
        """
        if limit <= 0:
            return []
        with self._lock:
            log = list(self._event_log)
        picked: deque[TenantEvent] = deque()
        for event in reversed(log):
            if len(picked) >= limit:
                break
            if not tenant_id or event.tenant_id == tenant_id:
                picked.appendleft(event)
        return list(picked)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every delivery has finished; False if ``timeout`` ran out first."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def _register_default_handlers(self) -> None:
        self.subscribe("work_order_completed", cross_tenant_analytics_handler)
        self.subscribe("customer_created", cross_tenant_analytics_handler)
        self.subscribe("inventory_received", cross_tenant_analytics_handler)
        self.subscribe("inventory_low_stock", inventory_alert_handler)
        self.subscribe("*", audit_trail_handler)


_global_bus: TenantEventBus | None = None
_global_lock = threading.Lock()


def get_event_bus() -> TenantEventBus:
    """Return the process-wide bus, created on first use with the default handlers."""
    global _global_bus
    with _global_lock:
        if _global_bus is None:
            bus = TenantEventBus()
            bus._register_default_handlers()
            _global_bus = bus
        return _global_bus


def _store_analytics_data(table: str, data: dict[str, Any]) -> dict[str, Any]:
    logger.info("Analytics: %s <- %s", table, data)
    return data


def _store_audit_entry(entry: dict[str, Any]) -> dict[str, Any]:
    logger.info("Audit: %s", entry)
    return entry


def cross_tenant_analytics_handler(event: TenantEvent) -> dict[str, Any] | None:
    """Store the non-sensitive part of an event for company-wide reporting.

    Returns the stored record, or None for event types it does not handle.
    """
    data = event.data
    if event.event_type == "work_order_completed":
        return _store_analytics_data(
            "work_order_completions",
            {
                "tenant_id": event.tenant_id,
                "work_order": data.get("work_order"),
                "total_joints": data.get("total_joints"),
                "total_weight": data.get("total_weight"),
                "completed_at": data.get("completed_at"),
                "location": data.get("location"),
            },
        )
    if event.event_type == "customer_created":
        return _store_analytics_data(
            "customer_demographics",
            {
                "tenant_id": event.tenant_id,
                "city": data.get("city"),
                "state": data.get("state"),
                "created_at": data.get("created_at"),
            },
        )
    if event.event_type == "inventory_received":
        return _store_analytics_data(
            "inventory_trends",
            {
                "tenant_id": event.tenant_id,
                "joints": data.get("joints"),
                "size": data.get("size"),
                "grade": data.get("grade"),
                "weight": data.get("weight"),
                "received_at": data.get("received_at"),
            },
        )
    return None


def inventory_alert_handler(event: TenantEvent) -> TenantEvent | None:
    """Log a low-stock alert and ask other locations for the missing stock.

    Returns the availability request published on the global bus.
    """
    if event.event_type != "inventory_low_stock":
        return None
    size = event.data["size"]
    grade = event.data["grade"]
    current_count = int(event.data["current_count"])
    logger.warning(
        "Low stock alert: %s needs %s %s (current: %d)",
        event.tenant_id,
        size,
        grade,
        current_count,
    )
    request = TenantEvent(
        tenant_id="system",
        event_type="inventory_availability_request",
        data={"requesting_tenant": event.tenant_id, "size": size, "grade": grade},
        id=generate_event_id(),
        timestamp=datetime.now(),
        source="inventory_alert_handler",
    )
    return get_event_bus().publish_event(request)


def audit_trail_handler(event: TenantEvent) -> dict[str, Any]:
    """Record the event's metadata, without its data, for compliance."""
    return _store_audit_entry(
        {
            "event_id": event.id,
            "tenant_id": event.tenant_id,
            "event_type": event.event_type,
            "timestamp": event.timestamp,
            "source": event.source,
        }
    )


def publish_work_order_completed(
    tenant_id: str,
    work_order: str,
    customer: str,
    total_joints: int,
    total_weight: float,
    completed_by: str,
) -> TenantEvent:
    """Publish a ``work_order_completed`` event on the global bus."""
    return get_event_bus().publish_event(
        TenantEvent(
            tenant_id=tenant_id,
            event_type="work_order_completed",
            data={
                "work_order": work_order,
                "customer": customer,
                "total_joints": total_joints,
                "total_weight": total_weight,
                "completed_by": completed_by,
                "completed_at": datetime.now(),
            },
            source="work_order_api",
        )
    )


def publish_inventory_received(
    tenant_id: str,
    work_order: str,
    customer: str,
    joints: int,
    size: str,
    grade: str,
    weight: float,
    received_by: str,
) -> TenantEvent:
    """Publish an ``inventory_received`` event on the global bus."""
    return get_event_bus().publish_event(
        TenantEvent(
            tenant_id=tenant_id,
            event_type="inventory_received",
            data={
                "work_order": work_order,
                "customer": customer,
                "joints": joints,
                "size": size,
                "grade": grade,
                "weight": weight,
                "received_by": received_by,
                "received_at": datetime.now(),
            },
            source="inventory_api",
        )
    )


def publish_customer_created(
    tenant_id: str,
    customer_id: int,
    customer_name: str,
    contact: str,
    city: str,
    state: str,
) -> TenantEvent:
    """Publish a ``customer_created`` event on the global bus."""
    return get_event_bus().publish_event(
        TenantEvent(
            tenant_id=tenant_id,
            event_type="customer_created",
            data={
                "customer_id": customer_id,
                "customer_name": customer_name,
                "contact": contact,
                "city": city,
                "state": state,
                "created_at": datetime.now(),
            },
            source="customer_api",
        )
    )


def publish_inventory_low_stock(
    tenant_id: str,
    size: str,
    grade: str,
    location: str,
    current_count: int,
    minimum_threshold: int,
) -> TenantEvent:
    """Publish an ``inventory_low_stock`` event on the global bus."""
    return get_event_bus().publish_event(
        TenantEvent(
            tenant_id=tenant_id,
            event_type="inventory_low_stock",
            data={
                "size": size,
                "grade": grade,
                "location": location,
                "current_count": current_count,
                "minimum_threshold": minimum_threshold,
                "alert_time": datetime.now(),
            },
            source="inventory_monitor",
        )
    )