"""Activity summaries, dashboard metrics and alert rules over the event log."""

from __future__ import annotations

import logging
import re
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pipeyard.events.bus import TenantEvent, TenantEventBus, get_event_bus

logger = logging.getLogger(__name__)

_TENANT_HISTORY_LIMIT = 1000
_SYSTEM_HISTORY_LIMIT = 10000
_DEFAULT_HISTORY_LIMIT = 100
_MAX_HISTORY_LIMIT = 1000
_DEFAULT_ACTIVITY_HOURS = 24
_MAX_ACTIVITY_HOURS = 168
_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class AlertRule:
    """Fires ``alert_action`` for each tenant with more than ``threshold`` events in the window."""

    event_type: str
    threshold: int
    time_window: timedelta
    alert_action: Callable[[str, int], Any]


def _low_stock_alert(tenant_id: str, count: int) -> None:
    logger.warning("ALERT: Tenant %s has %d low stock alerts in last hour", tenant_id, count)


def _high_activity_alert(tenant_id: str, count: int) -> None:
    logger.info(
        "HIGH ACTIVITY: Tenant %s completed %d work orders in last hour", tenant_id, count
    )


DEFAULT_ALERT_RULES: tuple[AlertRule, ...] = (
    AlertRule("inventory_low_stock", 3, timedelta(hours=1), _low_stock_alert),
    AlertRule("work_order_completed", 10, timedelta(hours=1), _high_activity_alert),
)


def _bus(bus: TenantEventBus | None) -> TenantEventBus:
    return get_event_bus() if bus is None else bus


def _recent(events: Iterable[TenantEvent], since: datetime) -> Iterable[TenantEvent]:
    return (e for e in events if e.timestamp is not None and e.timestamp > since)


def get_tenant_activity_summary(
    tenant_id: str, hours: int, bus: TenantEventBus | None = None
) -> dict[str, int]:
    """Count a tenant's events by type over the last ``hours`` hours."""
    since = datetime.now() - timedelta(hours=hours)
    events = _bus(bus).get_event_history(tenant_id, _TENANT_HISTORY_LIMIT)
    return dict(Counter(e.event_type for e in _recent(events, since)))


def get_system_wide_activity(
    hours: int, bus: TenantEventBus | None = None
) -> dict[str, dict[str, int]]:
    """Count events by tenant and then by type over the last ``hours`` hours."""
    since = datetime.now() - timedelta(hours=hours)
    events = _bus(bus).get_event_history("", _SYSTEM_HISTORY_LIMIT)
    activity: defaultdict[str, Counter[str]] = defaultdict(Counter)
    for event in _recent(events, since):
        activity[event.tenant_id][event.event_type] += 1
    return {tenant: dict(counts) for tenant, counts in activity.items()}


def get_dashboard_metrics(bus: TenantEventBus | None = None) -> dict[str, int]:
    """Company-wide totals over the last 24 hours."""
    activity = get_system_wide_activity(24, bus)
    metrics = {
        "active_tenants": len(activity),
        "work_orders_completed": 0,
        "inventory_items_received": 0,
        "new_customers": 0,
        "low_stock_alerts": 0,
    }
    for counts in activity.values():
        metrics["work_orders_completed"] += counts.get("work_order_completed", 0)
        metrics["inventory_items_received"] += counts.get("inventory_received", 0)
        metrics["new_customers"] += counts.get("customer_created", 0)
        metrics["low_stock_alerts"] += counts.get("inventory_low_stock", 0)
    return metrics


def check_alert_rule(rule: AlertRule, bus: TenantEventBus | None = None) -> dict[str, int]:
    """Apply one rule; return the tenants it fired for, with their event counts."""
    since = datetime.now() - rule.time_window
    events = _bus(bus).get_event_history("", _SYSTEM_HISTORY_LIMIT)
    counts = Counter(
        e.tenant_id for e in _recent(events, since) if e.event_type == rule.event_type
    )
    fired = {tenant: count for tenant, count in counts.items() if count > rule.threshold}
    for tenant, count in fired.items():
        rule.alert_action(tenant, count)
    return fired


def monitor_alerts(
    rules: Iterable[AlertRule] | None = None, bus: TenantEventBus | None = None
) -> list[dict[str, int]]:
    """Apply every rule (the default rules when none are given); return what each fired for."""
    chosen = DEFAULT_ALERT_RULES if rules is None else rules
    return [check_alert_rule(rule, bus) for rule in chosen]


def _bounded_int(value: Any, default: int, maximum: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and _INTEGER.fullmatch(value):
        parsed = int(value)
    else:
        return default
    return parsed if 0 < parsed <= maximum else default


def event_history_response(
    tenant_id: str = "", limit: Any = None, bus: TenantEventBus | None = None
) -> dict[str, Any]:
    """Payload for the event history endpoint; ``limit`` outside 1..1000 falls back to 100."""
    size = _bounded_int(limit, _DEFAULT_HISTORY_LIMIT, _MAX_HISTORY_LIMIT)
    events = _bus(bus).get_event_history(tenant_id, size)
    return {"events": events, "count": len(events), "tenant": tenant_id}


def tenant_activity_response(
    hours: Any = None, bus: TenantEventBus | None = None
) -> dict[str, Any]:
    """Payload for the tenant activity endpoint; ``hours`` outside 1..168 falls back to 24."""
    window = _bounded_int(hours, _DEFAULT_ACTIVITY_HOURS, _MAX_ACTIVITY_HOURS)
    activity = get_system_wide_activity(window, bus)
    return {
        "activity": activity,
        "time_window": f"{window} hours",
        "tenants": len(activity),
    }