import re
import threading
from datetime import datetime

import pytest

from pipeyard.events.bus import (
    TenantEvent,
    TenantEventBus,
    audit_trail_handler,
    cross_tenant_analytics_handler,
    generate_event_id,
    get_event_bus,
    inventory_alert_handler,
    publish_customer_created,
    publish_inventory_low_stock,
    publish_inventory_received,
    publish_work_order_completed,
)


def test_generate_event_id_format_and_uniqueness():
    ids = {generate_event_id() for _ in range(50)}
    assert len(ids) == 50
    for event_id in ids:
        assert re.fullmatch(r"evt_\d+_[a-z0-9]{6}", event_id)


@pytest.mark.parametrize(
    "event",
    [
        TenantEvent(tenant_id="", event_type="customer_created"),
        TenantEvent(tenant_id="longbeach", event_type=""),
    ],
)
def test_publish_requires_tenant_and_type(event):
    bus = TenantEventBus()
    with pytest.raises(ValueError):
        bus.publish_event(event)
    assert bus.get_event_history("", 10) == []


def test_publish_fills_id_and_timestamp():
    bus = TenantEventBus()
    recorded = bus.publish_event(TenantEvent("longbeach", "customer_created"))
    assert recorded.id.startswith("evt_")
    assert isinstance(recorded.timestamp, datetime)
    assert bus.get_event_history("longbeach", 10) == [recorded]


def test_publish_keeps_given_id_and_timestamp():
    bus = TenantEventBus()
    stamp = datetime(2024, 1, 2, 3, 4, 5)
    recorded = bus.publish_event(
        TenantEvent("longbeach", "customer_created", id="evt_given", timestamp=stamp)
    )
    assert recorded.id == "evt_given"
    assert recorded.timestamp == stamp


def test_history_filters_by_tenant_and_keeps_order():
    bus = TenantEventBus()
    a1 = bus.publish_event(TenantEvent("longbeach", "customer_created", id="a1"))
    bus.publish_event(TenantEvent("houston", "customer_created", id="b1"))
    a2 = bus.publish_event(TenantEvent("longbeach", "inventory_received", id="a2"))
    assert [e.id for e in bus.get_event_history("longbeach", 10)] == [a1.id, a2.id]
    assert [e.id for e in bus.get_event_history("", 10)] == ["a1", "b1", "a2"]


def test_history_limit_returns_most_recent():
    bus = TenantEventBus()
    for n in range(5):
        bus.publish_event(TenantEvent("longbeach", "customer_created", id=f"e{n}"))
    assert [e.id for e in bus.get_event_history("longbeach", 2)] == ["e3", "e4"]
    assert bus.get_event_history("longbeach", 0) == []


def test_log_is_trimmed_to_max_size():
    bus = TenantEventBus(max_log_size=3)
    for n in range(6):
        bus.publish_event(TenantEvent("longbeach", "customer_created", id=f"e{n}"))
    assert [e.id for e in bus.get_event_history("", 100)] == ["e3", "e4", "e5"]


def test_subscribers_receive_matching_events_only():
    bus = TenantEventBus()
    received = []
    lock = threading.Lock()

    def handler(event):
        with lock:
            received.append(event.id)

    bus.subscribe("customer_created", handler)
    bus.publish_event(TenantEvent("longbeach", "customer_created", id="match"))
    bus.publish_event(TenantEvent("longbeach", "inventory_received", id="other"))
    assert bus.wait_idle(5)
    assert received == ["match"]


def test_failing_handler_does_not_stop_others():
    bus = TenantEventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe("work_order_completed", broken)
    bus.subscribe("work_order_completed", lambda event: seen.append(event.tenant_id))
    bus.publish_event(TenantEvent("longbeach", "work_order_completed"))
    assert bus.wait_idle(5)
    assert seen == ["longbeach"]


def test_analytics_handler_drops_customer_details():
    event = TenantEvent(
        "longbeach",
        "work_order_completed",
        data={"work_order": "WO-1", "customer": "Acme", "total_joints": 12},
    )
    stored = cross_tenant_analytics_handler(event)
    assert stored["tenant_id"] == "longbeach"
    assert stored["work_order"] == "WO-1"
    assert stored["total_joints"] == 12
    assert "customer" not in stored


def test_analytics_handler_customer_created_keeps_location_only():
    event = TenantEvent(
        "houston",
        "customer_created",
        data={"customer_name": "Acme", "contact": "Pat", "city": "Houston", "state": "TX"},
    )
    stored = cross_tenant_analytics_handler(event)
    assert stored["city"] == "Houston"
    assert stored["state"] == "TX"
    assert "customer_name" not in stored and "contact" not in stored


def test_analytics_handler_ignores_unknown_type():
    assert cross_tenant_analytics_handler(TenantEvent("longbeach", "something_else")) is None


def test_audit_handler_records_metadata_only():
    event = TenantEvent(
        "longbeach",
        "customer_created",
        data={"secret": "secret"},
        id="evt_1",
        source="customer_api",
    )
    entry = audit_trail_handler(event)
    assert entry["event_id"] == "evt_1"
    assert entry["source"] == "customer_api"
    assert "data" not in entry and "secret" not in entry


def test_inventory_alert_handler_publishes_availability_request():
    event = TenantEvent(
        "longbeach",
        "inventory_low_stock",
        data={"size": "5 1/2", "grade": "J55", "current_count": 2.0},
    )
    request = inventory_alert_handler(event)
    assert request.tenant_id == "system"
    assert request.event_type == "inventory_availability_request"
    assert request.data == {"requesting_tenant": "longbeach", "size": "5 1/2", "grade": "J55"}
    assert request in get_event_bus().get_event_history("system", 1000)


def test_inventory_alert_handler_ignores_other_types():
    assert inventory_alert_handler(TenantEvent("longbeach", "customer_created")) is None


def test_get_event_bus_shares_history_between_calls():
    first = get_event_bus()
    recorded = first.publish_event(TenantEvent("singletontest", "customer_created"))
    assert first.wait_idle(5)
    history = get_event_bus().get_event_history("singletontest", 10)
    assert [e.id for e in history] == [recorded.id]


def test_publish_helpers_record_on_global_bus():
    bus = get_event_bus()
    wo = publish_work_order_completed("helpertest", "WO-9", "Acme", 40, 1200.5, "pat")
    inv = publish_inventory_received("helpertest", "WO-9", "Acme", 40, "7", "L80", 900.0, "pat")
    cust = publish_customer_created("helpertest", 7, "Acme", "Pat", "Houston", "TX")
    low = publish_inventory_low_stock("helpertest", "7", "L80", "yard", 1, 5)
    assert bus.wait_idle(5)

    history = bus.get_event_history("helpertest", 1000)
    assert [e.id for e in history] == [wo.id, inv.id, cust.id, low.id]
    assert wo.event_type == "work_order_completed"
    assert wo.source == "work_order_api"
    assert wo.data["total_joints"] == 40
    assert inv.data["grade"] == "L80"
    assert cust.data["customer_id"] == 7
    assert low.data["minimum_threshold"] == 5
    assert low.source == "inventory_monitor"

    requests = [
        e
        for e in bus.get_event_history("system", 1000)
        if e.data.get("requesting_tenant") == "helpertest"
    ]
    assert len(requests) == 1